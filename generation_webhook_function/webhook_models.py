"""
Data Models for Generation Webhook Function

Replicate callback payload, the catalog documents written for a finished
video, and the status dispatch that decides which callbacks have side effects.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

VIDEO_EXTENSION = ".mp4"


# ============================================================================
# Errors
# ============================================================================

class PipelineError(Exception):
    """Base error carrying the HTTP status the entry point responds with."""
    status_code = 500


class BadRequestError(PipelineError):
    status_code = 400


class UpstreamError(PipelineError):
    """Replicate or the video host returned something unusable."""
    status_code = 500


class PayloadTooLargeError(PipelineError):
    # No distinct status code for oversized downloads
    status_code = 500


# ============================================================================
# Callback status
# ============================================================================

class CallbackOutcome(str, Enum):
    """What a callback means for this handler."""
    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


TERMINAL_FAILURE_STATUSES = {"failed", "canceled"}


def classify_status(status: Optional[str]) -> CallbackOutcome:
    """Map a raw Replicate status onto a CallbackOutcome."""
    normalized = (status or "").lower()
    if normalized == "starting":
        return CallbackOutcome.STARTING
    if normalized == "succeeded":
        return CallbackOutcome.SUCCEEDED
    if normalized in TERMINAL_FAILURE_STATUSES:
        return CallbackOutcome.FAILED
    return CallbackOutcome.IN_PROGRESS


class CompletionPayload(BaseModel):
    """Replicate webhook body, with the callback URL's prompt merged in."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: Optional[str] = None
    output: Optional[Union[str, List[Any], Dict[str, Any]]] = None
    error: Optional[Any] = None
    prompt: Optional[str] = None

    @property
    def outcome(self) -> CallbackOutcome:
        return classify_status(self.status)

    def output_url(self) -> str:
        """
        The produced video URL: the output string or the first list element.

        Raises:
            UpstreamError: If the output has neither shape or is not https
        """
        if isinstance(self.output, list) and self.output and isinstance(self.output[0], str):
            url = self.output[0]
        elif isinstance(self.output, str):
            url = self.output
        else:
            raise UpstreamError("Invalid output format in webhook payload")

        if not url.startswith("https://"):
            raise UpstreamError("Invalid video URL format")
        return url


# ============================================================================
# Catalog
# ============================================================================

class VideoStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    super_likes: int = Field(default=0, ge=0, alias="superLikes")
    dislikes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    tips: int = Field(default=0, ge=0)


class ContentItem(BaseModel):
    """A document in the videos collection; id equals the storage filename."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    description: str
    creator_id: str = Field(default="system", alias="creatorId")
    username: str = "System"
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    title: str
    created_at: int = Field(default=0, alias="createdAt")
    stats: VideoStats = Field(default_factory=VideoStats)

    @classmethod
    def for_generated_video(cls, file_name: str, prompt: str, created_at: int = 0) -> "ContentItem":
        return cls(
            id=file_name,
            description=prompt,
            title=file_name.removesuffix(VIDEO_EXTENSION),
            created_at=created_at,
        )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ============================================================================
# Vector index
# ============================================================================

class VectorRecord(BaseModel):
    id: str
    values: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_pinecone(self) -> Dict[str, Any]:
        return {"id": self.id, "values": self.values, "metadata": self.metadata}


class VectorUpsertResult(BaseModel):
    """Outcome of the best-effort indexing step; logged, never raised."""
    success: bool
    vector_id: str
    error: Optional[str] = None
