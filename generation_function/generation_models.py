"""
Data Models for Generation Function

Pydantic models for swipe aggregation and generation dispatch, plus the
error types the HTTP entry point maps to status codes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Errors
# ============================================================================

class PipelineError(Exception):
    """Base error carrying the HTTP status the entry point responds with."""
    status_code = 500


class BadRequestError(PipelineError):
    status_code = 400


class NotFoundError(PipelineError):
    status_code = 404


class UpstreamError(PipelineError):
    """A third-party dependency returned an empty or invalid result."""
    status_code = 500


# ============================================================================
# Swipes
# ============================================================================

class SwipeDirection(str, Enum):
    """Valid swipe directions."""
    LEFT = "left"
    RIGHT = "right"


class Swipe(BaseModel):
    """A single swipe document from the swipes collection."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: Optional[Any] = Field(default=None, alias="userId")
    video_id: Optional[Any] = Field(default=None, alias="videoId")
    direction: Optional[Any] = None
    created_at: Optional[Any] = Field(default=None, alias="createdAt")

    @property
    def normalized_direction(self) -> Optional[SwipeDirection]:
        """Lower-cased direction, or None when it is not left/right."""
        if not isinstance(self.direction, str):
            return None
        try:
            return SwipeDirection(self.direction.lower())
        except ValueError:
            return None

    @property
    def is_valid(self) -> bool:
        return (
            isinstance(self.video_id, str)
            and bool(self.video_id)
            and self.normalized_direction is not None
        )

    @property
    def sort_timestamp(self) -> float:
        """createdAt as epoch millis; 0 when missing or unparseable."""
        value = self.created_at
        if value is None:
            return 0.0
        if hasattr(value, "timestamp"):
            return value.timestamp() * 1000
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0


class PreferenceSummary(BaseModel):
    """Request-scoped result of aggregating a user's swipes."""
    user_id: str
    processed_swipes: int
    valid_swipes: int
    weights: Dict[str, int] = Field(default_factory=dict)
    liked_descriptions: List[str] = Field(default_factory=list)
    disliked_descriptions: List[str] = Field(default_factory=list)

    def debug_counters(self) -> Dict[str, int]:
        return {
            "processedSwipes": self.processed_swipes,
            "validSwipes": len(self.weights),
            "likedDescriptions": len(self.liked_descriptions),
            "dislikedDescriptions": len(self.disliked_descriptions),
        }


# ============================================================================
# Generation
# ============================================================================

class GenerationRequest(BaseModel):
    """In-memory unit of work handed to the video provider."""
    prompt: str
    aspect_ratio: str = "3:4"
    loop: bool = False
    callback_url: str

    def provider_input(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "loop": self.loop,
            "aspect_ratio": self.aspect_ratio,
        }


class GenerationJob(BaseModel):
    """Durable record of an in-flight prediction, keyed by prediction id."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    prompt: str
    status: str = "starting"
    model: str = ""
    created_at: int = Field(default=0, alias="createdAt")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
