"""
Completion Handler

Stateless processor for Replicate completion callbacks. Each callback is
routed by its own status; only a succeeded callback downloads, persists and
indexes the video. Replayed callbacks are processed again (no dedup).
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from webhook_models import (
    BadRequestError,
    CallbackOutcome,
    CompletionPayload,
    ContentItem,
)
from video_downloader import download_video
from video_publisher import VideoPublisher, video_file_name
from vector_indexer import VectorIndexer

logger = logging.getLogger(__name__)

Downloader = Callable[[str, int], Awaitable[bytes]]
Response = Tuple[Dict[str, Any], int]


def parse_callback(raw_payload: Optional[Dict[str, Any]]) -> CompletionPayload:
    """
    Validate a callback body.

    Raises:
        BadRequestError: If the prediction id is missing
    """
    payload = CompletionPayload.model_validate(raw_payload or {})
    if not payload.id:
        raise BadRequestError("Missing replicate ID in payload")
    return payload


def acknowledge(payload: CompletionPayload) -> Optional[Response]:
    """Response for callbacks without side effects; None for succeeded ones."""
    outcome = payload.outcome

    if outcome == CallbackOutcome.STARTING:
        logger.info(f"[webhook] Generation starting: {payload.id}")
        return {
            'message': 'Generation starting',
            'id': payload.id,
            'status': 'starting',
        }, 200

    if outcome in (CallbackOutcome.IN_PROGRESS, CallbackOutcome.FAILED):
        logger.info(
            f"[webhook] Generation status update for {payload.id}: "
            f"status={payload.status}, error={payload.error}"
        )
        return {
            'message': 'Status update received',
            'status': payload.status,
            'error': payload.error,
        }, 200

    return None


class CompletionHandler:
    """Routes a callback by status and runs the persistence pipeline on success."""

    DEFAULT_MAX_BYTES = 100 * 1024 * 1024

    def __init__(self, publisher: VideoPublisher, indexer: VectorIndexer,
                 downloader: Optional[Downloader] = None,
                 max_bytes: int = DEFAULT_MAX_BYTES):
        self.publisher = publisher
        self.indexer = indexer
        self.downloader = downloader or download_video
        self.max_bytes = max_bytes

    async def handle(self, raw_payload: Dict[str, Any]) -> Response:
        """
        Process one callback.

        Returns:
            (response body, HTTP status)

        Raises:
            BadRequestError: Missing prediction id or prompt
            UpstreamError: Malformed output URL or failed download
            PayloadTooLargeError: Video above the size ceiling
        """
        payload = parse_callback(raw_payload)

        response = acknowledge(payload)
        if response is not None:
            return response

        return await self.persist(payload)

    def resolve_prompt(self, payload: CompletionPayload) -> str:
        """Prompt from the job record, else the callback's own prompt."""
        prompt: Optional[str] = self.publisher.load_job_prompt(payload.id)
        if not prompt:
            prompt = payload.prompt
        if not prompt:
            raise BadRequestError(f"No prompt found for prediction {payload.id}")
        return prompt

    async def persist(self, payload: CompletionPayload) -> Response:
        video_output_url = payload.output_url()
        prompt = self.resolve_prompt(payload)
        file_name = video_file_name(payload.id)

        data = await self.downloader(video_output_url, self.max_bytes)

        video_url = self.publisher.upload_video(file_name, data)

        now_ms = int(time.time() * 1000)
        self.publisher.write_content_item(
            ContentItem.for_generated_video(file_name, prompt, created_at=now_ms)
        )
        self.publisher.mark_job_succeeded(payload.id, file_name, now_ms)

        # Catalog entry is already durable; indexing failures only get logged
        result = self.indexer.index_generated_video(file_name, prompt)
        if not result.success:
            logger.warning(f"[webhook] Video {file_name} stored without vector index entry: {result.error}")

        return {
            'message': 'Webhook processing complete',
            'videoId': file_name,
            'videoUrl': video_url,
        }, 200
