"""
Generation Dispatcher

Submits a prompt to Replicate and records the prediction in Firestore so the
webhook can correlate the completion callback by prediction id.
"""

import logging
import time
from urllib.parse import quote

from generation_models import GenerationJob, GenerationRequest, UpstreamError

logger = logging.getLogger(__name__)

JOBS_COLLECTION = "generation_jobs"
WEBHOOK_EVENTS = ["completed"]


def build_callback_url(base_url: str, function_name: str, prompt: str) -> str:
    """Webhook URL with the prompt URL-encoded as the `prompt` query parameter."""
    return f"{base_url.rstrip('/')}/{function_name}?prompt={quote(prompt, safe='')}"


class GenerationDispatcher:
    """Starts asynchronous video generation without waiting for it to finish."""

    def __init__(self, replicate_client, firestore_client, webhook_base_url: str,
                 webhook_function_name: str = "generation_webhook",
                 model: str = "luma/ray", aspect_ratio: str = "3:4"):
        self.replicate = replicate_client
        self.db = firestore_client
        self.webhook_base_url = webhook_base_url
        self.webhook_function_name = webhook_function_name
        self.model = model
        self.aspect_ratio = aspect_ratio

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            aspect_ratio=self.aspect_ratio,
            loop=False,
            callback_url=build_callback_url(self.webhook_base_url, self.webhook_function_name, prompt),
        )

    def dispatch(self, prompt: str, user_id: str) -> GenerationJob:
        """
        Create the prediction and persist its job record.

        Args:
            prompt: Synthesized video prompt
            user_id: User the video is generated for

        Returns:
            GenerationJob keyed by the provider's prediction id

        Raises:
            UpstreamError: If Replicate returns no prediction handle
        """
        request = self.build_request(prompt)
        logger.info(f"[generation] Starting {self.model} video generation, webhook: {request.callback_url}")

        prediction = self.replicate.predictions.create(
            model=self.model,
            input=request.provider_input(),
            webhook=request.callback_url,
            webhook_events_filter=WEBHOOK_EVENTS,
        )
        if not prediction or not getattr(prediction, "id", None):
            raise UpstreamError("Replicate API did not return a prediction")

        job = GenerationJob(
            id=prediction.id,
            user_id=user_id,
            prompt=prompt,
            status=getattr(prediction, "status", None) or "starting",
            model=self.model,
            created_at=int(time.time() * 1000),
        )
        self.db.collection(JOBS_COLLECTION).document(job.id).set(job.to_document())

        logger.info(f"[generation] Prediction initiated: {job.id} ({job.status})")
        return job
