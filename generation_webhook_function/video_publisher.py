"""
Video Publisher

Uploads generated videos to Cloud Storage and writes their catalog entries
(and job record updates) to Firestore.
"""

import logging
from typing import Optional

from webhook_models import VIDEO_EXTENSION, ContentItem

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPE = "video/mp4"


def video_file_name(job_id: str) -> str:
    return f"{job_id}{VIDEO_EXTENSION}"


class VideoPublisher:
    """
    Persists finished videos: blob in GCS, document in the videos collection.
    """

    VIDEOS_COLLECTION = "videos"
    JOBS_COLLECTION = "generation_jobs"

    def __init__(self, storage_client, firestore_client, bucket_name: str,
                 prefix: str = "generated_videos/"):
        """
        Args:
            storage_client: google.cloud.storage.Client
            firestore_client: google.cloud.firestore.Client
            bucket_name: Bucket the videos land in
            prefix: Folder inside the bucket
        """
        self.storage_client = storage_client
        self.db = firestore_client
        self.bucket_name = bucket_name
        self.prefix = prefix

    def blob_path(self, file_name: str) -> str:
        return f"{self.prefix}{file_name}"

    def public_url(self, file_name: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{self.blob_path(file_name)}"

    def upload_video(self, file_name: str, data: bytes) -> str:
        """Upload the bytes and return the public URL."""
        bucket = self.storage_client.bucket(self.bucket_name)
        blob = bucket.blob(self.blob_path(file_name))
        blob.upload_from_string(data, content_type=VIDEO_CONTENT_TYPE)

        url = self.public_url(file_name)
        logger.info(f"[webhook] Video uploaded: {url}")
        return url

    def write_content_item(self, item: ContentItem) -> None:
        self.db.collection(self.VIDEOS_COLLECTION).document(item.id).set(item.to_document())
        logger.info(f"[webhook] Created video document: {item.id}")

    def load_job_prompt(self, job_id: str) -> Optional[str]:
        """Prompt stored by the generation function at dispatch time, if any."""
        snapshot = self.db.collection(self.JOBS_COLLECTION).document(job_id).get()
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("prompt") or None

    def mark_job_succeeded(self, job_id: str, video_id: str, completed_at: int) -> None:
        self.db.collection(self.JOBS_COLLECTION).document(job_id).set(
            {"status": "succeeded", "videoId": video_id, "completedAt": completed_at},
            merge=True,
        )
