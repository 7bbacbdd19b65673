"""
Generation Webhook Cloud Function

Receives Replicate's completion callback for predictions started by
generation_function.

Flow (succeeded callbacks only):
1. Validate the output URL
2. Download the video (100MB ceiling)
3. Upload to Cloud Storage under generated_videos/{id}.mp4
4. Write the videos/{id}.mp4 catalog document
5. Embed the prompt and upsert it into Pinecone (best-effort)

Every other status is acknowledged with 200 and no side effects.
"""

import os
import sys
import json
import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict

import functions_framework
from flask import Request

from google.cloud import firestore, secretmanager, storage
from openai import OpenAI
from pinecone import Pinecone

from webhook_models import PipelineError
from completion_handler import CompletionHandler, acknowledge, parse_callback
from video_publisher import VideoPublisher
from vector_indexer import VectorIndexer

# Logging Configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True
)
logger = logging.getLogger(__name__)

# Environment Configuration
ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')
PROJECT_ID = os.getenv('GOOGLE_CLOUD_PROJECT', 'tokzic-mobile')
FIRESTORE_DATABASE = os.getenv('FIRESTORE_DATABASE', '(default)')
STORAGE_BUCKET_NAME = os.getenv('STORAGE_BUCKET_NAME', 'tokzic-mobile.firebasestorage.app')
GENERATED_VIDEOS_PREFIX = os.getenv('GENERATED_VIDEOS_PREFIX', 'generated_videos/')

OPENAI_EMBEDDING_MODEL = os.getenv('OPENAI_EMBEDDING_MODEL', 'text-embedding-3-small')
PINECONE_INDEX = os.getenv('PINECONE_INDEX', 'tokzic')
VECTOR_DIM = int(os.getenv('VECTOR_DIM', '1536'))
MAX_VIDEO_SIZE_MB = int(os.getenv('MAX_VIDEO_SIZE_MB', '100'))


# =============================================================================
# CLIENTS
# =============================================================================

@lru_cache(maxsize=None)
def get_secret_client():
    return secretmanager.SecretManagerServiceClient()


def access_secret(secret_id: str, version_id: str = "latest") -> str:
    """Access a secret from Google Cloud Secret Manager."""
    if ENVIRONMENT == 'local':
        return os.getenv(secret_id, '').strip()

    try:
        name = f"projects/{PROJECT_ID}/secrets/{secret_id}/versions/{version_id}"
        response = get_secret_client().access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8").strip()
    except Exception as e:
        logger.error(f"Error accessing secret {secret_id}: {e}")
        return ''


@lru_cache(maxsize=None)
def get_firestore_client() -> firestore.Client:
    return firestore.Client(project=PROJECT_ID, database=FIRESTORE_DATABASE)


@lru_cache(maxsize=None)
def get_storage_client() -> storage.Client:
    return storage.Client(project=PROJECT_ID)


@lru_cache(maxsize=None)
def get_openai_client() -> OpenAI:
    return OpenAI(api_key=access_secret('OPENAI_API_KEY'))


@lru_cache(maxsize=None)
def get_pinecone_index():
    """Pinecone index handle; raises if the API key is missing."""
    api_key = access_secret('PINECONE_API_KEY')
    if not api_key:
        raise RuntimeError("Missing Pinecone API key")

    index = Pinecone(api_key=api_key).Index(PINECONE_INDEX)
    logger.info(f"[webhook] Pinecone client initialized for index {PINECONE_INDEX}")
    return index


# =============================================================================
# HTTP HELPERS
# =============================================================================

def cors_preflight_response():
    """Return CORS preflight response."""
    headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'POST, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type',
        'Access-Control-Max-Age': '3600'
    }
    return ('', 204, headers)


def cors_headers() -> Dict[str, str]:
    """Return CORS headers for responses."""
    return {
        'Access-Control-Allow-Origin': '*',
        'Content-Type': 'application/json'
    }


def json_response(data: Any, status: int = 200):
    return (json.dumps(data, ensure_ascii=False), status, cors_headers())


def error_response(message: str, status: int = 500):
    return json_response({'error': message}, status)


def extract_payload(request: Request) -> Dict[str, Any]:
    """Callback body with the `prompt` query parameter merged in."""
    payload = dict(request.get_json(silent=True) or {})
    query_prompt = request.args.get('prompt')
    if query_prompt and not payload.get('prompt'):
        payload['prompt'] = query_prompt
    return payload


def build_handler() -> CompletionHandler:
    publisher = VideoPublisher(
        storage_client=get_storage_client(),
        firestore_client=get_firestore_client(),
        bucket_name=STORAGE_BUCKET_NAME,
        prefix=GENERATED_VIDEOS_PREFIX,
    )
    indexer = VectorIndexer(
        openai_client=get_openai_client(),
        index_provider=get_pinecone_index,
        model=OPENAI_EMBEDDING_MODEL,
        dimensions=VECTOR_DIM,
    )
    return CompletionHandler(
        publisher=publisher,
        indexer=indexer,
        max_bytes=MAX_VIDEO_SIZE_MB * 1024 * 1024,
    )


@functions_framework.http
def main(request: Request):
    """HTTP Cloud Function entry point for Replicate callbacks."""
    if request.method == 'OPTIONS':
        return cors_preflight_response()

    payload = extract_payload(request)
    logger.info(
        f"[webhook] Received Replicate callback: id={payload.get('id')}, "
        f"status={payload.get('status')}"
    )

    try:
        callback = parse_callback(payload)

        # Acknowledged statuses need no storage or model clients
        response = acknowledge(callback)
        if response is None:
            response = asyncio.run(build_handler().persist(callback))

        body, status = response
        return json_response(body, status)

    except PipelineError as e:
        logger.error(f"[webhook] {e.__class__.__name__}: {e}")
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error(f"[webhook] Error in webhook processing: {e}", exc_info=True)
        return error_response(str(e), 500)


# Local testing
if __name__ == "__main__":
    ENVIRONMENT = 'local'

    class MockRequest:
        method = 'POST'
        args = {'prompt': 'A slow drone shot over a misty pine forest at sunrise'}

        def get_json(self, silent=False):
            return {'id': 'local-test', 'status': 'starting'}

    print(main(MockRequest()))
