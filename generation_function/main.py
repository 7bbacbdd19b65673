"""
Generation Cloud Function

Synthesizes a video prompt from a user's swipe history and starts video
generation on Replicate. The finished video arrives later through the
generation_webhook_function.

Flow:
1. Read the user's swipes from Firestore
2. Batch-read the swiped videos and split descriptions into liked/disliked
3. Ask OpenAI for a single-paragraph video prompt
4. Create a Replicate prediction with a webhook back to generation_webhook
5. Respond immediately with the prediction handle and debug counters
"""

import os
import sys
import json
import logging
from functools import lru_cache
from typing import Any, Dict

import functions_framework
from flask import Request

from google.cloud import firestore, secretmanager
from openai import OpenAI
import replicate

from generation_models import BadRequestError, PipelineError
from preference_aggregator import PreferenceAggregator
from generation_dispatcher import GenerationDispatcher

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

OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-3.5-turbo')
MAX_DESCRIPTIONS = int(os.getenv('MAX_DESCRIPTIONS', '50'))
VIDEO_MODEL = os.getenv('VIDEO_MODEL', 'luma/ray')
VIDEO_ASPECT_RATIO = os.getenv('VIDEO_ASPECT_RATIO', '3:4')

WEBHOOK_BASE_URL = os.getenv(
    'WEBHOOK_BASE_URL',
    f"https://us-central1-{PROJECT_ID}.cloudfunctions.net"
)
WEBHOOK_FUNCTION_NAME = os.getenv('WEBHOOK_FUNCTION_NAME', 'generation_webhook')


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
def get_openai_client() -> OpenAI:
    return OpenAI(api_key=access_secret('OPENAI_API_KEY'))


@lru_cache(maxsize=None)
def get_replicate_client() -> replicate.Client:
    return replicate.Client(api_token=access_secret('REPLICATE_API_KEY'))


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


def extract_user_id(request: Request) -> str:
    """userId from the JSON body, falling back to the query string."""
    body = request.get_json(silent=True) or {}
    return body.get('userId') or request.args.get('userId') or ''


# =============================================================================
# PIPELINE
# =============================================================================

def run_generation(user_id: str, aggregator: PreferenceAggregator,
                   dispatcher: GenerationDispatcher) -> Dict[str, Any]:
    """
    Aggregate preferences, synthesize a prompt and dispatch generation.

    Raises:
        BadRequestError: If user_id is empty
        NotFoundError: If the user has no (valid) swipes
        UpstreamError: If OpenAI or Replicate return nothing usable
    """
    if not user_id:
        raise BadRequestError("Missing userId parameter")

    summary = aggregator.summarize(user_id)
    prompt = aggregator.generate_prompt(summary.liked_descriptions, summary.disliked_descriptions)
    job = dispatcher.dispatch(prompt, user_id)

    return {
        'message': 'Video generation started',
        'prediction': {'id': job.id, 'status': job.status},
        'debug': summary.debug_counters(),
    }


@functions_framework.http
def main(request: Request):
    """HTTP Cloud Function entry point for video generation."""
    if request.method == 'OPTIONS':
        return cors_preflight_response()

    logger.info("[generation] Received generation request")
    logger.info(
        f"[generation] Configuration: model={OPENAI_MODEL}, video_model={VIDEO_MODEL}, "
        f"has_openai_key={bool(access_secret('OPENAI_API_KEY'))}, "
        f"has_replicate_key={bool(access_secret('REPLICATE_API_KEY'))}"
    )

    user_id = extract_user_id(request)
    if not user_id:
        logger.warning("[generation] Missing userId in request")
        return error_response("Missing userId parameter", 400)

    try:
        aggregator = PreferenceAggregator(
            firestore_client=get_firestore_client(),
            openai_client=get_openai_client(),
            model=OPENAI_MODEL,
            max_descriptions=MAX_DESCRIPTIONS,
        )
        dispatcher = GenerationDispatcher(
            replicate_client=get_replicate_client(),
            firestore_client=get_firestore_client(),
            webhook_base_url=WEBHOOK_BASE_URL,
            webhook_function_name=WEBHOOK_FUNCTION_NAME,
            model=VIDEO_MODEL,
            aspect_ratio=VIDEO_ASPECT_RATIO,
        )
        result = run_generation(user_id, aggregator, dispatcher)
        return json_response(result, 200)

    except PipelineError as e:
        logger.warning(f"[generation] {e.__class__.__name__}: {e}")
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error(f"[generation] Error in generation: {e}", exc_info=True)
        return error_response(str(e), 500)


# Local testing
if __name__ == "__main__":
    ENVIRONMENT = 'local'

    class MockRequest:
        method = 'POST'
        args = {'userId': os.getenv('TEST_USER_ID', 'test-user')}

        def get_json(self, silent=False):
            return {}

    print(main(MockRequest()))
