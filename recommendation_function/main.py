"""
Recommendation Cloud Function

Recommends videos by nearest-neighbour search in Pinecone around a user
vector built from the user's swipes.

Endpoints:
  GET  /   - Health check (Pinecone / OpenAI configuration)
  POST /   - Recommendations for {userId}
"""

import os
import sys
import json
import logging
from functools import lru_cache
from typing import Any, Dict, Tuple

import functions_framework
from flask import Request

from google.cloud import firestore, secretmanager
from google.cloud.firestore_v1.base_query import FieldFilter
from pinecone import Pinecone

from user_vector import aggregate_swipe_weights, compute_user_vector, vector_norm

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

PINECONE_INDEX = os.getenv('PINECONE_INDEX', 'tokzic')
VECTOR_DIM = int(os.getenv('VECTOR_DIM', '1536'))
RECOMMENDATION_TOP_K = int(os.getenv('RECOMMENDATION_TOP_K', '10'))

logger.info(f"[recommendation] Pinecone configuration loaded: index={PINECONE_INDEX}")


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
def get_pinecone_index():
    """Pinecone index handle; raises if the API key is missing."""
    api_key = access_secret('PINECONE_API_KEY')
    if not api_key:
        raise RuntimeError("Missing Pinecone API key")
    return Pinecone(api_key=api_key).Index(PINECONE_INDEX)


def try_get_pinecone_index():
    """Index handle or None, logging why initialization failed."""
    try:
        return get_pinecone_index()
    except Exception as e:
        logger.error(f"[recommendation] Failed to initialize Pinecone client: {e}")
        return None


# =============================================================================
# HTTP HELPERS
# =============================================================================

def cors_preflight_response():
    """Return CORS preflight response."""
    headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
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


# =============================================================================
# HANDLERS
# =============================================================================

def health_report() -> Dict[str, Any]:
    index = try_get_pinecone_index()
    return {
        'status': 'healthy',
        'pinecone': {
            'apiKeyPresent': bool(access_secret('PINECONE_API_KEY')),
            'indexName': PINECONE_INDEX,
            'indexInitialized': index is not None,
        },
        'openai': {
            'apiKeyPresent': bool(access_secret('OPENAI_API_KEY')),
        },
    }


def fetch_vectors(index, video_ids) -> Dict[str, Any]:
    """video id -> embedding values for every id the index knows."""
    response = index.fetch(ids=list(video_ids))
    records = getattr(response, 'vectors', None) or {}
    return {video_id: record.values for video_id, record in records.items() if record is not None}


def recommend(user_id: str, db, index, top_k: int = RECOMMENDATION_TOP_K,
              dimensions: int = VECTOR_DIM) -> Tuple[Dict[str, Any], int]:
    """
    Build the user's vector from their swipes and query similar videos.

    Returns:
        (response body, HTTP status)
    """
    if not user_id:
        return {'error': 'Missing userId parameter'}, 400

    logger.info(f"[recommendation] Querying Firestore for user swipes: {user_id}")
    swipe_docs = list(
        db.collection('swipes').where(filter=FieldFilter('userId', '==', user_id)).stream()
    )
    if not swipe_docs:
        logger.warning(f"[recommendation] No swipes found for user {user_id}")
        return {'error': 'No swipes found for user'}, 404

    weights = aggregate_swipe_weights(doc.to_dict() or {} for doc in swipe_docs)
    logger.info(f"[recommendation] Processed {len(swipe_docs)} swipes into {len(weights)} weights")

    if not weights:
        return {'error': 'No valid swipes found for user'}, 404

    vectors = fetch_vectors(index, weights.keys())
    logger.info(f"[recommendation] Fetched {len(vectors)} vectors from Pinecone")
    if not vectors:
        return {'error': 'Failed to fetch video vectors from Pinecone'}, 500

    user_vector, used = compute_user_vector(weights, vectors, dimensions)
    logger.info(f"[recommendation] Computed user vector from {used}/{len(weights)} vectors")
    if used == 0:
        return {'error': 'No valid video embeddings found for user swipes'}, 500

    response = index.query(vector=user_vector.tolist(), top_k=top_k, include_metadata=True)
    recommendations = [match.id for match in (getattr(response, 'matches', None) or [])]
    logger.info(f"[recommendation] Returning {len(recommendations)} recommendations")

    return {
        'recommendations': recommendations,
        'debug': {
            'processedSwipes': len(swipe_docs),
            'validSwipes': used,
            'userVectorNorm': vector_norm(user_vector),
        },
    }, 200


@functions_framework.http
def main(request: Request):
    """HTTP Cloud Function entry point for recommendations."""
    if request.method == 'OPTIONS':
        return cors_preflight_response()

    if request.method == 'GET':
        return json_response(health_report(), 200)

    body = request.get_json(silent=True) or {}
    user_id = body.get('userId') or request.args.get('userId') or ''
    logger.info(f"[recommendation] Received recommendation request for user: {user_id}")

    index = try_get_pinecone_index()
    if index is None:
        return json_response(
            {'error': 'Pinecone is not configured correctly. Missing API key or initialization failed.'},
            500
        )

    try:
        result, status = recommend(
            user_id, get_firestore_client(), index,
            top_k=RECOMMENDATION_TOP_K, dimensions=VECTOR_DIM
        )
        return json_response(result, status)
    except Exception as e:
        logger.error(f"[recommendation] Error in recommendations: {e}", exc_info=True)
        return json_response({'error': str(e)}, 500)


# Local testing
if __name__ == "__main__":
    ENVIRONMENT = 'local'

    class MockRequest:
        method = 'GET'
        args = {}

        def get_json(self, silent=False):
            return {}

    print(main(MockRequest()))
