"""
User Vector

Aggregates a user's swipes into per-video weights and combines the stored
video embeddings into a single weighted user vector for nearest-neighbour
search.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

VALID_DIRECTIONS = {"right": 1, "left": -1}


def aggregate_swipe_weights(swipes: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """
    Sum +1 per right swipe and -1 per left swipe for each videoId.

    Swipes without a string videoId or with any other direction are ignored.
    """
    weights: Dict[str, int] = {}
    for swipe in swipes:
        video_id = swipe.get("videoId")
        direction = swipe.get("direction")
        if not isinstance(video_id, str) or not isinstance(direction, str):
            continue
        direction = direction.lower()
        if not video_id or direction not in VALID_DIRECTIONS:
            continue
        weights[video_id] = weights.get(video_id, 0) + VALID_DIRECTIONS[direction]
    return weights


def compute_user_vector(
    weights: Mapping[str, int],
    vectors: Mapping[str, Optional[Iterable[float]]],
    dimensions: int
) -> Tuple[np.ndarray, int]:
    """
    Weighted sum of the fetched video vectors.

    Args:
        weights: video id -> swipe weight
        vectors: video id -> embedding values (missing ids are skipped)
        dimensions: Expected embedding dimensionality

    Returns:
        Tuple of (user vector, number of vectors used)
    """
    user_vector = np.zeros(dimensions, dtype=float)
    used = 0

    for video_id, weight in weights.items():
        values = vectors.get(video_id)
        if values is None:
            continue
        array = np.asarray(list(values), dtype=float)
        if array.shape != (dimensions,):
            logger.warning(
                f"[recommendation] Skipping {video_id}: {array.shape[0]} dims, expected {dimensions}"
            )
            continue
        user_vector += array * weight
        used += 1

    return user_vector, used


def vector_norm(vector: np.ndarray) -> float:
    return float(np.linalg.norm(vector))
