"""
Preference Aggregator

Reads a user's swipe history from Firestore, splits the descriptions of the
swiped videos into liked/disliked lists and asks an OpenAI chat model to
write a prompt for a new video the user is likely to enjoy.
"""

import logging
from typing import Dict, List, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

from generation_models import (
    NotFoundError,
    PreferenceSummary,
    Swipe,
    SwipeDirection,
    UpstreamError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a creative copywriter skilled at generating compelling video descriptions. "
    "Generate a natural language paragraph describing a vertical video that a user would enjoy. "
    "The output should be a single paragraph."
)


def aggregate_weights(swipes: List[Swipe]) -> Dict[str, int]:
    """
    Sum +1 per right swipe and -1 per left swipe for each video id.

    Swipes without a video id or with any other direction are ignored.
    """
    weights: Dict[str, int] = {}
    for swipe in swipes:
        if not swipe.is_valid:
            continue
        weight = 1 if swipe.normalized_direction == SwipeDirection.RIGHT else -1
        weights[swipe.video_id] = weights.get(swipe.video_id, 0) + weight
    return weights


def partition_descriptions(
    swipes: List[Swipe],
    descriptions: Dict[str, str]
) -> Tuple[List[str], List[str]]:
    """
    Split descriptions per swipe, not per net weight.

    A video swiped right twice and left once lands in the liked list twice
    and in the disliked list once. Videos without a description are skipped.

    Args:
        swipes: Valid swipes, oldest first
        descriptions: video id -> description

    Returns:
        Tuple of (liked, disliked) description lists in swipe order
    """
    liked: List[str] = []
    disliked: List[str] = []

    for swipe in swipes:
        description = descriptions.get(swipe.video_id)
        if not description:
            continue
        if swipe.normalized_direction == SwipeDirection.RIGHT:
            liked.append(description)
        else:
            disliked.append(description)

    return liked, disliked


def build_user_message(liked: List[str], disliked: List[str]) -> str:
    return (
        "Liked video descriptions:\n"
        + "\n".join(liked)
        + "\n\nDisliked video descriptions:\n"
        + "\n".join(disliked)
        + "\n\nGenerate a compelling video description:"
    )


class PreferenceAggregator:
    """
    Turns a user's swipe history into a single-paragraph video prompt.
    """

    SWIPES_COLLECTION = "swipes"
    VIDEOS_COLLECTION = "videos"
    MAX_TOKENS = 150
    TEMPERATURE = 0.7

    def __init__(self, firestore_client, openai_client, model: str = "gpt-3.5-turbo",
                 max_descriptions: int = 50):
        """
        Args:
            firestore_client: google.cloud.firestore.Client
            openai_client: openai.OpenAI
            model: Chat completion model name
            max_descriptions: Most recent descriptions kept per list
        """
        self.db = firestore_client
        self.openai = openai_client
        self.model = model
        self.max_descriptions = max_descriptions

    def load_swipes(self, user_id: str) -> List[Swipe]:
        """Query every swipe document written by the user."""
        logger.info(f"[generation] Querying Firestore for user swipes: {user_id}")
        query = self.db.collection(self.SWIPES_COLLECTION).where(
            filter=FieldFilter("userId", "==", user_id)
        )
        return [Swipe.model_validate(doc.to_dict() or {}) for doc in query.stream()]

    def fetch_descriptions(self, video_ids: List[str]) -> Dict[str, str]:
        """
        Batch-read the video documents in a single get_all call.

        Missing documents and documents without a description are left out.
        """
        logger.info(f"[generation] Fetching video descriptions for {len(video_ids)} videos")
        refs = [self.db.collection(self.VIDEOS_COLLECTION).document(video_id) for video_id in video_ids]

        descriptions: Dict[str, str] = {}
        for snapshot in self.db.get_all(refs):
            if not snapshot.exists:
                continue
            description = (snapshot.to_dict() or {}).get("description")
            if description:
                descriptions[snapshot.id] = description
        return descriptions

    def summarize(self, user_id: str) -> PreferenceSummary:
        """
        Aggregate the user's swipes into liked/disliked description lists.

        Raises:
            NotFoundError: If the user has no swipes, or none are valid
        """
        swipes = self.load_swipes(user_id)
        if not swipes:
            logger.warning(f"[generation] No swipes found for user {user_id}")
            raise NotFoundError("No swipes found for user")

        valid_swipes = sorted(
            (swipe for swipe in swipes if swipe.is_valid),
            key=lambda swipe: swipe.sort_timestamp
        )
        weights = aggregate_weights(valid_swipes)
        if not weights:
            logger.warning(f"[generation] No valid swipes for user {user_id}")
            raise NotFoundError("No valid swipes found for user")

        descriptions = self.fetch_descriptions(list(weights.keys()))
        liked, disliked = partition_descriptions(valid_swipes, descriptions)

        logger.info(
            f"[generation] Processed video descriptions: "
            f"{len(liked)} liked, {len(disliked)} disliked"
        )

        return PreferenceSummary(
            user_id=user_id,
            processed_swipes=len(swipes),
            valid_swipes=len(valid_swipes),
            weights=weights,
            liked_descriptions=liked,
            disliked_descriptions=disliked,
        )

    def recent(self, descriptions: List[str]) -> List[str]:
        """Keep the tail (most recent) of a description list."""
        if len(descriptions) <= self.max_descriptions:
            return list(descriptions)
        return descriptions[-self.max_descriptions:]

    def generate_prompt(self, liked: List[str], disliked: List[str]) -> str:
        """
        Ask the chat model for a single compelling paragraph.

        Raises:
            UpstreamError: If the model returns no content
        """
        recent_liked = self.recent(liked)
        recent_disliked = self.recent(disliked)

        logger.info(
            f"[generation] Generating video prompt from {len(recent_liked)} liked "
            f"and {len(recent_disliked)} disliked descriptions"
        )

        completion = self.openai.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_message(recent_liked, recent_disliked)},
            ],
            max_tokens=self.MAX_TOKENS,
            temperature=self.TEMPERATURE,
        )

        content = None
        if completion.choices:
            content = completion.choices[0].message.content
        prompt = (content or "").strip()
        if not prompt:
            raise UpstreamError("OpenAI did not return a valid completion")

        logger.info(f"[generation] Generated prompt: {prompt}")
        return prompt
