"""
Vector Indexer

Embeds a generated video's prompt with OpenAI and upserts it into Pinecone.
Indexing is best-effort: every failure is logged and reported through a
VectorUpsertResult, never raised.
"""

import logging
import time
from typing import Callable, List, Optional

from webhook_models import VectorRecord, VectorUpsertResult

logger = logging.getLogger(__name__)


class EmbeddingDimensionError(ValueError):
    pass


class VectorIndexer:
    """Writes prompt embeddings of generated videos into the vector index."""

    MODEL = "text-embedding-3-small"
    DIMENSIONS = 1536

    def __init__(self, openai_client, index_provider: Callable[[], object],
                 model: str = MODEL, dimensions: int = DIMENSIONS):
        """
        Args:
            openai_client: openai.OpenAI
            index_provider: Returns the Pinecone index; called lazily so a
                missing key or unreachable index fails inside the indexing step
            model: Embedding model
            dimensions: Dimensionality the index was created with
        """
        self.openai = openai_client
        self.index_provider = index_provider
        self.model = model
        self.dimensions = dimensions

    def embed(self, text: str) -> List[float]:
        """
        Embed text at the configured dimensionality.

        Raises:
            EmbeddingDimensionError: If the returned vector has the wrong length
        """
        response = self.openai.embeddings.create(
            model=self.model,
            input=text,
            dimensions=self.dimensions,
        )
        embedding = list(response.data[0].embedding)

        if len(embedding) != self.dimensions:
            raise EmbeddingDimensionError(
                f"Embedding has {len(embedding)} dimensions, index expects {self.dimensions}"
            )

        logger.info(f"[webhook] Generated embedding: text_length={len(text)}, dims={len(embedding)}")
        return embedding

    def build_record(self, vector_id: str, description: str, values: List[float],
                     timestamp: Optional[int] = None) -> VectorRecord:
        return VectorRecord(
            id=vector_id,
            values=values,
            metadata={
                "description": description,
                "isGenerated": True,
                "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
            },
        )

    def index_generated_video(self, vector_id: str, description: str) -> VectorUpsertResult:
        """Embed and upsert; returns the outcome instead of raising."""
        try:
            index = self.index_provider()
            if index is None:
                raise RuntimeError("Pinecone index not initialized")

            record = self.build_record(vector_id, description, self.embed(description))
            index.upsert(vectors=[record.to_pinecone()])

            logger.info(f"[webhook] Updated Pinecone index: {vector_id}")
            return VectorUpsertResult(success=True, vector_id=vector_id)

        except Exception as e:
            logger.error(f"[webhook] Failed to update Pinecone index for {vector_id}: {e}", exc_info=True)
            return VectorUpsertResult(success=False, vector_id=vector_id, error=str(e))
