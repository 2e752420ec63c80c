# farm_knowledge/vector_search.py

import asyncio
from typing import Any, Dict, List
from .config import Settings
from .errors import log_error, UpstreamUnavailable
from .models import ActivityRecord
from .text_normalizer import normalize


class VectorSearchAdapter:
    """
    Semantic search over record embeddings.

    This channel is an optional enhancement: every failure (embedding service
    down, vector index missing, bad filter, timeout) is logged and turned into
    an empty result, never raised to the caller.
    """

    def __init__(self, store, embeddings, settings: Settings):
        self.store = store
        self.embeddings = embeddings
        self.settings = settings

    def candidate_pool(self, limit: int) -> int:
        return min(limit * self.settings.vector_candidate_multiplier, self.settings.vector_candidate_ceiling)

    async def _search(self, scope: Dict[str, Any], query: str, limit: int) -> List[ActivityRecord]:
        text = normalize(query, self.settings.max_embedding_text_length)
        if not text:
            return []
        vector = await self.embeddings.embed(text, "query", self.settings.embedding_dimensions)
        docs = await self.store.vector_search(scope, vector, self.candidate_pool(limit), limit)
        docs = sorted(docs, key=lambda d: d.get("score", 0.0), reverse=True)[:limit]
        return [ActivityRecord.model_validate(doc) for doc in docs]

    async def search(self, scope: Dict[str, Any], query: str, limit: int) -> List[ActivityRecord]:
        try:
            results = await asyncio.wait_for(
                self._search(scope, query, limit),
                timeout=self.settings.vector_search_timeout_seconds,
            )
        except asyncio.TimeoutError:
            print(f"---VECTOR SEARCH: Timed out after {self.settings.vector_search_timeout_seconds}s, skipping---")
            return []
        except Exception as e:
            error = e if isinstance(e, UpstreamUnavailable) else UpstreamUnavailable(
                f"Vector search unavailable: {type(e).__name__}: {e}"
            )
            log_error(error, {"channel": "vector", "query_length": len(query)})
            return []

        print(f"---VECTOR SEARCH: {len(results)} matches---")
        return results
