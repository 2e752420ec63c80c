# farm_knowledge/hybrid_search.py

import asyncio
from datetime import datetime, time
from typing import Any, Dict, Optional
from .config import Settings
from .errors import EngineError, log_error
from .keyword_search import KeywordSearchAdapter
from .models import FusedResult, SearchHit, SearchQuery
from .rank_fusion import reciprocal_rank_fusion, select_search_method
from .vector_search import VectorSearchAdapter


def build_scope_filter(
    user_id: str,
    field_id: Optional[str] = None,
    category: Optional[str] = None,
    date_range=None,
    quality: Optional[str] = None,
) -> Dict[str, Any]:
    """The owner/field/category/date/quality restriction shared by both channels."""
    scope: Dict[str, Any] = {"user_id": user_id}
    if field_id:
        scope["field_id"] = field_id
    if category:
        scope["category"] = category
    if date_range:
        scope["date"] = {
            "$gte": datetime.combine(date_range.start, time.min),
            "$lte": datetime.combine(date_range.end, time.max),
        }
    if quality:
        scope["outcome.quality"] = quality
    return scope


class HybridSearchCoordinator:
    """Runs keyword and vector search side by side and fuses them with RRF."""

    def __init__(self, store, embeddings, settings: Settings):
        self.settings = settings
        self.keyword = KeywordSearchAdapter(store, settings)
        self.vector = VectorSearchAdapter(store, embeddings, settings)

    async def _keyword_channel(self, scope, query: str, limit: int, degraded: list) -> list:
        # Keyword errors are loud at the adapter; here they only cost this channel.
        try:
            return await asyncio.wait_for(
                self.keyword.search(scope, query, limit),
                timeout=self.settings.keyword_search_timeout_seconds,
            )
        except asyncio.TimeoutError:
            print(f"---HYBRID SEARCH: Keyword search timed out after {self.settings.keyword_search_timeout_seconds}s---")
            degraded.append("keyword")
            return []
        except EngineError as e:
            log_error(e, {"channel": "keyword"})
            degraded.append("keyword")
            return []

    async def search(self, query: SearchQuery) -> FusedResult:
        limit = min(query.limit, self.settings.max_search_limit)
        scope = build_scope_filter(
            query.user_id, query.field_id, query.category, query.date_range, query.quality
        )
        print(f"---HYBRID SEARCH: '{query.query}' for user {query.user_id} (limit {limit})---")

        degraded: list = []
        keyword_results, vector_results = await asyncio.gather(
            self._keyword_channel(scope, query.query, limit, degraded),
            self.vector.search(scope, query.query, limit),
        )

        method = select_search_method(keyword_results, vector_results)
        if method is None:
            print("---HYBRID SEARCH: No matches---")
            return FusedResult(degraded=degraded)

        fused = reciprocal_rank_fusion(keyword_results, vector_results, k=self.settings.rrf_k)[:limit]
        hits = [SearchHit(item=f.item, method=f.method, score=f.score) for f in fused]
        print(f"---HYBRID SEARCH: {len(hits)} results via {method} search---")
        return FusedResult(hits=hits, method=method, total_found=len(hits), degraded=degraded)
