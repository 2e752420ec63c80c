# farm_knowledge/knowledge_search.py

from typing import Optional
from .config import Settings
from .keyword_search import KeywordSearchAdapter
from .models import KnowledgeSearchResult, SearchHit
from .rank_fusion import reciprocal_rank_fusion


class KnowledgeSearch:
    """Lexical search over a user's accumulated personal knowledge."""

    def __init__(self, store, settings: Settings):
        self.settings = settings
        self.keyword = KeywordSearchAdapter(store, settings)

    async def search(
        self,
        user_id: str,
        query: str,
        farm_id: Optional[str] = None,
        category: Optional[str] = None,
        min_confidence: Optional[float] = None,
        limit: int = 5,
    ) -> KnowledgeSearchResult:
        if min_confidence is None:
            min_confidence = self.settings.min_knowledge_confidence
        limit = min(limit, self.settings.max_search_limit)

        scope = {"user_id": user_id, "confidence": {"$gte": min_confidence}}
        if farm_id:
            scope["farm_id"] = farm_id
        if category:
            scope["category"] = category

        entries = await self.keyword.search(
            scope, query, limit,
            collection="knowledge",
            extra_sort=[("confidence", -1), ("last_used", -1)],
        )
        fused = reciprocal_rank_fusion(entries, [], k=self.settings.rrf_k)[:limit]
        if not fused:
            return KnowledgeSearchResult()

        hits = [SearchHit(item=f.item, method=f.method, score=f.score) for f in fused]
        confidences = [hit.item.confidence for hit in hits]
        categories = list(dict.fromkeys(hit.item.category for hit in hits))
        print(f"---KNOWLEDGE SEARCH: {len(hits)} entries for '{query}'---")
        return KnowledgeSearchResult(
            hits=hits,
            total_found=len(hits),
            avg_confidence=sum(confidences) / len(confidences),
            categories=categories,
        )
