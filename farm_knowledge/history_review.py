# farm_knowledge/history_review.py

from typing import List, Optional
from .config import Settings
from .errors import EngineError, log_error
from .hybrid_search import build_scope_filter
from .knowledge_search import KnowledgeSearch
from .models import ActivityRecord, DateRange, HistoryAnalysis, HistoryReview, POSITIVE_QUALITIES

DEFAULT_RECOMMENDATIONS = [
    "Repeat the conditions of your past successful work where you can",
    "Keep recording your daily work; advice becomes more specific to your farm as records accumulate",
]


def analyse(records: List[ActivityRecord], category: Optional[str] = None) -> HistoryAnalysis:
    if not records:
        return HistoryAnalysis(
            success_rate=0,
            common_patterns=["Not enough records to analyse yet"],
        )

    successes = [r for r in records if r.outcome.quality in POSITIVE_QUALITIES]
    success_rate = round(len(successes) / len(records) * 100)

    if len(records) > 2:
        common_patterns = [
            f"{category or 'Overall'} success rate is {success_rate}%",
            "More detailed patterns will appear as more records accumulate",
        ]
    else:
        common_patterns = ["Not enough records to analyse yet"]

    best_practices = [
        f"{r.category}: {r.description[:30]}..."
        for r in records if r.outcome.quality == "excellent"
    ][:3]
    improvement_areas = [
        f"Improve {r.category} work"
        for r in records if r.outcome.quality in ("fair", "poor")
    ][:3]

    return HistoryAnalysis(
        success_rate=success_rate,
        common_patterns=common_patterns,
        best_practices=best_practices,
        improvement_areas=improvement_areas,
    )


class HistoryReviewer:
    """Lists a user's past activity with a summary and knowledge-based advice."""

    def __init__(self, store, settings: Settings):
        self.store = store
        self.settings = settings
        self.knowledge = KnowledgeSearch(store, settings)

    async def review(
        self,
        user_id: str,
        field_id: Optional[str] = None,
        category: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        quality: Optional[str] = None,
        limit: Optional[int] = None,
        include_analysis: bool = True,
    ) -> HistoryReview:
        if limit is None:
            limit = self.settings.default_search_limit
        limit = min(limit, self.settings.max_search_limit)
        scope = build_scope_filter(user_id, field_id, category, date_range, quality)
        docs = await self.store.find_records(scope, sort=[("date", -1), ("created_at", -1)], limit=limit)
        records = [ActivityRecord.model_validate(d) for d in docs]

        try:
            farm_id = await self.store.resolve_farm_id(field_id) if field_id else None
            knowledge = await self.knowledge.search(
                user_id,
                f"{category} success" if category else "success",
                farm_id=farm_id,
                limit=3,
            )
            recommendations = [hit.item.content[:50] + "..." for hit in knowledge.hits]
        except EngineError as e:
            log_error(e, {"user_id": user_id, "stage": "knowledge recommendations"})
            recommendations = []

        print(f"---HISTORY REVIEW: {len(records)} records for user {user_id}---")
        return HistoryReview(
            user_id=user_id,
            total_records=len(records),
            records=records,
            analysis=analyse(records, category) if include_analysis else None,
            recommendations=recommendations or list(DEFAULT_RECOMMENDATIONS),
        )
