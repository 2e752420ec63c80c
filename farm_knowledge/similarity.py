# farm_knowledge/similarity.py

from typing import Any, Dict, List, Optional
from .errors import NotFound
from .models import ActivityRecord


class SimilarityRecommender:
    """
    Finds earlier records resembling a reference record by attributes alone
    (category plus field, quality or tags). Works without any embeddings.
    """

    def __init__(self, store, default_limit: int = 3):
        self.store = store
        self.default_limit = default_limit

    @staticmethod
    def build_filter(reference: ActivityRecord) -> Dict[str, Any]:
        either: List[Dict[str, Any]] = [
            {"field_id": reference.field_id},
            {"outcome.quality": reference.outcome.quality},
        ]
        if reference.tags:
            either.append({"tags": {"$in": reference.tags}})
        return {
            "user_id": reference.user_id,
            "record_id": {"$ne": reference.record_id},
            "category": reference.category,
            "$or": either,
        }

    async def find_similar(self, user_id: str, record_id: str, limit: Optional[int] = None) -> List[ActivityRecord]:
        doc = await self.store.find_record(user_id, record_id)
        if not doc:
            raise NotFound(f"Reference record {record_id} not found", details={"record_id": record_id})
        reference = ActivityRecord.model_validate(doc)

        docs = await self.store.find_records(
            self.build_filter(reference),
            sort=[("date", -1), ("created_at", -1)],
            limit=limit if limit is not None else self.default_limit,
        )
        print(f"---SIMILARITY: {len(docs)} records similar to {record_id}---")
        return [ActivityRecord.model_validate(d) for d in docs]
