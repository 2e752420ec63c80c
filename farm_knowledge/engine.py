# farm_knowledge/engine.py

from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from .activity_store import ActivityStore
from .config import Settings, settings as default_settings
from .embedding_service import EmbeddingService
from .errors import InvalidInput
from .history_review import HistoryReviewer
from .hybrid_search import HybridSearchCoordinator
from .knowledge_pipeline import KnowledgeExtractionPipeline
from .knowledge_search import KnowledgeSearch
from .models import (
    ActivityRecord,
    ActivityRecordInput,
    FusedResult,
    HistoryReview,
    IngestResult,
    KnowledgeSearchResult,
    SearchQuery,
)
from .similarity import SimilarityRecommender

M = TypeVar("M", bound=BaseModel)


def validate(model: Type[M], payload: Any) -> M:
    """Validates a boundary payload, reporting problems as InvalidInput."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInput(f"Invalid {model.__name__}: {problems}") from e


class KnowledgeEngine:
    """
    The API consumed by the conversational front end.
    The store and embedding service are injected so tests can use fakes.
    """

    def __init__(self, store, embeddings, settings: Settings):
        self.store = store
        self.embeddings = embeddings
        self.settings = settings
        self.coordinator = HybridSearchCoordinator(store, embeddings, settings)
        self.pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
        self.similarity = SimilarityRecommender(store, settings.similar_records_limit)
        self.knowledge = KnowledgeSearch(store, settings)
        self.history = HistoryReviewer(store, settings)

    async def search(
        self,
        user_id: str,
        query: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> FusedResult:
        payload = {
            **(filters or {}),
            "user_id": user_id,
            "query": query,
            "limit": limit if limit is not None else self.settings.default_search_limit,
        }
        return await self.coordinator.search(validate(SearchQuery, payload))

    async def ingest(self, user_id: str, activity: Dict[str, Any]) -> IngestResult:
        payload = validate(ActivityRecordInput, {**activity, "user_id": user_id})
        return await self.pipeline.ingest(payload)

    async def find_similar(self, user_id: str, record_id: str, limit: Optional[int] = None) -> List[ActivityRecord]:
        if limit is not None and limit < 1:
            raise InvalidInput("limit must be at least 1")
        return await self.similarity.find_similar(user_id, record_id, limit)

    async def search_knowledge(
        self,
        user_id: str,
        query: str,
        farm_id: Optional[str] = None,
        category: Optional[str] = None,
        min_confidence: Optional[float] = None,
        limit: int = 5,
    ) -> KnowledgeSearchResult:
        if min_confidence is not None and not 0.0 <= min_confidence <= 1.0:
            raise InvalidInput("min_confidence must be within [0, 1]")
        if limit < 1:
            raise InvalidInput("limit must be at least 1")
        return await self.knowledge.search(user_id, query, farm_id, category, min_confidence, limit)

    async def review_history(
        self,
        user_id: str,
        field_id: Optional[str] = None,
        category: Optional[str] = None,
        date_range: Optional[Dict[str, Any]] = None,
        quality: Optional[str] = None,
        limit: Optional[int] = None,
        include_analysis: bool = True,
    ) -> HistoryReview:
        # Reuse SearchQuery validation for the shared filters.
        filters = validate(SearchQuery, {
            "user_id": user_id,
            "query": "",
            "field_id": field_id,
            "category": category,
            "date_range": date_range,
            "quality": quality,
            "limit": limit if limit is not None else self.settings.default_search_limit,
        })
        return await self.history.review(
            user_id,
            field_id=filters.field_id,
            category=filters.category,
            date_range=filters.date_range,
            quality=filters.quality,
            limit=filters.limit,
            include_analysis=include_analysis,
        )

    async def close(self) -> None:
        if hasattr(self.store, "close"):
            await self.store.close()


def create_engine(settings: Optional[Settings] = None) -> KnowledgeEngine:
    """Wires a KnowledgeEngine to MongoDB and the configured embedding provider."""
    settings = settings or default_settings
    store = ActivityStore(settings)
    embeddings = EmbeddingService(settings)
    return KnowledgeEngine(store, embeddings, settings)
