# farm_knowledge/knowledge_pipeline.py

import asyncio
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from .config import Settings
from .errors import UpstreamUnavailable, log_error
from .models import (
    ActivityRecord,
    ActivityRecordInput,
    IngestResult,
    PersonalKnowledgeEntry,
    RelatedRecord,
    POSITIVE_QUALITIES,
)
from .similarity import SimilarityRecommender
from .text_normalizer import normalize

POOR_WEATHER_WORDS = ("rain", "storm", "snow", "hail", "drizzle", "thunder", "typhoon", "雨")

KNOWLEDGE_CONFIDENCE = {
    "excellent": 0.9,
    "good": 0.7,
}


def build_search_text(payload: ActivityRecordInput) -> str:
    parts = [
        payload.description,
        payload.notes or "",
        " ".join(payload.outcome.issues),
        " ".join(payload.outcome.improvements),
        " ".join(f"{m.name} {m.amount}{m.unit}".strip() for m in payload.materials),
    ]
    return " ".join(part.strip() for part in parts if part and part.strip())


def build_tags(payload: ActivityRecordInput) -> List[str]:
    candidates = [
        payload.category,
        payload.weather.condition if payload.weather else "",
        payload.outcome.quality,
        payload.outcome.effectiveness or "",
        *[m.name for m in payload.materials],
    ]
    tags = []
    for tag in candidates:
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def is_poor_weather(condition: str) -> bool:
    condition = condition.lower()
    return any(word in condition for word in POOR_WEATHER_WORDS)


def derive_learnings(payload: ActivityRecordInput) -> List[str]:
    outcome = payload.outcome
    learnings = []
    if outcome.quality in POSITIVE_QUALITIES:
        learnings.append(f"{payload.category} success: result rated {outcome.quality}")
        if payload.weather:
            learnings.append(f"Working in '{payload.weather.condition}' weather was effective")
    else:
        learnings.append(f"{payload.category} work needs improvement (result: {outcome.quality})")
        if outcome.issues:
            learnings.append(f"Issues: {', '.join(outcome.issues)}")
    return learnings


def derive_recommendations(payload: ActivityRecordInput) -> List[str]:
    recommendations = []
    if payload.weather and is_poor_weather(payload.weather.condition):
        recommendations.append(
            f"Work done in '{payload.weather.condition}' weather may have limited effect; prefer a dry day next time"
        )
    if payload.materials:
        recommendations.append(f"Track how '{payload.materials[0].name}' performs in follow-up records")
    recommendations.extend(f"Improvement: {item}" for item in payload.outcome.improvements)
    return recommendations


class KnowledgeExtractionPipeline:
    """
    Ingests a new activity record and accumulates personal knowledge from it.
    A missing embedding never blocks ingestion; failed writes always do.
    """

    def __init__(self, store, embeddings, settings: Settings):
        self.store = store
        self.embeddings = embeddings
        self.settings = settings
        self.similarity = SimilarityRecommender(store, settings.similar_records_limit)

    async def _embed(self, text: str, record_id: str) -> Optional[List[float]]:
        normalized = normalize(text, self.settings.max_embedding_text_length)
        if not normalized:
            print(f"---KNOWLEDGE PIPELINE: Nothing embeddable in record {record_id}, saving without vector---")
            return None
        try:
            return await asyncio.wait_for(
                self.embeddings.embed(normalized, "document", self.settings.embedding_dimensions),
                timeout=self.settings.embedding_timeout_seconds,
            )
        except asyncio.TimeoutError:
            print(f"---KNOWLEDGE PIPELINE: Embedding timed out after {self.settings.embedding_timeout_seconds}s---")
        except Exception as e:
            error = e if isinstance(e, UpstreamUnavailable) else UpstreamUnavailable(
                f"Document embedding failed: {type(e).__name__}: {e}"
            )
            log_error(error, {"record_id": record_id, "stage": "embedding"})
        print(f"---KNOWLEDGE PIPELINE: Saving record {record_id} without vector---")
        return None

    async def _farm_id(self, payload: ActivityRecordInput) -> str:
        if payload.farm_id:
            return payload.farm_id
        farm_id = await self.store.resolve_farm_id(payload.field_id)
        return farm_id or f"farm_{payload.user_id[-4:]}"

    async def ingest(self, payload: ActivityRecordInput) -> IngestResult:
        record_id = payload.record_id or f"record_{uuid.uuid4().hex}"
        print(f"---KNOWLEDGE PIPELINE: Ingesting {payload.category} record {record_id}---")

        search_text = build_search_text(payload)
        tags = build_tags(payload)
        embedding = await self._embed(search_text, record_id)

        record = ActivityRecord(
            **payload.model_dump(exclude={"record_id"}),
            record_id=record_id,
            search_text=search_text,
            tags=tags,
            embedding=embedding,
            embedding_model=self.settings.embedding_model if embedding else None,
            embedding_dimensions=len(embedding) if embedding else None,
            embedding_generated_at=datetime.now(timezone.utc) if embedding else None,
        )
        await self.store.insert_record(record)

        learnings = derive_learnings(payload)
        recommendations = derive_recommendations(payload)

        related = await self.similarity.find_similar(payload.user_id, record_id)
        related_records = [
            RelatedRecord(
                record_id=r.record_id,
                date=r.date.isoformat(),
                similarity=f"same {r.category} activity",
            )
            for r in related
        ]

        knowledge_id = None
        if payload.outcome.quality in POSITIVE_QUALITIES:
            entry = PersonalKnowledgeEntry(
                knowledge_id=f"knowledge_{uuid.uuid4().hex}",
                farm_id=await self._farm_id(payload),
                user_id=payload.user_id,
                title=f"{payload.category} success",
                content=f"{payload.description} - result: {payload.outcome.quality}",
                category="experience",
                related_records=[record_id],
                confidence=KNOWLEDGE_CONFIDENCE[payload.outcome.quality],
                frequency=1,
                tags=tags[: self.settings.knowledge_tag_limit],
            )
            await self.store.insert_knowledge(entry)
            knowledge_id = entry.knowledge_id
            print(f"---KNOWLEDGE PIPELINE: Learned '{entry.title}' (confidence {entry.confidence})---")

        print(f"---KNOWLEDGE PIPELINE: {len(learnings)} learnings, {len(related_records)} related records---")
        return IngestResult(
            record_id=record_id,
            status="success",
            message=f"Recorded {payload.category} work on {payload.date.isoformat()}. "
                    "It is now part of your farm's experience and will inform future advice.",
            learnings=learnings,
            recommendations=recommendations,
            related_records=related_records,
            knowledge_id=knowledge_id,
            embedded=embedding is not None,
        )
