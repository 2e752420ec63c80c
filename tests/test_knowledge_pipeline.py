import asyncio
from datetime import date
import pytest
from farm_knowledge.config import Settings
from farm_knowledge.errors import PersistenceFailure
from farm_knowledge.knowledge_pipeline import (
    KnowledgeExtractionPipeline,
    build_search_text,
    build_tags,
    is_poor_weather,
)
from farm_knowledge.models import ActivityRecordInput
from conftest import DIMS, FakeEmbeddings, activity_payload, make_record


def _input(**overrides):
    return ActivityRecordInput(**activity_payload(user_id="user_0001", **overrides))


def test_search_text_and_tags():
    payload = _input(outcome={"quality": "good", "issues": ["aphids returned"], "improvements": ["spray earlier"]})
    text = build_search_text(payload)
    assert text.startswith("Sprayed copper fungicide on tomatoes")
    assert "Good coverage on lower leaves" in text
    assert "aphids returned" in text
    assert "spray earlier" in text
    assert "copper fungicide 500ml" in text

    assert build_tags(payload) == ["pest-control", "cloudy", "good", "copper fungicide"]


def test_poor_weather_detection():
    assert is_poor_weather("Light Rain")
    assert is_poor_weather("thunderstorm")
    assert is_poor_weather("小雨")
    assert not is_poor_weather("sunny")


def test_ingest_excellent_record_creates_knowledge(store, embeddings, settings):
    pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
    result = asyncio.run(pipeline.ingest(_input()))

    assert result.status == "success"
    assert result.embedded is True
    assert result.record_id.startswith("record_")
    assert "pest-control success: result rated excellent" in result.learnings
    assert "Working in 'cloudy' weather was effective" in result.learnings
    assert result.recommendations == ["Track how 'copper fungicide' performs in follow-up records"]

    stored = store.records[0]
    assert stored["record_id"] == result.record_id
    assert len(stored["embedding"]) == DIMS
    assert stored["embedding_dimensions"] == DIMS
    assert stored["embedding_model"] == "fake-embedding"
    assert embeddings.calls[0][1] == "document"

    assert len(store.knowledge) == 1
    entry = store.knowledge[0]
    assert entry["knowledge_id"] == result.knowledge_id
    assert entry["confidence"] == 0.9
    assert entry["category"] == "experience"
    assert entry["related_records"] == [result.record_id]
    assert entry["farm_id"] == "farm_0001"
    assert entry["title"] == "pest-control success"
    assert len(entry["tags"]) <= settings.knowledge_tag_limit


def test_ingest_good_record_confidence_and_farm_lookup(store, embeddings, settings):
    store.fields["field_a"] = "farm_hokkaido"
    pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
    asyncio.run(pipeline.ingest(_input(outcome={"quality": "good"})))
    assert store.knowledge[0]["confidence"] == 0.7
    assert store.knowledge[0]["farm_id"] == "farm_hokkaido"


def test_ingest_poor_record_learns_nothing(store, embeddings, settings):
    pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
    result = asyncio.run(pipeline.ingest(_input(
        weather={"condition": "light rain"},
        outcome={
            "quality": "poor",
            "issues": ["uneven spray", "nozzle clogged"],
            "improvements": ["clean the nozzle first"],
        },
    )))

    assert store.knowledge == []
    assert result.knowledge_id is None
    assert result.learnings == [
        "pest-control work needs improvement (result: poor)",
        "Issues: uneven spray, nozzle clogged",
    ]
    assert any("light rain" in r for r in result.recommendations)
    assert "Improvement: clean the nozzle first" in result.recommendations


def test_ingest_links_related_records(store, embeddings, settings):
    store.add_record(make_record("earlier", date=date(2024, 7, 1)))
    store.add_record(make_record("harvest", category="harvest"))
    pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
    result = asyncio.run(pipeline.ingest(_input()))

    assert [r.record_id for r in result.related_records] == ["earlier"]
    assert result.related_records[0].date == "2024-07-01"
    assert result.related_records[0].similarity == "same pest-control activity"


def test_ingest_survives_embedding_failure(store, settings):
    pipeline = KnowledgeExtractionPipeline(store, FakeEmbeddings(fail=True), settings)
    result = asyncio.run(pipeline.ingest(_input(record_id="record_fixed")))

    assert result.record_id == "record_fixed"
    assert result.embedded is False
    stored = store.records[0]
    assert "embedding" not in stored
    assert "embedding_model" not in stored
    assert stored["search_text"]


def test_ingest_persistence_failure_is_raised(store, embeddings, settings):
    store.fail_inserts = True
    pipeline = KnowledgeExtractionPipeline(store, embeddings, settings)
    with pytest.raises(PersistenceFailure) as excinfo:
        asyncio.run(pipeline.ingest(_input()))
    assert "hunter2" not in str(excinfo.value)
    assert store.knowledge == []


class _BrokenEmbeddings:
    async def embed(self, text, task_type, dimensions=None):
        raise ConnectionError("socket closed")


def test_ingest_does_not_wait_on_slow_embedding(store):
    settings = Settings(_env_file=None, embedding_dimensions=DIMS, embedding_timeout_seconds=0.05)
    pipeline = KnowledgeExtractionPipeline(store, FakeEmbeddings(delay=30), settings)
    result = asyncio.run(asyncio.wait_for(pipeline.ingest(_input()), 5))

    assert result.embedded is False
    assert len(store.records) == 1
    assert "embedding" not in store.records[0]
    assert result.knowledge_id is not None


def test_ingest_survives_unexpected_embedding_error(store, settings, capsys):
    pipeline = KnowledgeExtractionPipeline(store, _BrokenEmbeddings(), settings)
    result = asyncio.run(pipeline.ingest(_input()))

    assert result.embedded is False
    assert [r["record_id"] for r in store.records] == [result.record_id]
    assert "upstream_unavailable" in capsys.readouterr().out
