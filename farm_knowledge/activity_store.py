# farm_knowledge/activity_store.py

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple
from pymongo import AsyncMongoClient, ASCENDING, DESCENDING, TEXT
from pymongo.errors import OperationFailure, PyMongoError
from .config import Settings
from .errors import IndexUnavailable, PersistenceFailure, StoreFailure
from .models import ActivityRecord, PersonalKnowledgeEntry

# MongoDB "IndexNotFound", e.g. "text index required for $text query".
INDEX_NOT_FOUND = 27

SortSpec = Sequence[Tuple[str, Any]]


class ActivityStore:
    """
    Handles all database operations for activity records and personal knowledge.
    Reads that hit a missing index raise IndexUnavailable, other read failures
    raise StoreFailure, write failures raise PersistenceFailure.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncMongoClient] = None):
        self.settings = settings
        self.client = client or AsyncMongoClient(
            settings.final_mongo_uri,
            serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        )
        self.db = self.client[settings.mongo_db_name]
        self.records = self.db[settings.records_collection]
        self.knowledge = self.db[settings.knowledge_collection]
        self.fields = self.db[settings.fields_collection]
        print("---ACTIVITY STORE: MongoDB client ready---")

    def _collection(self, name: str):
        if name == "knowledge":
            return self.knowledge
        return self.records

    def _read_error(self, operation: str, e: PyMongoError):
        if isinstance(e, OperationFailure) and e.code == INDEX_NOT_FOUND:
            return IndexUnavailable(f"No index available for {operation}", details={"operation": operation})
        return StoreFailure(
            f"Database operation failed: {operation}: {e}",
            details={"operation": operation},
        )

    async def text_search(
        self,
        collection: str,
        scope: Dict[str, Any],
        query: str,
        limit: int,
        extra_sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Lexical $text search ordered by relevance score."""
        sort = [("score", {"$meta": "textScore"})] + list(extra_sort or [])
        try:
            cursor = self._collection(collection).find(
                {**scope, "$text": {"$search": query}},
                {"_id": 0, "embedding": 0, "score": {"$meta": "textScore"}},
            ).sort(sort).limit(limit)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._read_error("text search", e) from e

    async def pattern_search(
        self,
        collection: str,
        scope: Dict[str, Any],
        terms: Sequence[str],
        fields: Sequence[str],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Case-insensitive substring match of any term in any of the fields."""
        if not terms:
            return []
        clauses = [
            {field: {"$regex": re.escape(term), "$options": "i"}}
            for term in terms
            for field in fields
        ]
        try:
            cursor = self._collection(collection).find(
                {"$and": [scope, {"$or": clauses}]},
                {"_id": 0, "embedding": 0},
            ).limit(limit)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._read_error("pattern search", e) from e

    async def vector_search(
        self,
        scope: Dict[str, Any],
        vector: List[float],
        num_candidates: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Approximate nearest neighbours through Atlas $vectorSearch."""
        pipeline = [
            {
                "$vectorSearch": {
                    "index": self.settings.vector_index_name,
                    "path": "embedding",
                    "queryVector": vector,
                    "numCandidates": num_candidates,
                    "limit": limit,
                    "filter": scope,
                }
            },
            {"$addFields": {"score": {"$meta": "vectorSearchScore"}}},
            {"$project": {"_id": 0, "embedding": 0}},
        ]
        try:
            cursor = await self.records.aggregate(pipeline)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._read_error("vector search", e) from e

    async def find_record(self, user_id: str, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.records.find_one({"user_id": user_id, "record_id": record_id}, {"_id": 0})
        except PyMongoError as e:
            raise self._read_error("record lookup", e) from e

    async def find_records(
        self,
        filter: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        try:
            cursor = self.records.find(filter, {"_id": 0, "embedding": 0})
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list()
        except PyMongoError as e:
            raise self._read_error("record query", e) from e

    async def resolve_farm_id(self, field_id: str) -> Optional[str]:
        try:
            field = await self.fields.find_one({"field_id": field_id}, {"_id": 0, "farm_id": 1})
        except PyMongoError as e:
            raise self._read_error("field lookup", e) from e
        return field.get("farm_id") if field else None

    async def insert_record(self, record: ActivityRecord) -> None:
        try:
            await self.records.insert_one(record.to_document())
        except PyMongoError as e:
            raise PersistenceFailure(
                f"Failed to save activity record: {e}",
                details={"record_id": record.record_id},
            ) from e
        print(f"---ACTIVITY STORE: Saved record {record.record_id} for user {record.user_id}---")

    async def insert_knowledge(self, entry: PersonalKnowledgeEntry) -> None:
        try:
            await self.knowledge.insert_one(entry.model_dump())
        except PyMongoError as e:
            raise PersistenceFailure(
                f"Failed to save personal knowledge: {e}",
                details={"knowledge_id": entry.knowledge_id},
            ) from e
        print(f"---ACTIVITY STORE: Saved knowledge '{entry.title}' for user {entry.user_id}---")

    async def embedding_coverage(self, user_id: Optional[str] = None) -> Tuple[int, int]:
        """Returns (total records, records with an embedding)."""
        base = {"user_id": user_id} if user_id else {}
        try:
            total = await self.records.count_documents(base)
            embedded = await self.records.count_documents({**base, "embedding": {"$exists": True}})
        except PyMongoError as e:
            raise self._read_error("coverage count", e) from e
        return total, embedded

    async def ensure_indexes(self) -> None:
        """Creates the lexical and filter indexes. The vector index is managed in Atlas."""
        await self.records.create_index(
            [("search_text", TEXT), ("description", TEXT), ("notes", TEXT), ("materials.name", TEXT)],
            name=self.settings.records_text_index_name,
            default_language="none",
            weights={"search_text": 10, "description": 8, "notes": 5, "materials.name": 3},
        )
        await self.records.create_index([("record_id", ASCENDING)], name="activity_records_record_id", unique=True)
        await self.records.create_index(
            [("user_id", ASCENDING), ("field_id", ASCENDING), ("date", DESCENDING)],
            name="activity_records_user_field_date",
        )
        await self.records.create_index(
            [("user_id", ASCENDING), ("category", ASCENDING), ("outcome.quality", ASCENDING), ("date", DESCENDING)],
            name="activity_records_user_category_quality",
        )
        await self.records.create_index(
            [("user_id", ASCENDING), ("tags", ASCENDING), ("date", DESCENDING)],
            name="activity_records_user_tags",
        )
        await self.knowledge.create_index(
            [("title", TEXT), ("content", TEXT), ("tags", TEXT)],
            name=self.settings.knowledge_text_index_name,
            default_language="none",
            weights={"title": 10, "content": 8, "tags": 5},
        )
        await self.knowledge.create_index(
            [("user_id", ASCENDING), ("farm_id", ASCENDING), ("confidence", DESCENDING)],
            name="personal_knowledge_user_farm_confidence",
        )
        await self.fields.create_index([("field_id", ASCENDING)], name="fields_field_id", unique=True)
        print("---ACTIVITY STORE: Indexes ensured---")

    def vector_index_definition(self) -> Dict[str, Any]:
        """The Atlas Vector Search definition matching vector_search's filters."""
        return {
            "name": self.settings.vector_index_name,
            "type": "vectorSearch",
            "definition": {
                "fields": [
                    {
                        "type": "vector",
                        "path": "embedding",
                        "numDimensions": self.settings.embedding_dimensions,
                        "similarity": "cosine",
                    },
                    {"type": "filter", "path": "user_id"},
                    {"type": "filter", "path": "field_id"},
                    {"type": "filter", "path": "category"},
                    {"type": "filter", "path": "date"},
                    {"type": "filter", "path": "outcome.quality"},
                ]
            },
        }

    async def ping(self) -> None:
        await self.client.admin.command("ping")

    async def close(self) -> None:
        await self.client.close()
