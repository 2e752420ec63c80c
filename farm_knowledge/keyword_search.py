# farm_knowledge/keyword_search.py

from typing import Any, Dict, Optional
from .config import Settings
from .errors import IndexUnavailable
from .models import ActivityRecord, PersonalKnowledgeEntry

FALLBACK_FIELDS = {
    "records": ("description", "notes", "search_text"),
    "knowledge": ("title", "content"),
}

MODELS = {
    "records": ActivityRecord,
    "knowledge": PersonalKnowledgeEntry,
}


class KeywordSearchAdapter:
    """
    Lexical search against the store's text index.
    Degrades to substring matching only when the text index is missing;
    any other store error propagates.
    """

    def __init__(self, store, settings: Settings):
        self.store = store
        self.overfetch_factor = max(2, settings.keyword_overfetch_factor)

    async def search(
        self,
        scope: Dict[str, Any],
        query: str,
        limit: int,
        collection: str = "records",
        extra_sort: Optional[list] = None,
    ) -> list:
        terms = query.split()
        if not terms:
            return []
        model = MODELS[collection]
        # Overfetch so fusion has enough candidates to work with.
        fetch_limit = limit * self.overfetch_factor

        try:
            docs = await self.store.text_search(collection, scope, query, fetch_limit, extra_sort)
        except IndexUnavailable:
            print(f"---KEYWORD SEARCH: No text index on '{collection}', falling back to pattern match---")
            docs = await self.store.pattern_search(
                collection, scope, terms, FALLBACK_FIELDS[collection], fetch_limit
            )

        print(f"---KEYWORD SEARCH: {len(docs)} candidates for '{query}'---")
        return [model.model_validate(doc) for doc in docs]
