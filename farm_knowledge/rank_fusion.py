# farm_knowledge/rank_fusion.py
"""
Reciprocal Rank Fusion of keyword and vector result lists.

Scores come from list positions only. Raw text scores and cosine similarities
live on incompatible scales, so they are never blended in here.
"""

import hashlib
from collections import defaultdict
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

DEFAULT_K = 60


class FusedItem(NamedTuple):
    item: Any
    score: float
    method: str  # "keyword", "vector" or "hybrid"


def item_key(item: Any) -> str:
    """Stable identity for merging: the record/knowledge id, else a content hash."""
    for attr in ("record_id", "knowledge_id"):
        value = getattr(item, attr, None)
        if value:
            return value
    if hasattr(item, "model_dump_json"):
        content = item.model_dump_json()
    else:
        content = repr(item)
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def select_search_method(keyword_results: Sequence, vector_results: Sequence) -> Optional[str]:
    """Labels which channels actually contributed; None when neither did."""
    if keyword_results and vector_results:
        return "hybrid"
    if vector_results:
        return "vector"
    if keyword_results:
        return "keyword"
    return None


def reciprocal_rank_fusion(
    keyword_results: Sequence,
    vector_results: Sequence,
    k: int = DEFAULT_K,
) -> List[FusedItem]:
    """
    Merges two ranked lists. An item at zero-based rank r earns 1 / (k + r + 1)
    from each list it appears in. Output is ordered by fused score, ties broken
    by keyword position and then vector position.
    """
    scores: Dict[str, float] = defaultdict(float)
    id_to_item: Dict[str, Any] = {}
    keyword_rank: Dict[str, int] = {}
    vector_rank: Dict[str, int] = {}

    def process_list(results, ranks):
        for rank, item in enumerate(results):
            key = item_key(item)
            if key in ranks:
                continue  # duplicates within one list count once, at their best rank
            ranks[key] = rank
            id_to_item.setdefault(key, item)
            scores[key] += 1 / (k + rank + 1)

    process_list(keyword_results, keyword_rank)
    process_list(vector_results, vector_rank)

    missing = float("inf")
    ordered = sorted(
        scores,
        key=lambda key: (-scores[key], keyword_rank.get(key, missing), vector_rank.get(key, missing)),
    )

    fused = []
    for key in ordered:
        if key in keyword_rank and key in vector_rank:
            method = "hybrid"
        elif key in keyword_rank:
            method = "keyword"
        else:
            method = "vector"
        fused.append(FusedItem(id_to_item[key], scores[key], method))
    return fused
