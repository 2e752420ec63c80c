# farm_knowledge/text_normalizer.py

import re

DEFAULT_MAX_LENGTH = 8000

# \w is unicode-aware (letters of any script, digits); underscore is dropped explicitly.
_DISALLOWED = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Prepares text for embedding and indexing.
    Document text and query text must both pass through here so that stored
    and queried vectors share the same normalization.
    """
    if not text:
        return ""
    cleaned = _DISALLOWED.sub(" ", text)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_length].strip()
