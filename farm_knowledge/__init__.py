# farm_knowledge/__init__.py

from .engine import KnowledgeEngine, create_engine
from .errors import (
    EngineError,
    IndexUnavailable,
    InvalidInput,
    NotFound,
    PersistenceFailure,
    StoreFailure,
    UpstreamUnavailable,
)

__all__ = [
    "KnowledgeEngine",
    "create_engine",
    "EngineError",
    "IndexUnavailable",
    "InvalidInput",
    "NotFound",
    "PersistenceFailure",
    "StoreFailure",
    "UpstreamUnavailable",
]
