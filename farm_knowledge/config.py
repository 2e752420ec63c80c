# farm_knowledge/config.py

from typing import Literal, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Loads engine settings from the environment / .env file."""
    mongo_uri: Optional[str] = None
    mongo_user: Optional[str] = None
    mongo_password: Optional[str] = None
    mongo_host: str = "localhost"
    mongo_port: int = 27017
    mongo_db_name: str = "farm_assistant_db"
    mongo_timeout_ms: int = 30000

    records_collection: str = "activity_records"
    knowledge_collection: str = "personal_knowledge"
    fields_collection: str = "fields"
    vector_index_name: str = "activity_records_vector_index"
    records_text_index_name: str = "activity_records_text_search"
    knowledge_text_index_name: str = "personal_knowledge_text_search"

    # Embeddings
    embedding_provider: Literal["gemini", "openai"] = "gemini"
    embedding_model: str = "gemini-embedding-001"
    embedding_dimensions: Literal[768, 1536, 3072] = 1536
    max_embedding_text_length: int = 8000
    google_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Retrieval
    rrf_k: int = 60
    keyword_overfetch_factor: int = 2
    vector_candidate_multiplier: int = 5
    vector_candidate_ceiling: int = 1000
    default_search_limit: int = 10
    max_search_limit: int = 50
    keyword_search_timeout_seconds: float = 10.0
    vector_search_timeout_seconds: float = 8.0
    embedding_timeout_seconds: float = 10.0

    # Knowledge accumulation
    similar_records_limit: int = 3
    knowledge_tag_limit: int = 5
    min_knowledge_confidence: float = 0.5

    @property
    def final_mongo_uri(self) -> str:
        """Constructs safe MongoDB URI from components (preferred) or returns the provided one."""
        if self.mongo_user and self.mongo_password:
            import urllib.parse
            user = urllib.parse.quote_plus(self.mongo_user)
            password = urllib.parse.quote_plus(self.mongo_password)
            return f"mongodb+srv://{user}:{password}@{self.mongo_host}/"

        if self.mongo_uri:
            return self.mongo_uri

        return f"mongodb://{self.mongo_host}:{self.mongo_port}/"

    class Config:
        env_file = ".env"
        extra = "ignore"

# Shared instance for scripts; engine components take settings explicitly.
settings = Settings()
