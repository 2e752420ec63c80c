# farm_knowledge/embedding_service.py

from typing import List, Literal, Optional
from .config import Settings
from .errors import UpstreamUnavailable

TaskType = Literal["document", "query"]

SUPPORTED_DIMENSIONS = (768, 1536, 3072)

GEMINI_TASK_TYPES = {
    "document": "RETRIEVAL_DOCUMENT",
    "query": "RETRIEVAL_QUERY",
}


class EmbeddingService:
    """
    Turns text into vectors using either Gemini or OpenAI embeddings.

    Documents and queries are embedded with different task types; callers must
    use "document" at ingestion time and "query" at search time.
    Every failure surfaces as UpstreamUnavailable.
    """

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self.provider = settings.embedding_provider
        self.model = settings.embedding_model
        self.dimensions = settings.embedding_dimensions
        self._client = client
        self._openai_clients = {}
        print(f"---EMBEDDING SERVICE: {self.provider} / {self.model} ({self.dimensions}D)---")

    def _gemini_client(self):
        if self._client is None:
            from google import genai
            if not self.settings.google_api_key:
                raise UpstreamUnavailable("GOOGLE_API_KEY is not configured")
            self._client = genai.Client(api_key=self.settings.google_api_key)
        return self._client

    def _openai_embeddings(self, dimensions: int):
        if self._client is not None:
            return self._client
        if dimensions not in self._openai_clients:
            from langchain_openai import OpenAIEmbeddings
            if not self.settings.openai_api_key:
                raise UpstreamUnavailable("OPENAI_API_KEY is not configured")
            self._openai_clients[dimensions] = OpenAIEmbeddings(
                api_key=self.settings.openai_api_key,
                model=self.model,
                dimensions=dimensions,
            )
        return self._openai_clients[dimensions]

    async def _embed_gemini(self, text: str, task_type: TaskType, dimensions: int) -> List[float]:
        from google.genai import types
        client = self._gemini_client()
        response = await client.aio.models.embed_content(
            model=self.model,
            contents=text,
            config=types.EmbedContentConfig(
                task_type=GEMINI_TASK_TYPES[task_type],
                output_dimensionality=dimensions,
            ),
        )
        if not response.embeddings:
            return []
        return list(response.embeddings[0].values or [])

    async def _embed_openai(self, text: str, task_type: TaskType, dimensions: int) -> List[float]:
        embeddings = self._openai_embeddings(dimensions)
        # OpenAI has no task types; langchain's query/document split is the closest match.
        if task_type == "query":
            return list(await embeddings.aembed_query(text))
        vectors = await embeddings.aembed_documents([text])
        return list(vectors[0]) if vectors else []

    async def embed(self, text: str, task_type: TaskType, dimensions: Optional[int] = None) -> List[float]:
        """Returns a vector of exactly `dimensions` floats or raises UpstreamUnavailable."""
        dimensions = dimensions or self.dimensions
        if dimensions not in SUPPORTED_DIMENSIONS:
            raise UpstreamUnavailable(f"Unsupported embedding dimensions: {dimensions}")
        if task_type not in GEMINI_TASK_TYPES:
            raise UpstreamUnavailable(f"Unknown embedding task type: {task_type}")
        if not text:
            raise UpstreamUnavailable("Cannot embed empty text")

        try:
            if self.provider == "openai":
                vector = await self._embed_openai(text, task_type, dimensions)
            else:
                vector = await self._embed_gemini(text, task_type, dimensions)
        except UpstreamUnavailable:
            raise
        except Exception as e:
            raise UpstreamUnavailable(
                f"Embedding generation failed: {type(e).__name__}: {e}",
                details={"text_length": len(text), "task_type": task_type},
            ) from e

        if len(vector) != dimensions:
            raise UpstreamUnavailable(
                f"Embedding service returned {len(vector)} dimensions, expected {dimensions}"
            )
        return vector
