# farm_knowledge/models.py

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Literal, Union
from datetime import date, datetime, timezone

ActivityCategory = Literal["planting", "fertilizing", "pest-control", "cultivation", "harvest", "other"]
Quality = Literal["excellent", "good", "fair", "poor"]
Effectiveness = Literal["high", "medium", "low"]
KnowledgeCategory = Literal["experience", "technique", "timing", "resource", "issue"]
SearchMethod = Literal["keyword", "vector", "hybrid"]

POSITIVE_QUALITIES = ("excellent", "good")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Material(BaseModel):
    """A material or chemical used during an activity."""
    name: str
    amount: str = ""
    unit: str = ""


class WeatherObservation(BaseModel):
    condition: str
    temperature: Optional[float] = None
    humidity: Optional[float] = None


class ActivityOutcome(BaseModel):
    """How the activity turned out."""
    quality: Quality
    effectiveness: Optional[Effectiveness] = None
    issues: List[str] = []
    improvements: List[str] = []
    satisfaction: Optional[int] = Field(default=None, ge=1, le=5)


class ActivityRecordInput(BaseModel):
    """Payload accepted by the ingestion pipeline."""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1, max_length=100)
    field_id: str = Field(min_length=1, max_length=50)
    farm_id: Optional[str] = None
    record_id: Optional[str] = None
    date: date
    category: ActivityCategory
    description: str = Field(min_length=1, max_length=2000)
    materials: List[Material] = Field(default=[], max_length=50)
    weather: Optional[WeatherObservation] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    workers: int = Field(default=1, ge=1)
    equipment: List[str] = []
    notes: Optional[str] = Field(default=None, max_length=1000)
    outcome: ActivityOutcome
    follow_up_needed: bool = False
    next_actions: List[str] = []

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("description must not be blank")
        return value


class ActivityRecord(BaseModel):
    """A persisted, immutable activity log entry with its search fields."""
    record_id: str
    user_id: str
    field_id: str
    farm_id: Optional[str] = None
    date: date
    category: ActivityCategory
    description: str
    materials: List[Material] = []
    weather: Optional[WeatherObservation] = None
    duration_minutes: Optional[int] = None
    workers: int = 1
    equipment: List[str] = []
    notes: Optional[str] = None
    outcome: ActivityOutcome
    follow_up_needed: bool = False
    next_actions: List[str] = []

    search_text: str = Field(min_length=1)
    tags: List[str] = []
    embedding: Optional[List[float]] = None
    embedding_model: Optional[str] = None
    embedding_dimensions: Optional[int] = None
    embedding_generated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("date", mode="before")
    @classmethod
    def date_only(cls, value):
        # MongoDB hands dates back as datetimes.
        if isinstance(value, datetime):
            return value.date()
        return value

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("tags must not contain duplicates")
        return value

    @model_validator(mode="after")
    def embedding_matches_dimensions(self):
        if self.embedding is not None and len(self.embedding) != self.embedding_dimensions:
            raise ValueError("embedding length does not match embedding_dimensions")
        return self

    def to_document(self) -> dict:
        """Serializes for MongoDB, which stores dates as datetimes."""
        doc = self.model_dump(exclude_none=True)
        doc["date"] = datetime(self.date.year, self.date.month, self.date.day)
        return doc


class PersonalKnowledgeEntry(BaseModel):
    """A piece of farm-specific knowledge distilled from successful activity."""
    knowledge_id: str
    farm_id: str
    user_id: str
    title: str
    content: str
    category: KnowledgeCategory = "experience"
    related_records: List[str] = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    frequency: int = Field(default=1, ge=1)
    last_used: datetime = Field(default_factory=utcnow)
    tags: List[str] = []
    created_at: datetime = Field(default_factory=utcnow)


class DateRange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: date
    end: date

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start > self.end:
            raise ValueError("date range start must not be after its end")
        return self


class SearchQuery(BaseModel):
    """A free-text search over one user's activity records."""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1)
    query: str
    field_id: Optional[str] = None
    category: Optional[ActivityCategory] = None
    date_range: Optional[DateRange] = None
    quality: Optional[Quality] = None
    limit: int = Field(default=10, ge=1)


class SearchHit(BaseModel):
    item: Union[ActivityRecord, PersonalKnowledgeEntry]
    method: SearchMethod
    score: float


class FusedResult(BaseModel):
    hits: List[SearchHit] = []
    method: Optional[SearchMethod] = None
    total_found: int = 0
    degraded: List[str] = []

    @property
    def records(self) -> list:
        return [hit.item for hit in self.hits]


class RelatedRecord(BaseModel):
    record_id: str
    date: str
    similarity: str


class IngestResult(BaseModel):
    record_id: str
    status: Literal["success", "partial"] = "success"
    message: str
    learnings: List[str] = []
    recommendations: List[str] = []
    related_records: List[RelatedRecord] = []
    knowledge_id: Optional[str] = None
    embedded: bool = False


class KnowledgeSearchResult(BaseModel):
    hits: List[SearchHit] = []
    total_found: int = 0
    avg_confidence: float = 0.0
    categories: List[str] = []


class HistoryAnalysis(BaseModel):
    success_rate: int
    common_patterns: List[str] = []
    best_practices: List[str] = []
    improvement_areas: List[str] = []


class HistoryReview(BaseModel):
    user_id: str
    total_records: int
    records: List[ActivityRecord] = []
    analysis: Optional[HistoryAnalysis] = None
    recommendations: List[str] = []
