"""
Search Schemas

Pydantic models for search requests and responses. Field names are
snake_case in Python and camelCase on the wire.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SearchSort(str, enum.Enum):
    RELEVANCE = "relevance"
    RECENT = "recent"

    @classmethod
    def normalize(cls, value: str | None) -> "SearchSort":
        """Anything other than 'recent' sorts by relevance."""
        return cls.RECENT if value == cls.RECENT.value else cls.RELEVANCE


class SearchMode(str, enum.Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"

    @classmethod
    def normalize(cls, value: str | None) -> "SearchMode":
        return cls.SEMANTIC if value == cls.SEMANTIC.value else cls.KEYWORD


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# Request models
# ============================================================================


class SearchFilters(CamelModel):
    """Optional filters; every supplied filter must match (AND)"""

    topic: str | None = Field(None, description="Exact topic name, case-insensitive")
    emotion: str | None = Field(None, description="Sentiment label or emotion name")
    creator: str | None = Field(None, description="Author username or user id")
    date_from: datetime | None = Field(None, alias="from", description="Inclusive lower bound")
    date_to: datetime | None = Field(None, alias="to", description="Inclusive upper bound")

    def active(self) -> dict:
        """Supplied filters in wire form, for echoing and analytics."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("from", "to"):
            if key in data:
                data[key] = data[key].isoformat()
        return data


class SearchRequest(BaseModel):
    """Normalized search parameters handed to the orchestrator"""

    q: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort: SearchSort = SearchSort.RELEVANCE
    mode: SearchMode = SearchMode.KEYWORD
    cursor: str | None = None
    limit: int | None = None
    typeahead: bool = False
    track: bool = True


class SearchClickCreate(CamelModel):
    """
    Click-through event.

    Fields are validated by the analytics service so that missing values are
    reported as 400 rather than schema errors.
    """

    query_id: int | str | None = None
    target_type: str | None = None
    target_id: int | str | None = None
    position: int | None = None


# ============================================================================
# Response models
# ============================================================================


class HighlightSpan(CamelModel):
    start: int
    end: int


class PostTopicOut(CamelModel):
    topic: str
    confidence: float


class PostEmotionOut(CamelModel):
    name: str
    score: float


class PostAuthor(CamelModel):
    id: int
    username: str
    avatar: str | None = None


class PostHit(CamelModel):
    id: int
    title: str | None = None
    description: str | None = None
    transcript: str | None = None
    summary: str | None = None
    audio_url: str | None = None
    ipfs_hash: str | None = None
    topics: list[PostTopicOut] = []
    general_sentiment: str | None = None
    emotions: list[PostEmotionOut] = []
    created_at: datetime | None = None
    timestamp: datetime | None = None
    user: PostAuthor | None = None
    score: float | None = Field(None, description="Relevance score; absent on fallback results")
    snippet: str = ""
    highlights: list[HighlightSpan] = Field(default_factory=list, description="Token spans within the snippet")


class UserHit(CamelModel):
    id: int
    username: str
    avatar: str | None = None
    bio: str | None = None
    score: float | None = None


class TopicHit(CamelModel):
    id: int
    name: str
    popularity: float


class SearchResults(CamelModel):
    posts: list[PostHit] = []
    users: list[UserHit] = []
    topics: list[TopicHit] = []


class SearchResponse(CamelModel):
    query: str
    query_id: int | None = None
    filters: dict = {}
    sort: SearchSort
    mode_used: SearchMode = SearchMode.KEYWORD
    semantic_ready: bool = False
    next_cursor: str | None = None
    results: SearchResults


class TrendingTopicsResponse(CamelModel):
    topics: list[TopicHit]


class SearchClickResponse(CamelModel):
    ok: bool = True
    id: int


class SearchAnalyticsResponse(CamelModel):
    """Search analytics summary"""

    total_searches: int
    unique_queries: int
    avg_results_count: float
    avg_execution_time_ms: float
    total_clicks: int
    click_through_rate: float
    top_queries: list[dict]
    zero_result_queries: list[dict]
    clicks_by_position: list[dict]
    clicks_by_target_type: dict[str, int]
