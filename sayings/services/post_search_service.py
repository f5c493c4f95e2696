"""
Post Search Service

Searches posts with weighted full-text ranking, filter composition and
keyset pagination. When the full-text index is unavailable the search falls
back to a case-insensitive substring scan sorted by recency.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sayings.config import settings
from sayings.exceptions import IndexUnavailableError
from sayings.models.post import Post, PostEmotion, PostTopic, Sentiment
from sayings.schemas.search import SearchSort
from sayings.services.fulltext import POST_INDEX, execute_indexed, get_backend
from sayings.utils.metrics import record_index_fallback
from sayings.utils.pagination import (
    PageCursor,
    RecencyCursor,
    RelevanceCursor,
    clamp_limit,
    encode_page_cursor,
    parse_page_cursor,
)
from sayings.utils.text import build_snippet, highlight_spans, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostFilters:
    """
    Post filters with the creator already resolved to a user id.

    ``creator_unresolved`` marks a creator filter that named nobody; it
    matches no posts rather than being ignored.
    """

    topic: str | None = None
    emotion: str | None = None
    creator_id: int | None = None
    creator_unresolved: bool = False
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass
class PostSearchResult:
    items: list[dict] = field(default_factory=list)
    next_cursor: str | None = None
    used_fallback: bool = False


def build_filter_clauses(filters: PostFilters) -> list:
    """Translate filters into WHERE clauses; callers AND them together."""
    clauses = []

    if filters.topic and filters.topic.strip():
        topic = filters.topic.strip().lower()
        clauses.append(Post.topics.any(func.lower(PostTopic.topic) == topic))

    if filters.emotion and filters.emotion.strip():
        emotion = filters.emotion.strip()
        options = [Post.emotions.any(func.lower(PostEmotion.name) == emotion.lower())]
        label = emotion.upper()
        if label in Sentiment.__members__:
            options.append(Post.general_sentiment == Sentiment[label])
        clauses.append(or_(*options))

    if filters.creator_unresolved:
        clauses.append(false())
    elif filters.creator_id is not None:
        clauses.append(Post.user_id == filters.creator_id)

    if filters.date_from or filters.date_to:
        # Legacy rows only carry `timestamp`; either field may satisfy the range
        def in_range(column):
            bounds = []
            if filters.date_from:
                bounds.append(column >= filters.date_from)
            if filters.date_to:
                bounds.append(column <= filters.date_to)
            return and_(*bounds)

        clauses.append(or_(in_range(Post.created_at), in_range(Post.timestamp)))

    return clauses


def recency_after(cursor: RecencyCursor):
    return or_(
        Post.created_at < cursor.last_created_at,
        and_(Post.created_at == cursor.last_created_at, Post.id < cursor.last_id),
    )


def serialize_post(post: Post, q: str, score: float | None) -> dict:
    """Build the post hit returned to clients, including snippet and highlights."""
    snippet = build_snippet(post.transcript or post.summary or post.description or "", q)
    author = post.user
    return {
        "id": post.id,
        "title": post.title,
        "description": post.description,
        "transcript": post.transcript,
        "summary": post.summary,
        "audio_url": post.audio_url,
        "ipfs_hash": post.ipfs_hash,
        "topics": [{"topic": t.topic, "confidence": t.confidence} for t in post.topics],
        "general_sentiment": post.general_sentiment.value if post.general_sentiment else None,
        "emotions": [{"name": e.name, "score": e.score} for e in post.emotions],
        "created_at": post.created_at,
        "timestamp": post.timestamp,
        "user": (
            {"id": author.id, "username": author.username, "avatar": author.avatar}
            if author is not None and not author.is_anonymous
            else None
        ),
        "score": score,
        "snippet": snippet,
        "highlights": [{"start": start, "end": end} for start, end in highlight_spans(snippet, q)],
    }


async def _search_indexed(
    db: AsyncSession,
    q: str,
    filters: PostFilters,
    sort: SearchSort,
    page_size: int,
    cursor: PageCursor | None,
) -> PostSearchResult:
    tokens = tokenize(q)
    if not tokens:
        return PostSearchResult()

    ranked = get_backend(db).ranked_posts(tokens)
    stmt = select(Post, ranked.c.score).join(ranked, ranked.c.id == Post.id).where(*build_filter_clauses(filters))

    if sort == SearchSort.RECENT:
        if isinstance(cursor, RecencyCursor):
            stmt = stmt.where(recency_after(cursor))
        stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc())
    else:
        # Post ids grow with creation time, so id DESC is the recency tie-break
        if isinstance(cursor, RelevanceCursor):
            stmt = stmt.where(
                or_(
                    ranked.c.score < cursor.last_score,
                    and_(ranked.c.score == cursor.last_score, Post.id < cursor.last_id),
                )
            )
        stmt = stmt.order_by(ranked.c.score.desc(), Post.id.desc())

    # One extra row tells us whether another page exists
    result = await execute_indexed(db, stmt.limit(page_size + 1), POST_INDEX)
    rows = result.all()

    has_more = len(rows) > page_size
    rows = rows[:page_size]

    next_cursor = None
    if has_more:
        last_post, last_score = rows[-1]
        if sort == SearchSort.RECENT:
            next_cursor = encode_page_cursor(RecencyCursor(last_post.created_at, last_post.id))
        else:
            next_cursor = encode_page_cursor(RelevanceCursor(float(last_score), last_post.id))

    items = [serialize_post(post, q, float(score)) for post, score in rows]
    return PostSearchResult(items=items, next_cursor=next_cursor)


async def _search_substring(
    db: AsyncSession,
    q: str,
    filters: PostFilters,
    page_size: int,
    cursor: PageCursor | None,
) -> PostSearchResult:
    needle = q.strip().lower()
    if not needle:
        return PostSearchResult(used_fallback=True)

    match = or_(
        func.lower(Post.title).contains(needle, autoescape=True),
        func.lower(Post.description).contains(needle, autoescape=True),
        func.lower(Post.transcript).contains(needle, autoescape=True),
        func.lower(Post.summary).contains(needle, autoescape=True),
        Post.topics.any(func.lower(PostTopic.topic).contains(needle, autoescape=True)),
    )
    stmt = select(Post).where(match, *build_filter_clauses(filters))

    # Substring scans have no score, so pages are always ordered by recency
    if isinstance(cursor, RecencyCursor):
        stmt = stmt.where(recency_after(cursor))
    stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).limit(page_size + 1)

    result = await db.execute(stmt)
    posts = list(result.scalars().all())

    has_more = len(posts) > page_size
    posts = posts[:page_size]

    next_cursor = None
    if has_more:
        last = posts[-1]
        next_cursor = encode_page_cursor(RecencyCursor(last.created_at, last.id))

    items = [serialize_post(post, q, None) for post in posts]
    return PostSearchResult(items=items, next_cursor=next_cursor, used_fallback=True)


async def search_posts(
    db: AsyncSession,
    q: str,
    filters: PostFilters | None = None,
    sort: SearchSort = SearchSort.RELEVANCE,
    limit: int | None = None,
    cursor: str | None = None,
) -> PostSearchResult:
    """
    Search posts.

    Args:
        db: Database session (not shared with other concurrent searches)
        q: Trimmed query text
        filters: Resolved post filters
        sort: Relevance or recency
        limit: Requested page size, clamped to [1, search_max_page_size]
        cursor: Opaque cursor from a previous page; invalid cursors restart
            from the first page

    Returns:
        PostSearchResult with serialized posts and the next cursor
    """
    filters = filters or PostFilters()
    page_size = clamp_limit(limit, settings.search_default_page_size, settings.search_max_page_size)
    page_cursor = parse_page_cursor(cursor)

    try:
        return await _search_indexed(db, q, filters, sort, page_size, page_cursor)
    except IndexUnavailableError as exc:
        logger.warning(f"Post search falling back to substring scan: {exc.message}")
        record_index_fallback("posts")
        return await _search_substring(db, q, filters, page_size, page_cursor)
