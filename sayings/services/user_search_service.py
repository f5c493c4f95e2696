"""
User Search Service

Ranks non-anonymous users by weighted full-text relevance over username and
bio, falling back to substring matching when the index is unavailable.
"""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sayings.config import settings
from sayings.exceptions import IndexUnavailableError
from sayings.models.user import User
from sayings.services.fulltext import USER_INDEX, execute_indexed, get_backend
from sayings.utils.metrics import record_index_fallback
from sayings.utils.pagination import clamp_limit
from sayings.utils.text import tokenize

logger = logging.getLogger(__name__)

MAX_USER_RESULTS = 20


def serialize_user(user: User, score: float | None) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "avatar": user.avatar,
        "bio": user.bio,
        "score": score,
    }


async def _search_indexed(db: AsyncSession, q: str, limit: int) -> list[dict]:
    tokens = tokenize(q)
    if not tokens:
        return []

    ranked = get_backend(db).ranked_users(tokens)
    stmt = (
        select(User, ranked.c.score)
        .join(ranked, ranked.c.id == User.id)
        .where(User.is_anonymous.is_(False))
        .order_by(ranked.c.score.desc(), User.created_at.desc(), User.id.desc())
        .limit(limit)
    )
    result = await execute_indexed(db, stmt, USER_INDEX)
    return [serialize_user(user, float(score)) for user, score in result.all()]


async def _search_substring(db: AsyncSession, q: str, limit: int) -> list[dict]:
    needle = q.strip().lower()
    if not needle:
        return []

    stmt = (
        select(User)
        .where(
            User.is_anonymous.is_(False),
            or_(
                func.lower(User.username).contains(needle, autoescape=True),
                func.lower(User.bio).contains(needle, autoescape=True),
            ),
        )
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [serialize_user(user, None) for user in result.scalars().all()]


async def search_users(db: AsyncSession, q: str, limit: int | None = None) -> list[dict]:
    """
    Search users by username and bio.

    Anonymous users are never returned. ``limit`` is clamped to [1, 20].
    """
    size = clamp_limit(limit, settings.search_user_limit, MAX_USER_RESULTS)
    try:
        return await _search_indexed(db, q, size)
    except IndexUnavailableError as exc:
        logger.warning(f"User search falling back to substring scan: {exc.message}")
        record_index_fallback("users")
        return await _search_substring(db, q, size)
