"""
Search Service

Unified search across posts, users and topics. Each entity is searched
concurrently on its own database session; the results are merged into one
response envelope and, for tracked searches, logged for analytics.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sayings.config import settings
from sayings.exceptions import DatabaseError
from sayings.models.user import User
from sayings.schemas.search import SearchMode, SearchRequest
from sayings.services.post_search_service import PostFilters, PostSearchResult, search_posts
from sayings.services.search_analytics_service import RequesterContext, log_search_query
from sayings.services.topic_search_service import search_topics
from sayings.services.user_search_service import search_users
from sayings.utils.metrics import record_adapter_failure, record_search
from sayings.utils.pagination import clamp_limit

logger = logging.getLogger(__name__)

Adapter = Callable[[AsyncSession], Awaitable[Any]]


class SearchService:
    """Fan-out search orchestrator"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        adapter_timeout: float | None = None,
        partial_results: bool | None = None,
    ):
        self._session_factory = session_factory
        self._adapter_timeout = settings.search_adapter_timeout_seconds if adapter_timeout is None else adapter_timeout
        self._partial_results = settings.search_partial_results if partial_results is None else partial_results

    @staticmethod
    async def resolve_creator(db: AsyncSession, creator: str | None) -> tuple[int | None, bool]:
        """
        Resolve a creator filter to a user id.

        A value made only of digits is taken as a user id. Anything else is
        looked up as a username among non-anonymous users, ignoring case.

        Returns:
            ``(user_id, unresolved)``; ``unresolved`` is True when a creator
            was given but names nobody
        """
        value = (creator or "").strip()
        if not value:
            return None, False
        if value.isdigit():
            return int(value), False

        result = await db.execute(
            select(User.id).where(func.lower(User.username) == value.lower(), User.is_anonymous.is_(False))
        )
        user_id = result.scalar_one_or_none()
        if user_id is None:
            logger.debug(f"Creator filter '{value}' matched no user")
            return None, True
        return user_id, False

    async def _build_post_filters(self, request: SearchRequest) -> PostFilters:
        filters = request.filters
        creator_id, unresolved = None, False
        if filters.creator:
            async with self._session_factory() as db:
                creator_id, unresolved = await self.resolve_creator(db, filters.creator)
        return PostFilters(
            topic=filters.topic,
            emotion=filters.emotion,
            creator_id=creator_id,
            creator_unresolved=unresolved,
            date_from=filters.date_from,
            date_to=filters.date_to,
        )

    async def _run_adapter(self, adapter: Adapter) -> Any:
        async with self._session_factory() as db:
            return await asyncio.wait_for(adapter(db), timeout=self._adapter_timeout)

    def _settle(self, entity: str, outcome: Any, empty: Any) -> Any:
        """Turn an adapter outcome into a result, degrading or raising on failure."""
        if not isinstance(outcome, BaseException):
            return outcome

        if isinstance(outcome, asyncio.TimeoutError):
            logger.warning(f"{entity} search timed out after {self._adapter_timeout}s; returning no {entity}")
            record_adapter_failure(entity, "timeout")
            return empty

        record_adapter_failure(entity, "error")
        if self._partial_results and isinstance(outcome, Exception):
            logger.error(f"{entity} search failed; returning partial results", exc_info=outcome)
            return empty

        logger.error(f"{entity} search failed", exc_info=outcome)
        if isinstance(outcome, SQLAlchemyError):
            raise DatabaseError("Search failed", operation=f"search_{entity}") from outcome
        raise outcome

    async def search(self, request: SearchRequest, requester: RequesterContext | None = None) -> dict:
        """
        Run a unified search.

        Args:
            request: Normalized search parameters
            requester: Caller context recorded with tracked searches

        Returns:
            dict matching SearchResponse schema
        """
        start_time = time.perf_counter()
        q = request.q.strip()
        mode = SearchMode.normalize(request.mode)
        if mode == SearchMode.SEMANTIC:
            logger.debug("Semantic search requested; serving keyword results")

        response = {
            "query": q,
            "query_id": None,
            "filters": request.filters.active(),
            "sort": request.sort,
            # Semantic ranking is not available; every search is answered by keyword
            "mode_used": SearchMode.KEYWORD,
            "semantic_ready": False,
            "next_cursor": None,
            "results": {"posts": [], "users": [], "topics": []},
        }
        if not q:
            return response

        if request.typeahead:
            post_limit = clamp_limit(request.limit, settings.typeahead_post_limit, settings.typeahead_post_max)
            user_limit = settings.typeahead_user_limit
            topic_limit = settings.typeahead_topic_limit
        else:
            post_limit = request.limit
            user_limit = settings.search_user_limit
            topic_limit = settings.search_topic_limit

        post_filters = await self._build_post_filters(request)

        outcomes = await asyncio.gather(
            self._run_adapter(
                lambda db: search_posts(db, q, post_filters, request.sort, post_limit, request.cursor)
            ),
            self._run_adapter(lambda db: search_users(db, q, user_limit)),
            self._run_adapter(
                lambda db: search_topics(db, q, topic_limit, bump_popularity=not request.typeahead)
            ),
            return_exceptions=True,
        )

        posts: PostSearchResult = self._settle("posts", outcomes[0], PostSearchResult())
        users = self._settle("users", outcomes[1], [])
        topics = self._settle("topics", outcomes[2], [])

        response["results"] = {"posts": posts.items, "users": users, "topics": topics}
        response["next_cursor"] = posts.next_cursor

        duration = time.perf_counter() - start_time
        results_count = len(posts.items) + len(users) + len(topics)

        if request.track and not request.typeahead and settings.search_analytics_enabled:
            response["query_id"] = await log_search_query(
                self._session_factory,
                query=q,
                sort=request.sort.value,
                mode=request.mode.value,
                filters=response["filters"],
                results_count=results_count,
                requester=requester,
                execution_time_ms=duration * 1000,
            )

        record_search(request.sort.value, request.typeahead, duration)
        logger.info(
            f"Search '{q}' ({request.sort.value}{', typeahead' if request.typeahead else ''}) "
            f"returned {len(posts.items)} posts, {len(users)} users, {len(topics)} topics "
            f"in {duration * 1000:.2f}ms"
            + (" [fallback]" if posts.used_fallback else "")
        )
        return response
