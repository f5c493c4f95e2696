"""
Full-Text Search Backends

Weighted full-text ranking for posts and users on top of the database's
native text search:

- SQLite: FTS5 virtual tables ranked with ``bm25`` and per-column weights
- PostgreSQL: per-field ``tsvector`` columns ranked with a weighted sum of
  ``ts_rank`` and a GIN index over the concatenated document

Both backends expose the same ranked subqueries (``id``, ``score``; higher
score is better) so the search adapters stay dialect-agnostic.

The index tables are kept in sync with ``posts``, ``post_topics`` and
``users`` by database triggers, so rows written by other services are
searchable as soon as they commit. :func:`reindex_all` rebuilds every entry
from the source tables (used by the migration and ``python -m sayings.reindex``).

When an index table is missing the backend raises ``IndexUnavailableError``.
Any other database error propagates unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Float, Integer, func, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.sql import Subquery

from sayings.config import settings
from sayings.exceptions import IndexUnavailableError
from sayings.models.post import Post
from sayings.models.user import User

logger = logging.getLogger(__name__)

POST_INDEX = "post_search_index"
USER_INDEX = "user_search_index"

# Field weights, highest first
POST_FIELD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("title", 10.0),
    ("transcript", 8.0),
    ("topics", 6.0),
    ("description", 5.0),
    ("summary", 4.0),
)
USER_FIELD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("username", 10.0),
    ("bio", 3.0),
)


@dataclass(frozen=True)
class IndexSpec:
    """
    One index table and the source rows it is derived from.

    ``watched`` lists ``(table, source id column, columns)``: a write to any
    of those columns refreshes the entry of the referenced source row.
    """

    name: str
    source_table: str
    key: str
    weights: tuple[tuple[str, float], ...]
    watched: tuple[tuple[str, str, tuple[str, ...]], ...]

    @property
    def fields(self) -> list[str]:
        return [field for field, _ in self.weights]


POST_SPEC = IndexSpec(
    name=POST_INDEX,
    source_table="posts",
    key="post_id",
    weights=POST_FIELD_WEIGHTS,
    watched=(
        ("posts", "id", ("title", "transcript", "description", "summary")),
        ("post_topics", "post_id", ("post_id", "topic")),
    ),
)
USER_SPEC = IndexSpec(
    name=USER_INDEX,
    source_table="users",
    key="user_id",
    weights=USER_FIELD_WEIGHTS,
    watched=(("users", "id", ("username", "bio")),),
)
INDEX_SPECS = (POST_SPEC, USER_SPEC)


class FullTextBackend:
    """Interface shared by the dialect-specific backends"""

    dialect = ""

    # Aggregate that joins a post's topic names with spaces
    topic_aggregate = ""

    def ranked_posts(self, tokens: list[str]) -> Subquery:
        raise NotImplementedError

    def ranked_users(self, tokens: list[str]) -> Subquery:
        raise NotImplementedError

    def is_index_missing(self, exc: DBAPIError, index_name: str) -> bool:
        raise NotImplementedError

    def index_ddl(self) -> list[str]:
        """Statements that create the index tables and their sync triggers, idempotently."""
        raise NotImplementedError

    def drop_ddl(self) -> list[str]:
        raise NotImplementedError

    def backfill_sql(self) -> list[str]:
        """Statements that rebuild every index entry from the source tables."""
        raise NotImplementedError

    def field_source(self, field: str) -> str:
        """SQL expression for an indexed field, over source table alias ``s``."""
        if field == "topics":
            return f"(SELECT {self.topic_aggregate} FROM post_topics t WHERE t.post_id = s.id)"
        return f"s.{field}"

    async def create_indexes(self, conn: AsyncConnection) -> None:
        for statement in self.index_ddl():
            await conn.execute(text(statement))

    async def drop_indexes(self, conn: AsyncConnection) -> None:
        for statement in self.drop_ddl():
            await conn.execute(text(statement))


class SQLiteFullTextBackend(FullTextBackend):
    """FTS5 virtual tables keyed by rowid = entity id"""

    dialect = "sqlite"
    topic_aggregate = "group_concat(t.topic, ' ')"

    def _ranked(self, index_name: str, weights: tuple[tuple[str, float], ...], tokens: list[str]) -> Subquery:
        weight_args = ", ".join(str(w) for _, w in weights)
        stmt = (
            text(
                f"SELECT rowid AS id, -bm25({index_name}, {weight_args}) AS score "  # nosec B608
                f"FROM {index_name} WHERE {index_name} MATCH :{index_name}_match"
            )
            .bindparams(**{f"{index_name}_match": " OR ".join(f'"{t}"' for t in tokens)})
            .columns(id=Integer, score=Float)
        )
        return stmt.subquery(f"ranked_{index_name}")

    def ranked_posts(self, tokens: list[str]) -> Subquery:
        return self._ranked(POST_INDEX, POST_FIELD_WEIGHTS, tokens)

    def ranked_users(self, tokens: list[str]) -> Subquery:
        return self._ranked(USER_INDEX, USER_FIELD_WEIGHTS, tokens)

    def is_index_missing(self, exc: DBAPIError, index_name: str) -> bool:
        # SQLite reports no error codes for this condition, only the message
        message = str(exc.orig).lower()
        return "no such table" in message and index_name in message

    def _refresh_sql(self, spec: IndexSpec, source_id: str | None) -> list[str]:
        """Delete and re-derive the entry for ``source_id`` (every entry when None)."""
        columns = ", ".join(spec.fields)
        values = ", ".join(f"COALESCE({self.field_source(field)}, '')" for field in spec.fields)
        delete = f"DELETE FROM {spec.name}"  # nosec B608
        insert = f"INSERT INTO {spec.name} (rowid, {columns}) SELECT s.id, {values} FROM {spec.source_table} s"  # nosec B608
        if source_id is not None:
            delete += f" WHERE rowid = {source_id}"
            insert += f" WHERE s.id = {source_id}"
        return [delete, insert]

    def _triggers(self, spec: IndexSpec) -> list[tuple[str, str, str]]:
        """(trigger name, event clause, body) for every watched table."""
        triggers = []
        for table, column, watched_columns in spec.watched:
            events = (
                ("insert", "INSERT", ("NEW",)),
                ("update", f"UPDATE OF {', '.join(watched_columns)}", ("OLD", "NEW")),
                ("delete", "DELETE", ("OLD",)),
            )
            for suffix, event, refs in events:
                statements = [sql for ref in refs for sql in self._refresh_sql(spec, f"{ref}.{column}")]
                body = "".join(f"{sql}; " for sql in statements)
                triggers.append((f"{spec.name}_{table}_{suffix}", f"{event} ON {table}", body))
        return triggers

    def index_ddl(self) -> list[str]:
        statements = []
        for spec in INDEX_SPECS:
            statements.append(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS {spec.name} "
                f"USING fts5({', '.join(spec.fields)}, tokenize='porter unicode61')"
            )
        # Triggers last, so a build without FTS5 fails before any trigger exists
        for spec in INDEX_SPECS:
            for name, event, body in self._triggers(spec):
                statements.append(f"CREATE TRIGGER IF NOT EXISTS {name} AFTER {event} BEGIN {body}END")
        return statements

    def drop_ddl(self) -> list[str]:
        statements = [f"DROP TRIGGER IF EXISTS {name}" for spec in INDEX_SPECS for name, _, _ in self._triggers(spec)]
        statements.extend(f"DROP TABLE IF EXISTS {spec.name}" for spec in INDEX_SPECS)
        return statements

    def backfill_sql(self) -> list[str]:
        return [sql for spec in INDEX_SPECS for sql in self._refresh_sql(spec, None)]


class PostgresFullTextBackend(FullTextBackend):
    """Per-field tsvector tables with a GIN-indexed generated document column"""

    dialect = "postgresql"
    topic_aggregate = "string_agg(t.topic, ' ')"

    # undefined_table, undefined_column, undefined_object (text search config)
    MISSING_INDEX_SQLSTATES = {"42P01", "42703", "42704"}

    def __init__(self, language: str | None = None):
        self.language = language or settings.search_language

    def _ranked(self, spec: IndexSpec, tokens: list[str]) -> Subquery:
        score_sql = " + ".join(f"{w} * ts_rank(s.{field}, q)" for field, w in spec.weights)
        stmt = (
            text(
                f"SELECT s.{spec.key} AS id, CAST({score_sql} AS double precision) AS score "  # nosec B608
                f"FROM {spec.name} s, to_tsquery(CAST(:ts_language AS regconfig), :{spec.name}_query) AS q "
                f"WHERE s.document @@ q"
            )
            .bindparams(**{"ts_language": self.language, f"{spec.name}_query": " | ".join(tokens)})
            .columns(id=Integer, score=Float)
        )
        return stmt.subquery(f"ranked_{spec.name}")

    def ranked_posts(self, tokens: list[str]) -> Subquery:
        return self._ranked(POST_SPEC, tokens)

    def ranked_users(self, tokens: list[str]) -> Subquery:
        return self._ranked(USER_SPEC, tokens)

    def is_index_missing(self, exc: DBAPIError, index_name: str) -> bool:
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if code is None and orig is not None and orig.__cause__ is not None:
            code = getattr(orig.__cause__, "sqlstate", None)
        return code in self.MISSING_INDEX_SQLSTATES

    def _vector(self, expression: str) -> str:
        language = self.language.replace("'", "''")
        return f"to_tsvector(CAST('{language}' AS regconfig), COALESCE({expression}, ''))"

    def _refresh_sql(self, spec: IndexSpec, source_id: str | None) -> list[str]:
        columns = ", ".join(spec.fields)
        vectors = ", ".join(self._vector(self.field_source(field)) for field in spec.fields)
        delete = f"DELETE FROM {spec.name}"  # nosec B608
        insert = f"INSERT INTO {spec.name} ({spec.key}, {columns}) SELECT s.id, {vectors} FROM {spec.source_table} s"  # nosec B608
        if source_id is not None:
            delete += f" WHERE {spec.key} = {source_id}"
            insert += f" WHERE s.id = {source_id}"
        return [delete, insert]

    def index_ddl(self) -> list[str]:
        statements = []
        for spec in INDEX_SPECS:
            vector_columns = ", ".join(f"{field} tsvector NOT NULL" for field in spec.fields)
            document = " || ".join(spec.fields)
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {spec.name} ("
                f"{spec.key} INTEGER PRIMARY KEY REFERENCES {spec.source_table}(id) ON DELETE CASCADE, "
                f"{vector_columns}, "
                f"document tsvector GENERATED ALWAYS AS ({document}) STORED)"
            )
            statements.append(
                f"CREATE INDEX IF NOT EXISTS ix_{spec.name}_document ON {spec.name} USING GIN (document)"
            )

            refresh_body = "".join(f"    {sql};\n" for sql in self._refresh_sql(spec, "source_id"))
            statements.append(
                f"CREATE OR REPLACE FUNCTION {spec.name}_refresh(source_id integer) RETURNS void AS $$\n"
                f"BEGIN\n{refresh_body}END;\n$$ LANGUAGE plpgsql"
            )

            for table, column, watched_columns in spec.watched:
                function = f"{spec.name}_{table}_sync"
                statements.append(
                    f"CREATE OR REPLACE FUNCTION {function}() RETURNS trigger AS $$\n"
                    f"BEGIN\n"
                    f"    IF TG_OP <> 'INSERT' THEN\n"
                    f"        PERFORM {spec.name}_refresh(OLD.{column});\n"
                    f"    END IF;\n"
                    f"    IF TG_OP <> 'DELETE' THEN\n"
                    f"        PERFORM {spec.name}_refresh(NEW.{column});\n"
                    f"    END IF;\n"
                    f"    RETURN NULL;\n"
                    f"END;\n$$ LANGUAGE plpgsql"
                )
                statements.append(f"DROP TRIGGER IF EXISTS {function}_trigger ON {table}")
                statements.append(
                    f"CREATE TRIGGER {function}_trigger "
                    f"AFTER INSERT OR UPDATE OF {', '.join(watched_columns)} OR DELETE ON {table} "
                    f"FOR EACH ROW EXECUTE FUNCTION {function}()"
                )
        return statements

    def drop_ddl(self) -> list[str]:
        statements = []
        for spec in INDEX_SPECS:
            # CASCADE removes the triggers that call each sync function
            statements.extend(
                f"DROP FUNCTION IF EXISTS {spec.name}_{table}_sync() CASCADE" for table, _, _ in spec.watched
            )
            statements.append(f"DROP FUNCTION IF EXISTS {spec.name}_refresh(integer)")
            statements.append(f"DROP TABLE IF EXISTS {spec.name}")
        return statements

    def backfill_sql(self) -> list[str]:
        return [sql for spec in INDEX_SPECS for sql in self._refresh_sql(spec, None)]


_BACKENDS: dict[str, type[FullTextBackend]] = {
    SQLiteFullTextBackend.dialect: SQLiteFullTextBackend,
    PostgresFullTextBackend.dialect: PostgresFullTextBackend,
}


def backend_for_dialect(dialect_name: str) -> FullTextBackend:
    """Return the backend for a SQLAlchemy dialect name."""
    try:
        return _BACKENDS[dialect_name]()
    except KeyError:
        raise ValueError(f"No full-text backend for dialect '{dialect_name}'") from None


def get_backend(db: AsyncSession) -> FullTextBackend:
    return backend_for_dialect(db.get_bind().dialect.name)


async def execute_indexed(db: AsyncSession, stmt: Any, index_name: str):
    """
    Execute a statement that reads a full-text index.

    Raises:
        IndexUnavailableError: the index table does not exist. The session
            is rolled back first so the caller can keep using it.
    """
    backend = get_backend(db)
    try:
        return await db.execute(stmt)
    except DBAPIError as exc:
        if not backend.is_index_missing(exc, index_name):
            raise
        await db.rollback()
        raise IndexUnavailableError(index_name, backend.dialect) from exc


# ============================================================================
# Index maintenance
# ============================================================================


async def create_search_indexes(conn: AsyncConnection) -> bool:
    """
    Create the full-text index tables and sync triggers if they do not exist.

    Returns False when the database cannot host them (e.g. SQLite built
    without FTS5); searches then run on the substring fallback.
    """
    backend = backend_for_dialect(conn.dialect.name)
    try:
        await backend.create_indexes(conn)
    except DBAPIError as exc:
        logger.warning(f"Full-text indexes unavailable on {backend.dialect}: {exc.orig}")
        return False
    logger.info(f"Full-text indexes ready ({backend.dialect})")
    return True


async def drop_search_indexes(conn: AsyncConnection) -> None:
    await backend_for_dialect(conn.dialect.name).drop_indexes(conn)


async def reindex_all(db: AsyncSession) -> dict[str, int]:
    """
    Rebuild every index entry from the source tables.

    Returns:
        Number of posts and users indexed
    """
    for statement in get_backend(db).backfill_sql():
        await db.execute(text(statement))
    await db.commit()

    posts = (await db.execute(select(func.count(Post.id)))).scalar()
    users = (await db.execute(select(func.count(User.id)))).scalar()
    logger.info(f"Reindexed {posts} posts and {users} users")
    return {"posts": posts, "users": users}
