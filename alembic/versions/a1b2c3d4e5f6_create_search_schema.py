"""create users, posts, topics, search analytics and full-text index tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa

from alembic import op
from sayings.services.fulltext import backend_for_dialect

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar", sa.String(), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # 2. Posts and their extracted topics/emotions
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("audio_url", sa.String(), nullable=True),
        sa.Column("ipfs_hash", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column(
            "general_sentiment",
            sa.Enum("POSITIVE", "NEGATIVE", "NEUTRAL", name="sentiment"),
            nullable=False,
            server_default="NEUTRAL",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_posts_id", "posts", ["id"])
    op.create_index("ix_posts_user_id", "posts", ["user_id"])
    op.create_index("ix_posts_created_at_id", "posts", ["created_at", "id"])
    op.create_index("ix_posts_timestamp", "posts", ["timestamp"])
    op.create_index("ix_posts_general_sentiment", "posts", ["general_sentiment"])

    op.create_table(
        "post_topics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic", sa.String(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
    )
    op.create_index("ix_post_topics_post_id", "post_topics", ["post_id"])
    op.create_index("ix_post_topics_topic", "post_topics", ["topic"])

    op.create_table(
        "post_emotions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False, server_default="0"),
    )
    op.create_index("ix_post_emotions_post_id", "post_emotions", ["post_id"])
    op.create_index("ix_post_emotions_name", "post_emotions", ["name"])

    # 3. Topics
    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("popularity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_topics_id", "topics", ["id"])
    op.create_index("ix_topics_popularity", "topics", ["popularity"])

    # 4. Search analytics
    op.create_table(
        "search_queries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("query", sa.String(500), nullable=False),
        sa.Column("normalized_query", sa.String(500), nullable=True),
        sa.Column("sort", sa.String(20), nullable=False, server_default="relevance"),
        sa.Column("mode", sa.String(20), nullable=False, server_default="keyword"),
        sa.Column("filters", sa.JSON(), nullable=True),
        sa.Column("results_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("typeahead", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("execution_time_ms", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_search_queries_id", "search_queries", ["id"])
    op.create_index("ix_search_queries_normalized_query", "search_queries", ["normalized_query"])
    op.create_index("ix_search_queries_created_at", "search_queries", ["created_at"])
    op.create_index("ix_search_queries_query_created_at", "search_queries", ["query", "created_at"])

    op.create_table(
        "search_clicks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("query_id", sa.Integer(), nullable=False),
        sa.Column("target_type", sa.String(10), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_search_clicks_id", "search_clicks", ["id"])
    op.create_index("ix_search_clicks_query_id", "search_clicks", ["query_id"])
    op.create_index("ix_search_clicks_created_at", "search_clicks", ["created_at"])

    # 5. Full-text index tables and the triggers that keep them in sync
    backend = backend_for_dialect(op.get_bind().dialect.name)
    for statement in backend.index_ddl():
        op.execute(statement)

    # 6. Backfill rows that existed before the triggers
    for statement in backend.backfill_sql():
        op.execute(statement)


def downgrade() -> None:
    backend = backend_for_dialect(op.get_bind().dialect.name)
    for statement in backend.drop_ddl():
        op.execute(statement)

    op.drop_table("search_clicks")
    op.drop_table("search_queries")
    op.drop_table("topics")
    op.drop_table("post_emotions")
    op.drop_table("post_topics")
    op.drop_table("posts")
    op.drop_table("users")
    sa.Enum(name="sentiment").drop(op.get_bind(), checkfirst=True)
