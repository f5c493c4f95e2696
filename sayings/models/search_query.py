"""
SearchQuery Model

Tracks search queries for analytics and click-through correlation.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String

from sayings.database import Base


class SearchQuery(Base):
    __tablename__ = "search_queries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    query = Column(String(500), nullable=False)
    normalized_query = Column(String(500), nullable=True, index=True)
    sort = Column(String(20), nullable=False, default="relevance")
    mode = Column(String(20), nullable=False, default="keyword")
    filters = Column(JSON, nullable=True)
    results_count = Column(Integer, nullable=False, default=0)
    typeahead = Column(Boolean, nullable=False, default=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    execution_time_ms = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_search_queries_created_at", "created_at"),
        Index("ix_search_queries_query_created_at", "query", "created_at"),
    )
