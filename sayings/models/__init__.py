from .post import Post, PostEmotion, PostTopic, Sentiment
from .search_click import SearchClick
from .search_query import SearchQuery
from .topic import Topic
from .user import User

__all__ = [
    "Post",
    "PostEmotion",
    "PostTopic",
    "Sentiment",
    "SearchClick",
    "SearchQuery",
    "Topic",
    "User",
]
