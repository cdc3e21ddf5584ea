"""
Database Models

Import models from this module to ensure they're registered with SQLAlchemy:

    from vidrecall.models import ContentEmbedding, SearchHistory
"""

from vidrecall.models.embedding import ContentEmbedding, ContentType, SearchHistory

__all__ = [
    "ContentEmbedding",
    "SearchHistory",
    "ContentType",
]
