"""
Video catalog collaborator.

The search service only needs sets of video IDs from the catalog: which
videos an owner has, and which match a category, collection or favorite
flag. The real catalog lives with the video CRUD layer; this module defines
the contract and an in-memory implementation for development and tests.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Union, runtime_checkable

from vidrecall.schemas.identity import AnonymousSessionId, UserId


Owner = Union[UserId, AnonymousSessionId]


@runtime_checkable
class VideoCatalog(Protocol):
    """Resolves video attributes that are not stored on chunks."""

    async def videos_for_owner(self, owner: Owner) -> set[int]:
        """IDs of every video the owner has saved."""
        ...

    async def videos_in_category(self, owner: Owner, category_id: int) -> set[int]:
        """IDs of the owner's videos in a category."""
        ...

    async def videos_in_collection(self, owner: Owner, collection_id: int) -> set[int]:
        """IDs of the owner's videos in a collection."""
        ...

    async def videos_by_favorite(self, owner: Owner, is_favorite: bool) -> set[int]:
        """IDs of the owner's videos whose favorite flag equals ``is_favorite``."""
        ...


@dataclass
class CatalogVideo:
    """What the in-memory catalog knows about one video."""

    video_id: int
    owner: Owner
    category_id: Optional[int] = None
    collection_ids: set[int] = field(default_factory=set)
    is_favorite: bool = False


class InMemoryVideoCatalog:
    """
    Dictionary-backed VideoCatalog.

    Usage:
    ------
    catalog = InMemoryVideoCatalog()
    catalog.add(CatalogVideo(video_id=1, owner=UserId(user_id=7), category_id=3))
    """

    def __init__(self, videos: Optional[list[CatalogVideo]] = None):
        self._videos: dict[int, CatalogVideo] = {}
        for video in videos or []:
            self.add(video)

    def add(self, video: CatalogVideo) -> None:
        self._videos[video.video_id] = video

    def remove(self, video_id: int) -> None:
        self._videos.pop(video_id, None)

    def _owned(self, owner: Owner) -> list[CatalogVideo]:
        return [v for v in self._videos.values() if v.owner == owner]

    async def videos_for_owner(self, owner: Owner) -> set[int]:
        return {v.video_id for v in self._owned(owner)}

    async def videos_in_category(self, owner: Owner, category_id: int) -> set[int]:
        return {v.video_id for v in self._owned(owner) if v.category_id == category_id}

    async def videos_in_collection(self, owner: Owner, collection_id: int) -> set[int]:
        return {v.video_id for v in self._owned(owner) if collection_id in v.collection_ids}

    async def videos_by_favorite(self, owner: Owner, is_favorite: bool) -> set[int]:
        return {v.video_id for v in self._owned(owner) if v.is_favorite == is_favorite}
