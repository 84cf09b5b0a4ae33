"""
Storage contract shared by every backend.

Services only ever talk to a ``Store`` and its three repositories; they
never import a concrete backend. Records cross this boundary as plain
dicts with snake_case keys:

- user:    user_id, nickname, email, password, profile_image_url
- post:    post_id, title, contents, image_url, author_id, created_at,
           views, comments
- comment: comment_id, post_id, content, author_id, created_at, updated_at

ID allocation is max + 1 (1 for an empty collection), computed by the
backend at insert time. Deleting the highest ID frees it for reuse.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Iterable


def next_id(existing_ids: Iterable[int]) -> int:
    """Return the ID for a new record: the highest existing ID plus one."""
    return max(existing_ids, default=0) + 1


class UserRepository(ABC):
    @abstractmethod
    async def find_all(self) -> list[dict]:
        ...

    @abstractmethod
    async def find_by_id(self, user_id: int) -> dict | None:
        ...

    @abstractmethod
    async def find_by(self, **criteria) -> list[dict]:
        """Return users whose fields equal every value in *criteria*."""

    @abstractmethod
    async def insert(self, fields: dict) -> dict:
        ...

    @abstractmethod
    async def update(self, user_id: int, fields: dict) -> dict | None:
        ...

    @abstractmethod
    async def delete(self, user_id: int) -> bool:
        ...


class PostRepository(ABC):
    @abstractmethod
    async def find_all(self) -> list[dict]:
        ...

    @abstractmethod
    async def find_by_id(self, post_id: int) -> dict | None:
        ...

    @abstractmethod
    async def find_by(self, **criteria) -> list[dict]:
        ...

    @abstractmethod
    async def insert(self, fields: dict) -> dict:
        ...

    @abstractmethod
    async def update(self, post_id: int, fields: dict) -> dict | None:
        ...

    @abstractmethod
    async def delete(self, post_id: int) -> bool:
        """Remove the post together with all of its comments."""

    @abstractmethod
    async def increment_views(self, post_id: int) -> int | None:
        """Add one to the view counter atomically; None if the post is absent."""


class CommentRepository(ABC):
    """Comments addressed by (post_id, comment_id).

    Every verb returns None (or False for delete) when the parent post is
    absent, so a post deleted between a service's existence check and the
    write is reported the same way as a missing comment.
    """

    @abstractmethod
    async def find_all(self, post_id: int) -> list[dict] | None:
        ...

    @abstractmethod
    async def find_by_id(self, post_id: int, comment_id: int) -> dict | None:
        ...

    @abstractmethod
    async def insert(self, post_id: int, fields: dict) -> dict | None:
        ...

    @abstractmethod
    async def update(self, post_id: int, comment_id: int, fields: dict) -> dict | None:
        ...

    @abstractmethod
    async def delete(self, post_id: int, comment_id: int) -> bool:
        ...


class Store(ABC):
    users: UserRepository
    posts: PostRepository
    comments: CommentRepository

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Group several repository calls into one all-or-nothing unit.

        If the body raises, every change made inside it is undone before
        the exception propagates.
        """
