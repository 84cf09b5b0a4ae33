"""
Relational store — the same repository contract over SQLAlchemy.

Design notes
------------
- Repositories share one ``AsyncSession``; they flush but never commit.
  The transaction boundary is owned by the ``get_store`` dependency,
  mirroring how the JSON store saves each verb immediately.
- IDs follow the same max + 1 policy as the JSON store (``SELECT max``
  inside the request transaction) instead of a database sequence.
- Every SELECT runs with ``populate_existing`` so objects already in the
  identity map are refreshed, and relationship collections are loaded
  with ``selectinload`` (relationships default to ``noload``).
- Deletes are bulk ``DELETE`` statements; a post's comments are removed
  before the post in the same transaction.
"""
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import Comment, Post, User
from app.storage.base import (
    CommentRepository,
    PostRepository,
    Store,
    UserRepository,
)

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    return {
        "user_id": user.id,
        "nickname": user.nickname,
        "email": user.email,
        "password": user.password,
        "profile_image_url": user.profile_image_url,
    }


def _comment_to_dict(comment: Comment) -> dict:
    return {
        "comment_id": comment.id,
        "post_id": comment.post_id,
        "content": comment.content,
        "author_id": comment.author_id,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


def _post_to_dict(post: Post) -> dict:
    return {
        "post_id": post.id,
        "title": post.title,
        "contents": post.contents,
        "image_url": post.image_url,
        "author_id": post.author_id,
        "created_at": post.created_at,
        "views": post.views,
        "comments": [_comment_to_dict(c) for c in post.comments],
    }


async def _next_id(session: AsyncSession, column, *where) -> int:
    q = select(func.coalesce(func.max(column), 0))
    if where:
        q = q.where(*where)
    return (await session.execute(q)).scalar_one() + 1


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class SqlUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get(self, user_id: int) -> User | None:
        q = (
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(q)).scalar_one_or_none()

    async def find_all(self) -> list[dict]:
        q = select(User).order_by(User.id).execution_options(populate_existing=True)
        result = await self._session.execute(q)
        return [_user_to_dict(u) for u in result.scalars().all()]

    async def find_by_id(self, user_id: int) -> dict | None:
        user = await self._get(user_id)
        return _user_to_dict(user) if user else None

    async def find_by(self, **criteria) -> list[dict]:
        q = (
            select(User)
            .filter_by(**criteria)
            .order_by(User.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(q)
        return [_user_to_dict(u) for u in result.scalars().all()]

    async def insert(self, fields: dict) -> dict:
        user = User(id=await _next_id(self._session, User.id), **fields)
        self._session.add(user)
        await self._session.flush()
        return _user_to_dict(user)

    async def update(self, user_id: int, fields: dict) -> dict | None:
        user = await self._get(user_id)
        if user is None:
            return None
        for field, value in fields.items():
            setattr(user, field, value)
        await self._session.flush()
        return _user_to_dict(user)

    async def delete(self, user_id: int) -> bool:
        result = await self._session.execute(delete(User).where(User.id == user_id))
        return result.rowcount > 0


# Public record keys that differ from the ORM attribute names.
_POST_FIELDS = {"post_id": "id"}


class SqlPostRepository(PostRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _select(self):
        return (
            select(Post)
            .options(selectinload(Post.comments))
            .execution_options(populate_existing=True)
        )

    async def _get(self, post_id: int) -> Post | None:
        result = await self._session.execute(self._select().where(Post.id == post_id))
        return result.scalar_one_or_none()

    async def find_all(self) -> list[dict]:
        result = await self._session.execute(self._select().order_by(Post.id))
        return [_post_to_dict(p) for p in result.scalars().all()]

    async def find_by_id(self, post_id: int) -> dict | None:
        post = await self._get(post_id)
        return _post_to_dict(post) if post else None

    async def find_by(self, **criteria) -> list[dict]:
        criteria = {_POST_FIELDS.get(k, k): v for k, v in criteria.items()}
        q = self._select().filter_by(**criteria).order_by(Post.id)
        result = await self._session.execute(q)
        return [_post_to_dict(p) for p in result.scalars().all()]

    async def insert(self, fields: dict) -> dict:
        post = Post(id=await _next_id(self._session, Post.id), **fields)
        self._session.add(post)
        await self._session.flush()
        # New post: the noload comments collection is simply empty.
        return _post_to_dict(post)

    async def update(self, post_id: int, fields: dict) -> dict | None:
        post = await self._get(post_id)
        if post is None:
            return None
        for field, value in fields.items():
            setattr(post, field, value)
        await self._session.flush()
        return _post_to_dict(post)

    async def delete(self, post_id: int) -> bool:
        await self._session.execute(delete(Comment).where(Comment.post_id == post_id))
        result = await self._session.execute(delete(Post).where(Post.id == post_id))
        return result.rowcount > 0

    async def increment_views(self, post_id: int) -> int | None:
        # Row lock on databases that support it (PostgreSQL); SQLite
        # ignores FOR UPDATE and relies on its database-level write lock.
        q = (
            select(Post)
            .where(Post.id == post_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        post = (await self._session.execute(q)).scalar_one_or_none()
        if post is None:
            return None
        post.views += 1
        await self._session.flush()
        return post.views


class SqlCommentRepository(CommentRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _post_exists(self, post_id: int) -> bool:
        q = select(Post.id).where(Post.id == post_id)
        return (await self._session.execute(q)).scalar_one_or_none() is not None

    async def _get(self, post_id: int, comment_id: int) -> Comment | None:
        q = (
            select(Comment)
            .where(Comment.post_id == post_id, Comment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(q)).scalar_one_or_none()

    async def find_all(self, post_id: int) -> list[dict] | None:
        if not await self._post_exists(post_id):
            return None
        q = (
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(Comment.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(q)
        return [_comment_to_dict(c) for c in result.scalars().all()]

    async def find_by_id(self, post_id: int, comment_id: int) -> dict | None:
        comment = await self._get(post_id, comment_id)
        return _comment_to_dict(comment) if comment else None

    async def insert(self, post_id: int, fields: dict) -> dict | None:
        if not await self._post_exists(post_id):
            return None
        comment_id = await _next_id(self._session, Comment.id, Comment.post_id == post_id)
        comment = Comment(post_id=post_id, id=comment_id, **fields)
        self._session.add(comment)
        await self._session.flush()
        return _comment_to_dict(comment)

    async def update(self, post_id: int, comment_id: int, fields: dict) -> dict | None:
        comment = await self._get(post_id, comment_id)
        if comment is None:
            return None
        for field, value in fields.items():
            setattr(comment, field, value)
        await self._session.flush()
        return _comment_to_dict(comment)

    async def delete(self, post_id: int, comment_id: int) -> bool:
        result = await self._session.execute(
            delete(Comment).where(Comment.post_id == post_id, Comment.id == comment_id)
        )
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SqlStore(Store):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = SqlUserRepository(session)
        self.posts = SqlPostRepository(session)
        self.comments = SqlCommentRepository(session)

    @asynccontextmanager
    async def transaction(self):
        """Flush on success; roll the whole session back on failure."""
        try:
            yield
            await self.session.flush()
        except Exception:
            await self.session.rollback()
            raise
