"""
Post service — business logic for the Post aggregate.

Design notes
------------
- Only a post's author may update or delete it. The check is plain
  equality between the caller identity and ``author_id``; a missing
  identity never matches. There are no roles and no admin override.
- Updates are partial: fields the caller did not send, or sent as null or
  as an empty string, keep their stored value.
- View counting goes through ``PostRepository.increment_views`` so the
  read-modify-write happens under the backend's lock, not here.
"""
import logging
from datetime import datetime

from app.exceptions import Forbidden, NotFound, Unauthenticated, ValidationError
from app.schemas import PostCreate, PostUpdate
from app.storage import Store

logger = logging.getLogger(__name__)

# Fields a caller may change through update_post.
_EDITABLE_FIELDS: frozenset[str] = frozenset({"title", "contents", "image_url"})


def now_timestamp() -> str:
    """Current local time as ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


async def _require_post(store: Store, post_id: int) -> dict:
    post = await store.posts.find_by_id(post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


def _is_author(post: dict, requester_id: int | None) -> bool:
    return requester_id is not None and post["author_id"] == requester_id


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(store: Store) -> list[dict]:
    return await store.posts.find_all()


async def get_post(store: Store, post_id: int) -> dict:
    return await _require_post(store, post_id)


async def create_post(store: Store, author_id: int | None, data: PostCreate) -> dict:
    """
    Create a post owned by *author_id*.

    The author must be an existing user; an absent or unknown identity is
    treated as not logged in.
    """
    if author_id is None or await store.users.find_by_id(author_id) is None:
        raise Unauthenticated()
    if not data.title or not data.contents:
        raise ValidationError("Title and contents are required")

    post = await store.posts.insert(
        {
            "title": data.title,
            "contents": data.contents,
            "image_url": data.image_url,
            "author_id": author_id,
            "created_at": now_timestamp(),
            "views": 0,
        }
    )
    logger.info("User %s created post %s", author_id, post["post_id"])
    return post


async def check_edit_permission(store: Store, post_id: int, requester_id: int | None) -> bool:
    """Return whether *requester_id* may update or delete the post."""
    post = await _require_post(store, post_id)
    return _is_author(post, requester_id)


async def update_post(
    store: Store, post_id: int, requester_id: int | None, data: PostUpdate
) -> dict:
    """
    Apply the fields explicitly present in *data* and return the post.

    ``model_dump(exclude_unset=True)`` keeps omitted fields out of the
    update; explicit nulls and empty strings are dropped as well.
    """
    post = await _require_post(store, post_id)
    if not _is_author(post, requester_id):
        raise Forbidden("Only the author can edit this post")

    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if field in _EDITABLE_FIELDS and value not in (None, "")
    }
    if not changes:
        return post

    updated = await store.posts.update(post_id, changes)
    if updated is None:
        raise NotFound("Post not found")
    return updated


async def delete_post(store: Store, post_id: int, requester_id: int | None) -> None:
    """Delete the post and all of its comments."""
    post = await _require_post(store, post_id)
    if not _is_author(post, requester_id):
        raise Forbidden("Only the author can delete this post")

    if not await store.posts.delete(post_id):
        raise NotFound("Post not found")
    logger.info("User %s deleted post %s", requester_id, post_id)


async def increment_views(store: Store, post_id: int) -> int:
    views = await store.posts.increment_views(post_id)
    if views is None:
        raise NotFound("Post not found")
    return views


async def delete_posts_by_author(store: Store, author_id: int) -> int:
    """
    Remove every post written by *author_id*; returns how many.

    Used by account deletion. Authorship is implied, so no permission
    check is made here.
    """
    posts = await store.posts.find_by(author_id=author_id)
    for post in posts:
        await store.posts.delete(post["post_id"])
    return len(posts)
