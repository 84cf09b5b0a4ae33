"""
Comment service — comments scoped to a parent post.

Comment IDs are unique within their post only. By default anyone may edit
or delete any comment, as the original board allowed; setting
``ENFORCE_COMMENT_AUTHORSHIP`` restricts both to the comment's author.

Comments returned from here carry their author's ``nickname`` and
``profile_image_url``. Comment authors are not foreign keys, so both are
None once the author's account is gone.
"""
from app.config import settings
from app.exceptions import Forbidden, NotFound, ValidationError
from app.services.post_service import now_timestamp
from app.storage import Store


async def _require_comments(store: Store, post_id: int) -> list[dict]:
    comments = await store.comments.find_all(post_id)
    if comments is None:
        raise NotFound("Post not found")
    return comments


async def _require_comment(store: Store, post_id: int, comment_id: int) -> dict:
    comments = await _require_comments(store, post_id)
    comment = next((c for c in comments if c["comment_id"] == comment_id), None)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


async def _with_authors(store: Store, comments: list[dict]) -> list[dict]:
    authors: dict[int, dict | None] = {}
    enriched = []
    for comment in comments:
        author_id = comment["author_id"]
        if author_id not in authors:
            authors[author_id] = await store.users.find_by_id(author_id)
        author = authors[author_id] or {}
        enriched.append(
            {
                **comment,
                "nickname": author.get("nickname"),
                "profile_image_url": author.get("profile_image_url"),
            }
        )
    return enriched


async def _with_author(store: Store, comment: dict) -> dict:
    return (await _with_authors(store, [comment]))[0]


def _check_authorship(comment: dict, requester_id: int | None) -> None:
    if settings.ENFORCE_COMMENT_AUTHORSHIP and comment["author_id"] != requester_id:
        raise Forbidden("Only the author can change this comment")


async def get_comments(store: Store, post_id: int) -> list[dict]:
    return await _with_authors(store, await _require_comments(store, post_id))


async def get_comment(store: Store, post_id: int, comment_id: int) -> dict:
    return await _with_author(store, await _require_comment(store, post_id, comment_id))


async def add_comment(
    store: Store, post_id: int, content: str | None, author_id: int | None
) -> dict:
    """
    Append a comment to the post and return it.

    Raises ValidationError before touching storage when content or author
    is missing, and NotFound when the post does not exist.
    """
    if not content or author_id is None:
        raise ValidationError()

    comment = await store.comments.insert(
        post_id,
        {
            "content": content,
            "author_id": author_id,
            "created_at": now_timestamp(),
            "updated_at": None,
        },
    )
    if comment is None:
        raise NotFound("Post not found")
    return await _with_author(store, comment)


async def update_comment(
    store: Store,
    post_id: int,
    comment_id: int,
    content: str | None,
    requester_id: int | None = None,
) -> dict:
    if not content:
        raise ValidationError()
    comment = await _require_comment(store, post_id, comment_id)
    _check_authorship(comment, requester_id)

    updated = await store.comments.update(
        post_id, comment_id, {"content": content, "updated_at": now_timestamp()}
    )
    if updated is None:
        raise NotFound("Comment not found")
    return await _with_author(store, updated)


async def delete_comment(
    store: Store, post_id: int, comment_id: int, requester_id: int | None = None
) -> None:
    comment = await _require_comment(store, post_id, comment_id)
    _check_authorship(comment, requester_id)

    if not await store.comments.delete(post_id, comment_id):
        raise NotFound("Comment not found")
