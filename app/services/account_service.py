"""
Account service — registration, lookup, login and profile mutations for
the User aggregate.

Passwords are stored and compared in plaintext, exactly as the original
accounts document did; nothing here hashes them. Responses are filtered
through ``public_user`` so the password never leaves the service layer
through the HTTP surface.
"""
import logging

from app.exceptions import (
    DuplicateEmail,
    DuplicateNickname,
    InvalidCredentials,
    NotFound,
    ValidationError,
)
from app.services import post_service
from app.storage import Store

logger = logging.getLogger(__name__)


def public_user(user: dict) -> dict:
    """Return *user* without its password."""
    return {key: value for key, value in user.items() if key != "password"}


async def _require_user(store: Store, user_id: int) -> dict:
    user = await store.users.find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def _ensure_nickname_free(store: Store, nickname: str, user_id: int | None = None) -> None:
    holders = await store.users.find_by(nickname=nickname)
    if any(u["user_id"] != user_id for u in holders):
        raise DuplicateNickname()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def check_registration(
    store: Store, nickname: str | None, email: str | None, password: str | None
) -> None:
    """Raise the error ``register`` would raise for these fields, if any."""
    if not nickname or not email or not password:
        raise ValidationError("All fields are required")
    if await store.users.find_by(email=email):
        raise DuplicateEmail()
    await _ensure_nickname_free(store, nickname)


async def register(
    store: Store,
    nickname: str | None,
    email: str | None,
    password: str | None,
    profile_image_url: str | None = None,
) -> dict:
    """
    Create a user and return it.

    Both email and nickname must be unused. The new ``user_id`` is the
    highest existing one plus one.
    """
    await check_registration(store, nickname, email, password)

    user = await store.users.insert(
        {
            "nickname": nickname,
            "email": email,
            "password": password,
            "profile_image_url": profile_image_url,
        }
    )
    logger.info("Registered user %s (%s)", user["user_id"], nickname)
    return public_user(user)


async def get_users(store: Store) -> list[dict]:
    return [public_user(u) for u in await store.users.find_all()]


async def get_user(store: Store, user_id: int) -> dict:
    return public_user(await _require_user(store, user_id))


async def update_nickname(store: Store, user_id: int, nickname: str | None) -> dict:
    if not nickname:
        raise ValidationError("Nickname is required")
    await _require_user(store, user_id)
    await _ensure_nickname_free(store, nickname, user_id)
    user = await store.users.update(user_id, {"nickname": nickname})
    if user is None:
        raise NotFound("User not found")
    return public_user(user)


async def update_password(store: Store, user_id: int, password: str | None) -> dict:
    if not password:
        raise ValidationError("Password is required")
    user = await store.users.update(user_id, {"password": password})
    if user is None:
        raise NotFound("User not found")
    return public_user(user)


async def update_profile_image(store: Store, user_id: int, url: str) -> dict:
    user = await store.users.update(user_id, {"profile_image_url": url})
    if user is None:
        raise NotFound("User not found")
    return public_user(user)


async def login(store: Store, email: str, password: str) -> dict:
    """Return the user whose email and password both match exactly."""
    for user in await store.users.find_by(email=email):
        if user["password"] == password:
            return public_user(user)
    logger.warning("Rejected login for %r", email)
    raise InvalidCredentials()


async def delete_account(store: Store, user_id: int) -> int:
    """
    Delete a user together with every post they wrote (and the comments
    on those posts). Returns the number of posts removed.

    Posts go first, then the user, inside one ``store.transaction()``: if
    any step fails the store is restored and the user still exists.
    """
    await _require_user(store, user_id)

    async with store.transaction():
        removed = await post_service.delete_posts_by_author(store, user_id)
        if not await store.users.delete(user_id):
            raise NotFound("User not found")

    logger.info("Deleted user %s and %d post(s)", user_id, removed)
    return removed
