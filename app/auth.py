"""
Session/auth gateway — the identity cookie pair.

After a successful login the client holds two cookies: ``isLogined`` and
``userId``. There is no server-side session table; the ``userId`` cookie
*is* the credential and is trusted as-is. Services never read cookies
themselves: routers resolve the caller with ``get_caller_id`` and pass it
on explicitly.
"""
from fastapi import Cookie, Response

from app.config import settings

LOGGED_IN_COOKIE = "isLogined"
USER_ID_COOKIE = "userId"


def issue_identity(response: Response, user_id: int) -> None:
    """Attach both identity cookies to *response* for COOKIE_MAX_AGE seconds."""
    for key, value in ((LOGGED_IN_COOKIE, "true"), (USER_ID_COOKIE, str(user_id))):
        response.set_cookie(
            key,
            value,
            max_age=settings.COOKIE_MAX_AGE,
            httponly=False,  # the frontend reads them
            secure=False,
            samesite="strict",
        )


def clear_identity(response: Response) -> None:
    response.delete_cookie(LOGGED_IN_COOKIE, path="/")
    response.delete_cookie(USER_ID_COOKIE, path="/")


def get_caller_id(user_id: str | None = Cookie(None, alias=USER_ID_COOKIE)) -> int | None:
    """
    FastAPI dependency returning the caller's user ID, or None when the
    cookie is missing, empty or not an integer.
    """
    if not user_id:
        return None
    try:
        return int(user_id)
    except ValueError:
        return None
