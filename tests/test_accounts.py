"""
Account and auth endpoint tests — registration (multipart form), lookup,
profile mutations, login/logout cookies, and account deletion.
"""
from pathlib import Path

import pytest
from httpx import AsyncClient

from app.config import settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _register(client: AsyncClient, name: str) -> dict:
    resp = await client.post("/api/accounts", data={
        "nickname": name,
        "email": f"{name}@example.com",
        "password": "pw",
    })
    assert resp.status_code == 201
    return resp.json()


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register(async_client: AsyncClient):
    """Registering returns 201 with the new user and no password."""
    user = await _register(async_client, "alice")
    assert user == {
        "user_id": 1,
        "nickname": "alice",
        "email": "alice@example.com",
        "profile_image_url": None,
    }


@pytest.mark.asyncio
async def test_register_with_profile_image(async_client: AsyncClient):
    """A profile image sent as multipart is stored and exposed as a URL."""
    resp = await async_client.post(
        "/api/accounts",
        data={"nickname": "pic", "email": "pic@example.com", "password": "pw"},
        files={"profileimg": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert resp.status_code == 201
    url = resp.json()["profile_image_url"]
    assert url.startswith("http://test/uploads/")
    assert url.endswith("-me.png")


@pytest.mark.asyncio
async def test_register_missing_field(async_client: AsyncClient):
    """Omitting a required field returns 400."""
    resp = await async_client.post("/api/accounts", data={"nickname": "x", "email": "x@example.com"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email(async_client: AsyncClient):
    await _register(async_client, "alice")
    resp = await async_client.post("/api/accounts", data={
        "nickname": "alice2", "email": "alice@example.com", "password": "pw",
    })
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Duplicate email"


@pytest.mark.asyncio
async def test_rejected_registration_stores_no_upload(async_client: AsyncClient):
    """A 409 on registration leaves nothing behind in UPLOAD_DIR."""
    await _register(async_client, "alice")
    resp = await async_client.post(
        "/api/accounts",
        data={"nickname": "alice", "email": "other@example.com", "password": "pw"},
        files={"profileimg": ("rejected-avatar.png", b"\x89PNG fake", "image/png")},
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Duplicate nickname"

    upload_dir = Path(settings.UPLOAD_DIR)
    stored = list(upload_dir.glob("*-rejected-avatar.png")) if upload_dir.exists() else []
    assert stored == []


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_accounts(async_client: AsyncClient):
    resp = await async_client.get("/api/accounts")
    assert resp.status_code == 200
    assert resp.json() == []

    await _register(async_client, "alice")
    await _register(async_client, "bob")
    resp = await async_client.get("/api/accounts")
    assert [u["nickname"] for u in resp.json()] == ["alice", "bob"]
    assert all("password" not in u for u in resp.json())


@pytest.mark.asyncio
async def test_get_account(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.get(f"/api/accounts/{user['user_id']}")
    assert resp.status_code == 200
    assert resp.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_get_account_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/accounts/99")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_nickname(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.put(f"/api/accounts/{user['user_id']}/nickname", json={"nickname": "alicia"})
    assert resp.status_code == 200
    assert resp.json()["nickname"] == "alicia"


@pytest.mark.asyncio
async def test_update_nickname_conflict(async_client: AsyncClient):
    await _register(async_client, "alice")
    bob = await _register(async_client, "bob")
    resp = await async_client.put(f"/api/accounts/{bob['user_id']}/nickname", json={"nickname": "alice"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_nickname_missing(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.put(f"/api/accounts/{user['user_id']}/nickname", json={})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_password(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.put(f"/api/accounts/{user['user_id']}/password", json={"password": "new"})
    assert resp.status_code == 200

    login = await async_client.post("/login", json={"email": "alice@example.com", "password": "new"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_update_password_unknown_user(async_client: AsyncClient):
    resp = await async_client.put("/api/accounts/9/password", json={"password": "new"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_profile_image(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.put(
        f"/api/accounts/{user['user_id']}/profileimg",
        files={"profileimg": ("avatar.jpg", b"jpeg-bytes", "image/jpeg")},
    )
    assert resp.status_code == 200
    assert resp.json()["profile_image_url"].endswith("-avatar.jpg")


@pytest.mark.asyncio
async def test_update_profile_image_without_file(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.put(f"/api/accounts/{user['user_id']}/profileimg")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_profile_image_unknown_user(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/accounts/9/profileimg",
        files={"profileimg": ("avatar.jpg", b"jpeg-bytes", "image/jpeg")},
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_sets_identity_cookies(async_client: AsyncClient):
    user = await _register(async_client, "alice")
    resp = await async_client.post("/login", json={"email": "alice@example.com", "password": "pw"})
    assert resp.status_code == 200
    assert resp.json()["user"]["user_id"] == user["user_id"]

    set_cookie = " ".join(resp.headers.get_list("set-cookie"))
    assert "isLogined=true" in set_cookie
    assert f"userId={user['user_id']}" in set_cookie
    assert "Max-Age=3600" in set_cookie


@pytest.mark.asyncio
async def test_login_invalid_credentials(async_client: AsyncClient):
    await _register(async_client, "alice")
    resp = await async_client.post("/login", json={"email": "alice@example.com", "password": "nope"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookies(async_client: AsyncClient):
    resp = await async_client.post("/logout")
    assert resp.status_code == 200
    set_cookie = " ".join(resp.headers.get_list("set-cookie"))
    assert 'isLogined=""' in set_cookie or "isLogined=;" in set_cookie
    assert "Max-Age=0" in set_cookie


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_account_cascades(async_client: AsyncClient):
    alice = await _register(async_client, "alice")
    async_client.cookies.set("userId", str(alice["user_id"]))
    post = await async_client.post("/api/posts", json={"title": "t", "contents": "c"})
    assert post.status_code == 201

    resp = await async_client.delete(f"/api/accounts/{alice['user_id']}")
    assert resp.status_code == 200
    assert "Max-Age=0" in " ".join(resp.headers.get_list("set-cookie"))

    assert (await async_client.get(f"/api/accounts/{alice['user_id']}")).status_code == 404
    assert (await async_client.get("/api/posts")).json() == []


@pytest.mark.asyncio
async def test_delete_account_not_found(async_client: AsyncClient):
    resp = await async_client.delete("/api/accounts/5")
    assert resp.status_code == 404
