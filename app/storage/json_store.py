"""
File-backed store — two JSON documents on disk.

Layout
------
- ``accounts.json``: ``{"users": [user, ...]}``
- ``posts.json``: ``{"<post_id>": post, ...}`` with each post embedding its
  ``comments`` list.

Every mutating verb holds the document's ``asyncio.Lock`` across the whole
load → mutate → save cycle, so writers to one document never interleave
inside this process. A transaction holds both locks for its whole body. Saves go through a temp file and ``os.replace`` so a
reader sees either the old or the new document, never half of one. File
I/O runs in a worker thread bounded by ``timeout`` seconds.
"""
import asyncio
import json
import logging
import os
import tempfile
from contextlib import AsyncExitStack, asynccontextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Callable

from app.exceptions import CorruptData, StorageUnavailable
from app.middleware import increment_storage_ops
from app.storage.base import (
    CommentRepository,
    PostRepository,
    Store,
    UserRepository,
    next_id,
)

logger = logging.getLogger(__name__)

# Documents whose lock the current task holds for a whole transaction.
_held_documents: ContextVar[frozenset] = ContextVar("held_documents", default=frozenset())


def _matches(record: dict, criteria: dict) -> bool:
    return all(record.get(key) == value for key, value in criteria.items())


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class JsonDocument:
    """One JSON file plus the lock that serializes its writers."""

    def __init__(
        self,
        path: Path,
        empty: Callable[[], Any],
        is_valid: Callable[[Any], bool],
        timeout: float,
    ) -> None:
        self.path = Path(path)
        self.lock = asyncio.Lock()
        self._empty = empty
        self._is_valid = is_valid
        self._timeout = timeout

    @asynccontextmanager
    async def locked(self):
        """
        Hold this document's lock for the block.

        A no-op when the current task already holds it through
        ``JsonStore.transaction``.
        """
        if self in _held_documents.get():
            yield
            return
        async with self.lock:
            yield

    def _read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=self.path.name + ".", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def _in_thread(self, func: Callable, *args) -> Any:
        """
        Run *func* in a worker thread, giving up after ``timeout`` seconds.

        A thread cannot be cancelled, so on timeout this still waits for it
        to finish before raising. The caller's lock therefore stays held
        until no late write can land.
        """
        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(task), self._timeout)
        except asyncio.TimeoutError:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.error("Late failure on %s: %s", self.path, task.exception())
            raise

    async def load(self) -> Any:
        """
        Return the parsed document.

        A missing file or whitespace-only content is an empty collection.
        Raises ``StorageUnavailable`` when the file cannot be read and
        ``CorruptData`` when it is not a well-formed document.
        """
        increment_storage_ops()
        try:
            text = await self._in_thread(self._read)
        except asyncio.TimeoutError as exc:
            logger.error("Timed out reading %s", self.path)
            raise StorageUnavailable(f"Timed out reading {self.path.name}") from exc
        except OSError as exc:
            logger.error("Cannot read %s: %s", self.path, exc)
            raise StorageUnavailable(f"Cannot read {self.path.name}") from exc

        if text is None or not text.strip():
            return self._empty()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Malformed JSON in %s: %s", self.path, exc)
            raise CorruptData(f"Malformed JSON in {self.path.name}") from exc

        if not self._is_valid(data):
            logger.error("Unexpected document shape in %s", self.path)
            raise CorruptData(f"Unexpected document shape in {self.path.name}")
        return data

    async def save(self, data: Any) -> None:
        """Replace the document on disk; durable once this returns."""
        increment_storage_ops()
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        try:
            await self._in_thread(self._write, payload)
        except asyncio.TimeoutError as exc:
            logger.error("Timed out writing %s", self.path)
            raise StorageUnavailable(f"Timed out writing {self.path.name}") from exc
        except OSError as exc:
            logger.error("Cannot write %s: %s", self.path, exc)
            raise StorageUnavailable(f"Cannot write {self.path.name}") from exc


def _empty_accounts() -> dict:
    return {"users": []}


def _valid_accounts(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("users"), list)


def _empty_posts() -> dict:
    return {}


def _valid_posts(data: Any) -> bool:
    return isinstance(data, dict) and all(isinstance(p, dict) for p in data.values())


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class JsonUserRepository(UserRepository):
    def __init__(self, document: JsonDocument) -> None:
        self._doc = document

    async def find_all(self) -> list[dict]:
        data = await self._doc.load()
        return data["users"]

    async def find_by_id(self, user_id: int) -> dict | None:
        for user in await self.find_all():
            if user["user_id"] == user_id:
                return user
        return None

    async def find_by(self, **criteria) -> list[dict]:
        return [u for u in await self.find_all() if _matches(u, criteria)]

    async def insert(self, fields: dict) -> dict:
        async with self._doc.locked():
            data = await self._doc.load()
            users = data["users"]
            user = {"user_id": next_id(u["user_id"] for u in users), **fields}
            users.append(user)
            await self._doc.save(data)
        return user

    async def update(self, user_id: int, fields: dict) -> dict | None:
        async with self._doc.locked():
            data = await self._doc.load()
            user = next((u for u in data["users"] if u["user_id"] == user_id), None)
            if user is None:
                return None
            user.update(fields)
            await self._doc.save(data)
        return user

    async def delete(self, user_id: int) -> bool:
        async with self._doc.locked():
            data = await self._doc.load()
            remaining = [u for u in data["users"] if u["user_id"] != user_id]
            if len(remaining) == len(data["users"]):
                return False
            data["users"] = remaining
            await self._doc.save(data)
        return True


class JsonPostRepository(PostRepository):
    def __init__(self, document: JsonDocument) -> None:
        self._doc = document

    async def find_all(self) -> list[dict]:
        data = await self._doc.load()
        return sorted(data.values(), key=lambda p: p["post_id"])

    async def find_by_id(self, post_id: int) -> dict | None:
        data = await self._doc.load()
        return data.get(str(post_id))

    async def find_by(self, **criteria) -> list[dict]:
        return [p for p in await self.find_all() if _matches(p, criteria)]

    async def insert(self, fields: dict) -> dict:
        async with self._doc.locked():
            data = await self._doc.load()
            post_id = next_id(int(key) for key in data)
            post = {"post_id": post_id, **fields, "comments": []}
            data[str(post_id)] = post
            await self._doc.save(data)
        return post

    async def update(self, post_id: int, fields: dict) -> dict | None:
        async with self._doc.locked():
            data = await self._doc.load()
            post = data.get(str(post_id))
            if post is None:
                return None
            post.update(fields)
            await self._doc.save(data)
        return post

    async def delete(self, post_id: int) -> bool:
        # Comments are embedded, so they go with the post in one save.
        async with self._doc.locked():
            data = await self._doc.load()
            if data.pop(str(post_id), None) is None:
                return False
            await self._doc.save(data)
        return True

    async def increment_views(self, post_id: int) -> int | None:
        async with self._doc.locked():
            data = await self._doc.load()
            post = data.get(str(post_id))
            if post is None:
                return None
            post["views"] = post.get("views", 0) + 1
            await self._doc.save(data)
        return post["views"]


class JsonCommentRepository(CommentRepository):
    """Comments live inside the posts document and share its lock."""

    def __init__(self, document: JsonDocument) -> None:
        self._doc = document

    async def find_all(self, post_id: int) -> list[dict] | None:
        data = await self._doc.load()
        post = data.get(str(post_id))
        if post is None:
            return None
        return post["comments"]

    async def find_by_id(self, post_id: int, comment_id: int) -> dict | None:
        comments = await self.find_all(post_id)
        if comments is None:
            return None
        return next((c for c in comments if c["comment_id"] == comment_id), None)

    async def insert(self, post_id: int, fields: dict) -> dict | None:
        async with self._doc.locked():
            data = await self._doc.load()
            post = data.get(str(post_id))
            if post is None:
                return None
            comments = post["comments"]
            comment = {
                "comment_id": next_id(c["comment_id"] for c in comments),
                "post_id": post_id,
                **fields,
            }
            comments.append(comment)
            await self._doc.save(data)
        return comment

    async def update(self, post_id: int, comment_id: int, fields: dict) -> dict | None:
        async with self._doc.locked():
            data = await self._doc.load()
            post = data.get(str(post_id))
            if post is None:
                return None
            comment = next((c for c in post["comments"] if c["comment_id"] == comment_id), None)
            if comment is None:
                return None
            comment.update(fields)
            await self._doc.save(data)
        return comment

    async def delete(self, post_id: int, comment_id: int) -> bool:
        async with self._doc.locked():
            data = await self._doc.load()
            post = data.get(str(post_id))
            if post is None:
                return False
            remaining = [c for c in post["comments"] if c["comment_id"] != comment_id]
            if len(remaining) == len(post["comments"]):
                return False
            post["comments"] = remaining
            await self._doc.save(data)
        return True


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class JsonStore(Store):
    def __init__(
        self,
        data_dir: str | Path,
        accounts_file: str = "accounts.json",
        posts_file: str = "posts.json",
        timeout: float = 5.0,
    ) -> None:
        data_dir = Path(data_dir)
        self.accounts_document = JsonDocument(
            data_dir / accounts_file, _empty_accounts, _valid_accounts, timeout
        )
        self.posts_document = JsonDocument(
            data_dir / posts_file, _empty_posts, _valid_posts, timeout
        )

        self.users = JsonUserRepository(self.accounts_document)
        self.posts = JsonPostRepository(self.posts_document)
        self.comments = JsonCommentRepository(self.posts_document)

    @asynccontextmanager
    async def transaction(self):
        """
        Snapshot both documents, run the body, and write the snapshots
        back if the body raises.

        Both document locks are held, accounts first, until the body ends,
        so no other writer can slip a change in that the restore would
        overwrite. Repository verbs called inside the body see the locks
        as already held. The files cannot be changed atomically together,
        so rollback is a compensating rewrite rather than a real
        transaction.
        """
        documents = (self.accounts_document, self.posts_document)
        async with AsyncExitStack() as stack:
            for doc in documents:
                await stack.enter_async_context(doc.locked())
            token = _held_documents.set(_held_documents.get() | set(documents))
            try:
                snapshots = [(doc, await doc.load()) for doc in documents]
                try:
                    yield
                except Exception:
                    logger.warning(
                        "Transaction failed; restoring %d JSON document(s)", len(snapshots)
                    )
                    for doc, data in snapshots:
                        try:
                            await doc.save(data)
                        except StorageUnavailable:
                            logger.error("Could not restore %s; it may be inconsistent", doc.path)
                    raise
            finally:
                _held_documents.reset(token)
