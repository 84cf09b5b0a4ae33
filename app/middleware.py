import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# Storage round-trips made while serving the current request.
storage_ops_var: ContextVar[int] = ContextVar("storage_ops", default=0)


def increment_storage_ops() -> None:
    """Count one storage round-trip (a JSON document load/save) for this request."""
    storage_ops_var.set(storage_ops_var.get() + 1)


def install_query_counter(engine) -> None:
    """
    Count every SQL statement *engine* executes as one storage op.

    Hooked on ``before_cursor_execute`` so the extra SELECTs issued by
    ``selectinload`` are counted too. Call once per engine.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_statement(conn, cursor, statement, parameters, context, executemany):
        increment_storage_ops()


class TimingMiddleware:
    """
    Adds ``X-Response-Time-Ms`` and ``X-Storage-Ops`` to every HTTP response.

    Written as plain ASGI rather than ``BaseHTTPMiddleware``: the latter runs
    the app in a child task, and the counter set there would not be visible
    here when the response headers go out.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        token = storage_ops_var.set(0)
        start = time.perf_counter()

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-response-time-ms", str(elapsed_ms).encode()),
                    (b"x-storage-ops", str(storage_ops_var.get()).encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_headers)
        finally:
            storage_ops_var.reset(token)
