"""Saving multipart image uploads under UPLOAD_DIR, served at /uploads."""
import asyncio
import logging
import time
from pathlib import Path

from fastapi import Request, UploadFile

from app.config import settings
from app.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


def has_file(upload: UploadFile | None) -> bool:
    """Browsers send an empty part with no filename when nothing was chosen."""
    return upload is not None and bool(upload.filename)


async def save_upload(request: Request, upload: UploadFile) -> str:
    """
    Store *upload* as ``<epoch-ms>-<basename>`` and return its public URL.
    """
    filename = f"{int(time.time() * 1000)}-{Path(upload.filename).name}"
    destination = Path(settings.UPLOAD_DIR) / filename
    content = await upload.read()

    def _write() -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)

    try:
        await asyncio.to_thread(_write)
    except OSError as exc:
        logger.error("Cannot store upload %s: %s", destination, exc)
        raise StorageUnavailable("Could not store the uploaded file") from exc

    return str(request.url_for("uploads", path=filename))
