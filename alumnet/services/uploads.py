from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from ..config import get_settings
from .errors import InvalidInput

S = get_settings()
log = logging.getLogger("alumnet.uploads")

UPLOAD_URL_PREFIX = "/uploads"
IMAGE_TYPES = ("image/",)
MEDIA_TYPES = ("image/", "video/")

_SAFE_EXT = re.compile(r"^\.[a-z0-9]{1,8}$")


class UploadRejected(InvalidInput): ...


@dataclass
class PendingUpload:
    data: bytes
    mime: str
    ext: str


@dataclass
class StoredUpload:
    url: str
    mime: str
    size: int


def upload_dir() -> Path:
    return Path(S.UPLOAD_DIR)


def has_file(file: Optional[UploadFile]) -> bool:
    # browsers submit an empty part when the picker is left blank
    return file is not None and bool(file.filename)


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(data)


async def read_upload(
    file: UploadFile,
    *,
    allowed_prefixes: Sequence[str],
    max_bytes: int,
    rejected_message: str,
) -> PendingUpload:
    """Check type and size and buffer the file; nothing touches disk yet."""
    mime = (file.content_type or "").lower()
    if not any(mime.startswith(p) for p in allowed_prefixes):
        raise UploadRejected(rejected_message)

    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise UploadRejected("File too large")

    ext = Path(file.filename or "").suffix.lower()
    if not _SAFE_EXT.match(ext):
        ext = ""
    return PendingUpload(data=data, mime=mime, ext=ext)


async def store_upload(pending: PendingUpload, *, owner: str) -> StoredUpload:
    name = f"{int(time.time() * 1000)}-{owner}-{secrets.token_hex(4)}{pending.ext}"
    await run_in_threadpool(_write, upload_dir() / name, pending.data)
    log.info("upload_saved", extra={"file": name, "mime": pending.mime, "size": len(pending.data)})
    return StoredUpload(url=f"{UPLOAD_URL_PREFIX}/{name}", mime=pending.mime, size=len(pending.data))


def discard(stored: Sequence[StoredUpload]) -> None:
    for s in stored:
        (upload_dir() / s.url.rsplit("/", 1)[1]).unlink(missing_ok=True)


async def save_upload(
    file: UploadFile,
    *,
    owner: str,
    allowed_prefixes: Sequence[str],
    max_bytes: int,
    rejected_message: str,
) -> StoredUpload:
    pending = await read_upload(
        file, allowed_prefixes=allowed_prefixes, max_bytes=max_bytes, rejected_message=rejected_message
    )
    return await store_upload(pending, owner=owner)
