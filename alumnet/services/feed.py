from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import DEFAULT_AVATAR, Post, User
from ..repos import posts as posts_repo
from .errors import InvalidInput, NotFound
from .uploads import MEDIA_TYPES, discard, has_file, read_upload, store_upload

S = get_settings()
log = logging.getLogger("alumnet.feed")

ANONYMOUS = "Anonymous"


async def create_post(
    db: AsyncSession,
    *,
    author: Optional[User],
    content: Optional[str],
    files: Sequence[UploadFile] = (),
) -> Post:
    text = (content or "").strip()
    files = [f for f in files if has_file(f)]
    if not text and not files:
        raise InvalidInput("Content or media is required")
    if len(files) > S.POST_MEDIA_MAX_FILES:
        raise InvalidInput(f"At most {S.POST_MEDIA_MAX_FILES} media files allowed")

    # all files pass validation before the first one is written
    pending = [
        await read_upload(
            f,
            allowed_prefixes=MEDIA_TYPES,
            max_bytes=S.POST_MEDIA_MAX_BYTES,
            rejected_message="Only images/videos allowed",
        )
        for f in files
    ]

    owner = str(author.id) if author else "anon"
    stored = []
    try:
        for p in pending:
            stored.append(await store_upload(p, owner=owner))
        post = await posts_repo.create_post(
            db,
            author_id=author.id if author else None,
            author_name=author.username if author else ANONYMOUS,
            author_avatar=(author.profile_pic if author else None) or DEFAULT_AVATAR,
            content=text,
            media=[(s.url, s.mime, s.size) for s in stored],
        )
        await db.commit()
    except Exception:
        await db.rollback()
        discard(stored)
        raise

    log.info("post_created", extra={"post_id": str(post.id), "media": len(stored)})
    return post


async def toggle_like(db: AsyncSession, *, post_id: uuid.UUID, liker: str) -> int:
    """Like/unlike for `liker` (user id, or client ip when anonymous); returns the new like count."""
    if not await posts_repo.get(db, post_id):
        raise NotFound("Post not found")
    await posts_repo.toggle_like(db, post_id=post_id, liker=liker)
    count = await posts_repo.count_likes(db, post_id)
    await db.commit()
    return count
