from __future__ import annotations
import uuid
from typing import Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Post, PostLike, PostMedia


def _like_count_scalar(post_id_col):
    return (
        select(func.count(PostLike.id))
        .where(PostLike.post_id == post_id_col)
        .scalar_subquery()
    )


async def get(db: AsyncSession, post_id: uuid.UUID) -> Optional[Post]:
    res = await db.execute(select(Post).where(Post.id == post_id))
    return res.scalar_one_or_none()


async def list_recent(db: AsyncSession, *, limit: int = 50) -> Sequence[Tuple[Post, int]]:
    # (Post, like_count), newest first
    likes = _like_count_scalar(Post.id).label("likes")
    res = await db.execute(
        select(Post, likes).order_by(Post.created_at.desc(), Post.id.desc()).limit(limit)
    )
    return list(res.all())


async def create_post(
    db: AsyncSession,
    *,
    author_id: Optional[uuid.UUID],
    author_name: str,
    author_avatar: str,
    content: str,
    media: Sequence[Tuple[str, str, int]] = (),
) -> Post:
    post = Post(
        author_id=author_id,
        author_name=author_name,
        author_avatar=author_avatar,
        content=content,
        media=[PostMedia(url=url, mime=mime, size=size, position=i) for i, (url, mime, size) in enumerate(media)],
    )
    db.add(post)
    await db.flush()
    return post


async def count_likes(db: AsyncSession, post_id: uuid.UUID) -> int:
    res = await db.execute(select(func.count(PostLike.id)).where(PostLike.post_id == post_id))
    return int(res.scalar_one())


async def toggle_like(db: AsyncSession, *, post_id: uuid.UUID, liker: str) -> bool:
    """Returns True if the like was added, False if it was removed."""
    res = await db.execute(
        delete(PostLike).where(PostLike.post_id == post_id, PostLike.liker == liker)
    )
    if res.rowcount:
        return False
    db.add(PostLike(post_id=post_id, liker=liker))
    await db.flush()
    return True
