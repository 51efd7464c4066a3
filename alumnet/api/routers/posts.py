from __future__ import annotations
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import get_optional_user
from ...db import get_db
from ...domain.schemas.posts import LikeOut, PostOut
from ...models import User
from ...repos import posts as posts_repo
from ...services import feed
from ...services.rate_limit import client_ip

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/json", response_model=List[PostOut])
async def list_posts(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    rows = await posts_repo.list_recent(db, limit=limit)
    return [PostOut.from_model(p, likes=int(n or 0)) for p, n in rows]


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    content: Optional[str] = Form(None),
    media: Optional[List[UploadFile]] = File(None),
    current: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    post = await feed.create_post(db, author=current, content=content, files=media or [])
    return PostOut.from_model(post)


@router.post("/{post_id}/like", response_model=LikeOut)
async def like_post(
    post_id: uuid.UUID,
    request: Request,
    current: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    # anonymous likes are keyed by client ip
    liker = str(current.id) if current else client_ip(request)
    likes = await feed.toggle_like(db, post_id=post_id, liker=liker)
    return LikeOut(likes=likes)
