import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models import Post
from ...services.avatar import avatar_color, get_initials


class MediaOut(BaseModel):
    url: str
    mime: str
    size: int


class PostOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    author_id: Optional[uuid.UUID] = Field(default=None, alias="authorId")
    author_name: str = Field(alias="authorName")
    author_avatar: str = Field(alias="authorAvatar")
    author_initials: str = Field(alias="authorInitials")
    author_color: str = Field(alias="authorColor")
    content: str
    media: List[MediaOut] = Field(default_factory=list)
    likes: int = 0
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_model(cls, p: Post, likes: int = 0) -> "PostOut":
        return cls(
            id=p.id,
            author_id=p.author_id,
            author_name=p.author_name,
            author_avatar=p.author_avatar,
            author_initials=get_initials(p.author_name),
            author_color=avatar_color(p.author_name),
            content=p.content,
            media=[MediaOut(url=m.url, mime=m.mime, size=m.size) for m in p.media],
            likes=likes,
            created_at=p.created_at,
        )


class LikeOut(BaseModel):
    likes: int
