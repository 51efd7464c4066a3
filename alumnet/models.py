from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# BIGSERIAL on Postgres; sqlite only autoincrements INTEGER PRIMARY KEY
BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

USER_TYPES = ("student", "alumni")
DEFAULT_AVATAR = "/img/default-avatar.png"


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# ---------- USERS ----------
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(sa.Text, nullable=False)
    # always stored trimmed + lower-cased
    email: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(sa.Text, nullable=False)
    user_type: Mapped[str] = mapped_column(sa.Text, nullable=False)  # 'student' | 'alumni'
    onboarded: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    # alumni
    current_company: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    current_position: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    about: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    # student
    batch: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    location: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    # relative url served from /uploads
    profile_pic: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("user_type in ('student','alumni')", name="users_user_type"),
    )


# ---------- OTP VERIFICATIONS ----------
class OtpVerification(Base):
    __tablename__ = "otp_verifications"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(sa.Text, nullable=False)
    code: Mapped[str] = mapped_column(sa.String(6), nullable=False)
    attempts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default=sa.text("0"))
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("attempts >= 0", name="otp_attempts_nonneg"),
        Index("ix_otp_verifications_email_created", "email", "created_at"),
        # sweeper scans by expiry
        Index("ix_otp_verifications_expires_at", "expires_at"),
    )


# ---------- POSTS ----------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    author_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    author_avatar: Mapped[str] = mapped_column(sa.Text, nullable=False, default=DEFAULT_AVATAR)
    content: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )

    media: Mapped[List["PostMedia"]] = relationship(
        back_populates="post", order_by="PostMedia.position", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        Index("ix_posts_created_at", "created_at"),
    )


class PostMedia(Base):
    __tablename__ = "post_media"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    post_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    url: Mapped[str] = mapped_column(sa.Text, nullable=False)
    mime: Mapped[str] = mapped_column(sa.Text, nullable=False)
    size: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    post: Mapped[Post] = relationship(back_populates="media")


class PostLike(Base):
    __tablename__ = "post_likes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    post_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    liker: Mapped[str] = mapped_column(sa.Text, nullable=False)  # user id or client ip
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "liker", name="uq_post_likes_post_liker"),
    )
