from __future__ import annotations

from typing import List, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

# IDs are assigned by the storage layer (max + 1), never by the database,
# so every primary key is declared with autoincrement=False.


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    nickname: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # Stored in plaintext, as the original accounts document did.
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    posts: Mapped[List["Post"]] = relationship("Post", back_populates="author", lazy="noload")


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    __table_args__ = (
        # Cascade lookups on account deletion
        Index("ix_posts_author_id", "author_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    contents: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # "YYYY-MM-DD HH:MM:SS", identical to the JSON document format
    created_at: Mapped[str] = mapped_column(String(19), nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # lazy="noload" — repositories load comments explicitly with selectinload
    author: Mapped["User"] = relationship("User", back_populates="posts", lazy="noload")
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="post", lazy="noload", order_by="Comment.id"
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    # Comment IDs are unique per post only, hence the composite key.
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Not a foreign key: comments on other users' posts outlive their author.
    author_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(String(19), nullable=False)
    updated_at: Mapped[Optional[str]] = mapped_column(String(19), nullable=True)

    post: Mapped["Post"] = relationship("Post", back_populates="comments", lazy="noload")
