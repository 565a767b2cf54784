from sqlalchemy import Column, String, Integer, BigInteger, Text, Boolean, DateTime, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import math
import sqlalchemy as sa
from app.database import Base


WORDS_PER_MINUTE = 200


def estimate_read_time_minutes(content: str | None) -> int:
    """Whole minutes needed to read `content` at 200 words per minute, at least 1."""
    if not content:
        return 1
    word_count = len(content.split())
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def _default_read_time(context) -> int:
    return estimate_read_time_minutes(context.get_current_parameters().get("content"))


article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    bio = Column(Text, nullable=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    articles = relationship("Article", back_populates="author")
    reading_history = relationship("ReadingHistoryEntry", back_populates="user")
    claps = relationship("Clap", back_populates="user")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, index=True, nullable=False)  # case-normalized by the writer

    articles = relationship("Article", secondary=article_tags, back_populates="tags")


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    slug = Column(String, unique=True, nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(500), nullable=True)
    cover_image_url = Column(String, nullable=True)
    read_time_minutes = Column(Integer, nullable=True, default=_default_read_time)
    view_count = Column(BigInteger, nullable=False, default=0)
    like_count = Column(BigInteger, nullable=False, default=0)
    comment_count = Column(BigInteger, nullable=False, default=0)
    published = Column("is_published", Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    published_at = Column(DateTime, nullable=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    author = relationship("User", back_populates="articles")
    tags = relationship("Tag", secondary=article_tags, back_populates="articles", lazy="selectin")

    @property
    def tag_names(self) -> set[str]:
        return {tag.name for tag in self.tags}

    @property
    def content_length(self) -> int:
        return len(self.content or "")


class ReadingHistoryEntry(Base):
    """Most recent read of an article by a user; one row per (user, article)."""
    __tablename__ = "reading_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    read_at = Column(DateTime, nullable=False, server_default=sa.func.now())

    user = relationship("User", back_populates="reading_history")
    article = relationship("Article")

    __table_args__ = (
        UniqueConstraint("user_id", "article_id", name="uq_reading_history_user_article"),
    )


class Clap(Base):
    """
    Graded engagement (1-50) a user records against an article.
    The writer clamps clap_count; readers never re-validate it.
    """
    __tablename__ = "claps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    clap_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="claps")
    article = relationship("Article")

    __table_args__ = (
        UniqueConstraint("article_id", "user_id", name="uq_claps_article_user"),
    )
