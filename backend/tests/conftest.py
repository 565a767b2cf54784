"""Pytest configuration for backend tests."""
import sys
import os
from datetime import datetime, timedelta
from pathlib import Path
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Import database components
from app.database import Base

# Import the entire models module to ensure all models are registered with Base.metadata
# This must happen before create_all() so that all table definitions are available
import app.models  # noqa: F401
from app.models import User, Article, Tag, ReadingHistoryEntry, Clap


# In-memory SQLite unless a real database is provided. Models are portable
# across SQLite and Postgres.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

# Fixed clock for recency arithmetic
NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture(scope="session")
def engine():
    """Create a test database engine with all tables."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_engine(TEST_DATABASE_URL, pool_pre_ping=True, echo=False)

    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import app.models? All model classes must be imported before create_all()."
        )

    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """
    Create a database session for each test.

    Uses a transaction that is rolled back after each test for isolation.
    Tests flush instead of committing.
    """
    connection = engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
    )
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_user(db: Session):
    """Factory for users with unique usernames."""
    counter = {"n": 0}

    def _make(username: str = None) -> User:
        counter["n"] += 1
        user = User(username=username or f"user{counter['n']}")
        db.add(user)
        db.flush()
        return user

    return _make


@pytest.fixture
def make_article(db: Session, make_user):
    """Factory for articles; tags are created on demand by name."""
    counter = {"n": 0}
    default_author = {}

    def _tag(name: str) -> Tag:
        tag = db.query(Tag).filter(Tag.name == name).first()
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            db.flush()
        return tag

    def _make(
        tags=(),
        author: User = None,
        content: str = None,
        views: int = 0,
        likes: int = 0,
        comments: int = 0,
        published: bool = True,
        published_at=None,
        age_days: int = None,
        read_time_minutes: int = None,
    ) -> Article:
        counter["n"] += 1
        if author is None:
            if "user" not in default_author:
                default_author["user"] = make_user("default-author")
            author = default_author["user"]
        if published_at is None and age_days is not None:
            published_at = NOW - timedelta(days=age_days)
        article = Article(
            title=f"Article {counter['n']}",
            slug=f"article-{counter['n']}",
            content=content if content is not None else "x" * 2000,
            author_id=author.id,
            view_count=views,
            like_count=likes,
            comment_count=comments,
            published=published,
            published_at=published_at,
            tags=[_tag(t) for t in tags],
        )
        if read_time_minutes is not None:
            article.read_time_minutes = read_time_minutes
        db.add(article)
        db.flush()
        db.refresh(article)
        return article

    return _make


@pytest.fixture
def read(db: Session):
    """Record that `user` read `article`."""
    def _read(user: User, article: Article, read_at: datetime = None) -> ReadingHistoryEntry:
        entry = ReadingHistoryEntry(
            user_id=user.id,
            article_id=article.id,
            read_at=read_at or NOW,
        )
        db.add(entry)
        db.flush()
        return entry

    return _read


@pytest.fixture
def clap(db: Session):
    """Record `count` claps from `user` on `article`."""
    def _clap(user: User, article: Article, count: int) -> Clap:
        c = Clap(user_id=user.id, article_id=article.id, clap_count=count)
        db.add(c)
        db.flush()
        return c

    return _clap
