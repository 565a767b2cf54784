"""
Read-only accessors the recommendation engine consumes.

Every query here is bounded (explicit limit) except the per-user history and clap
lookups, which are naturally bounded by one user's activity.
"""
import logging
from typing import Iterable, List, Optional, Dict, Tuple
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from app.models import User, Article, Tag, ReadingHistoryEntry, Clap, article_tags

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> Optional[User]:
    """Load user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_article(db: Session, article_id: int) -> Optional[Article]:
    return db.query(Article).filter(Article.id == article_id).first()


def get_articles_by_ids(db: Session, article_ids: Iterable[int]) -> List[Article]:
    """Load articles by id, ordered by id so callers see a stable order."""
    ids = list(article_ids)
    if not ids:
        return []
    return (
        db.query(Article)
        .filter(Article.id.in_(ids))
        .order_by(Article.id.asc())
        .all()
    )


def get_reading_history(db: Session, user_id: int) -> List[ReadingHistoryEntry]:
    """Reading history for a user, most recent first, with articles eagerly loaded."""
    return (
        db.query(ReadingHistoryEntry)
        .options(selectinload(ReadingHistoryEntry.article))
        .filter(ReadingHistoryEntry.user_id == user_id)
        .order_by(ReadingHistoryEntry.read_at.desc(), ReadingHistoryEntry.id.desc())
        .all()
    )


def get_claps_by_user(db: Session, user_id: int) -> List[Clap]:
    return db.query(Clap).filter(Clap.user_id == user_id).all()


def get_claps_by_users(db: Session, user_ids: Iterable[int]) -> List[Clap]:
    ids = list(user_ids)
    if not ids:
        return []
    return (
        db.query(Clap)
        .filter(Clap.user_id.in_(ids))
        .order_by(Clap.article_id.asc(), Clap.user_id.asc())
        .all()
    )


def get_clap_totals(
    db: Session,
    article_ids: Iterable[int],
    user_ids: Iterable[int],
) -> Dict[int, int]:
    """Sum of clap magnitudes per article, restricted to the given users."""
    a_ids = list(article_ids)
    u_ids = list(user_ids)
    if not a_ids or not u_ids:
        return {}
    rows = (
        db.query(Clap.article_id, func.sum(Clap.clap_count))
        .filter(Clap.article_id.in_(a_ids), Clap.user_id.in_(u_ids))
        .group_by(Clap.article_id)
        .all()
    )
    return {article_id: int(total or 0) for article_id, total in rows}


def get_articles_by_tags(
    db: Session,
    tag_names: Iterable[str],
    limit: int,
    offset: int = 0,
) -> List[Article]:
    """
    Published articles carrying at least one of `tag_names`.

    Each article appears once even when it matches several tags. Newest first with
    undated articles last, then by id, so a page is the same on every backend.
    """
    names = sorted(set(tag_names))
    if not names or limit <= 0:
        return []

    matching_ids = (
        select(article_tags.c.article_id)
        .join(Tag, Tag.id == article_tags.c.tag_id)
        .where(Tag.name.in_(names))
    )
    return (
        db.query(Article)
        .filter(Article.published.is_(True), Article.id.in_(matching_ids))
        .order_by(Article.published_at.desc().nullslast(), Article.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_trending_articles(db: Session, limit: int, offset: int = 0) -> List[Article]:
    """Published articles by views, then likes, then comments (all descending)."""
    if limit <= 0:
        return []
    return (
        db.query(Article)
        .filter(Article.published.is_(True))
        .order_by(
            Article.view_count.desc(),
            Article.like_count.desc(),
            Article.comment_count.desc(),
            Article.id.asc(),
        )
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_users_page(
    db: Session,
    exclude_user_id: int,
    limit: int,
    offset: int = 0,
    exclude_ids: Iterable[int] = (),
) -> List[User]:
    """Users other than `exclude_user_id` (and `exclude_ids`), ordered by id."""
    if limit <= 0:
        return []
    skip = set(exclude_ids)
    skip.add(exclude_user_id)
    return (
        db.query(User)
        .filter(User.id.notin_(sorted(skip)))
        .order_by(User.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_co_readers(
    db: Session,
    user_id: int,
    limit: int,
) -> List[Tuple[int, int]]:
    """
    Other users who read at least one article `user_id` has read.

    Returns (user_id, shared_article_count) pairs, most overlap first, capped at
    `limit` users.
    """
    if limit <= 0:
        return []
    mine = (
        select(ReadingHistoryEntry.article_id)
        .where(ReadingHistoryEntry.user_id == user_id)
    )
    shared = func.count(ReadingHistoryEntry.article_id)
    rows = (
        db.query(ReadingHistoryEntry.user_id, shared)
        .filter(
            ReadingHistoryEntry.article_id.in_(mine),
            ReadingHistoryEntry.user_id != user_id,
        )
        .group_by(ReadingHistoryEntry.user_id)
        .order_by(shared.desc(), ReadingHistoryEntry.user_id.asc())
        .limit(limit)
        .all()
    )
    return [(uid, int(count)) for uid, count in rows]


def get_read_article_ids(db: Session, user_ids: Iterable[int]) -> Dict[int, set]:
    """Read-article id sets keyed by user, for the given users only."""
    ids = list(user_ids)
    result: Dict[int, set] = {uid: set() for uid in ids}
    if not ids:
        return result
    rows = (
        db.query(ReadingHistoryEntry.user_id, ReadingHistoryEntry.article_id)
        .filter(ReadingHistoryEntry.user_id.in_(ids))
        .all()
    )
    for uid, article_id in rows:
        result[uid].add(article_id)
    return result
