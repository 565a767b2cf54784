# backend/app/scripts/seed_articles.py

"""
Seed users, articles, tags, reading history and claps from a JSON file.

Usage examples:

  cd backend
  source venv/bin/activate
  python -m app.scripts.seed_articles

  # Seed a specific file
  python -m app.scripts.seed_articles --file app/data/demo_content.json

The file holds one object with "users", "articles", "reading_history" and "claps"
lists. Users and articles are matched on username / slug, so re-running updates
rows in place instead of duplicating them.
"""

import argparse
import json
import logging
from pathlib import Path
from datetime import datetime

from sqlalchemy.orm import Session

from app.database import SessionLocal, init_db
from app import models

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_FILE = BASE_DIR / "data" / "demo_content.json"


def _parse_datetime(raw):
    if not raw:
        return None
    return datetime.fromisoformat(raw)


def _get_or_create_tag(db: Session, name: str) -> models.Tag:
    normalized = name.strip().lower()
    tag = db.query(models.Tag).filter(models.Tag.name == normalized).first()
    if tag is None:
        tag = models.Tag(name=normalized)
        db.add(tag)
        db.flush()
    return tag


def seed_content(db: Session, data: dict) -> dict:
    """
    Upsert the dataset into `db` and flush. The caller commits.

    Returns counts per entity type.
    """
    users_by_name = {}
    for raw in data.get("users", []):
        user = db.query(models.User).filter(models.User.username == raw["username"]).first()
        if user is None:
            user = models.User(username=raw["username"])
            db.add(user)
        user.email = raw.get("email")
        user.bio = raw.get("bio")
        users_by_name[user.username] = user
    db.flush()

    articles_by_slug = {}
    for raw in data.get("articles", []):
        author = users_by_name.get(raw["author"])
        if author is None:
            raise ValueError(f"Article {raw['slug']!r} references unknown author {raw['author']!r}")

        article = db.query(models.Article).filter(models.Article.slug == raw["slug"]).first()
        if article is None:
            article = models.Article(slug=raw["slug"])
            db.add(article)
        article.title = raw["title"]
        article.content = raw.get("content", "")
        article.summary = raw.get("summary")
        article.author_id = author.id
        article.view_count = raw.get("view_count", 0)
        article.like_count = raw.get("like_count", 0)
        article.comment_count = raw.get("comment_count", 0)
        article.published = raw.get("published", True)
        article.published_at = _parse_datetime(raw.get("published_at"))
        article.read_time_minutes = models.estimate_read_time_minutes(article.content)
        article.tags = [_get_or_create_tag(db, name) for name in raw.get("tags", [])]
        articles_by_slug[article.slug] = article
    db.flush()

    history_count = 0
    for raw in data.get("reading_history", []):
        user = users_by_name[raw["user"]]
        article = articles_by_slug[raw["article"]]
        entry = (
            db.query(models.ReadingHistoryEntry)
            .filter_by(user_id=user.id, article_id=article.id)
            .first()
        )
        if entry is None:
            entry = models.ReadingHistoryEntry(user_id=user.id, article_id=article.id)
            db.add(entry)
        entry.read_at = _parse_datetime(raw.get("read_at")) or datetime.utcnow()
        history_count += 1

    clap_count = 0
    for raw in data.get("claps", []):
        user = users_by_name[raw["user"]]
        article = articles_by_slug[raw["article"]]
        clap = db.query(models.Clap).filter_by(user_id=user.id, article_id=article.id).first()
        if clap is None:
            clap = models.Clap(user_id=user.id, article_id=article.id)
            db.add(clap)
        # The write side owns the 1-50 clamp
        clap.clap_count = max(1, min(50, int(raw.get("count", 1))))
        clap_count += 1
    db.flush()

    counts = {
        "users": len(users_by_name),
        "articles": len(articles_by_slug),
        "reading_history": history_count,
        "claps": clap_count,
    }
    logger.info("Seeded %s", counts)
    return counts


def main():
    parser = argparse.ArgumentParser(description="Seed demo content for recommendations.")
    parser.add_argument(
        "--file",
        "-f",
        default=str(DEFAULT_FILE),
        help="Path to a JSON dataset (defaults to app/data/demo_content.json).",
    )
    args = parser.parse_args()

    path = Path(args.file).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    print(f"[seed_articles] Loading content from: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    init_db()
    db = SessionLocal()
    try:
        counts = seed_content(db, data)
        db.commit()
        print(f"[seed_articles] Done: {counts}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
