from typing import List, Optional, Dict
from dataclasses import dataclass
from datetime import datetime
import logging

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.models import Article
from app.services import article_queries
from app.services.behavior_profile import UserBehaviorProfile, build_behavior_profile
from app.services.scoring import (
    DEFAULT_SCORING,
    ScoredArticle,
    ScoringConfig,
    collaborative_score,
    content_similarity,
    personalized_factors,
    weighted_total,
)
from app.utils.timing import time_operation

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when the requested user or article does not exist."""
    pass


@dataclass(frozen=True)
class CandidateLimits:
    """Fetch caps and peer-selection knobs for candidate generation."""
    interest_candidates: int = 50
    trending_candidates: int = 30
    similar_fetch_multiplier: int = 2
    peer_limit: int = 10
    peer_candidate_pool: int = 200
    strong_clap_threshold: int = 5
    peer_policy: str = "read_overlap"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CandidateLimits":
        return cls(
            interest_candidates=settings.RECO_INTEREST_CANDIDATES,
            trending_candidates=settings.RECO_TRENDING_CANDIDATES,
            similar_fetch_multiplier=settings.RECO_SIMILAR_FETCH_MULTIPLIER,
            peer_limit=settings.RECO_PEER_LIMIT,
            peer_candidate_pool=settings.RECO_PEER_CANDIDATE_POOL,
            strong_clap_threshold=settings.RECO_STRONG_CLAP_THRESHOLD,
            peer_policy=settings.RECO_PEER_POLICY,
        )


DEFAULT_LIMITS = CandidateLimits()


# ----------------------------
# Profile
# ----------------------------

def load_behavior_profile(db: Session, user_id: int) -> UserBehaviorProfile:
    user = article_queries.get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    history = article_queries.get_reading_history(db, user.id)
    claps = article_queries.get_claps_by_user(db, user.id)
    return build_behavior_profile(user.id, history, claps)


# ----------------------------
# Candidates
# ----------------------------

def _dedupe(articles: List[Article]) -> List[Article]:
    """Drop repeated articles, keeping the first occurrence."""
    seen = set()
    unique = []
    for article in articles:
        if article.id in seen:
            continue
        seen.add(article.id)
        unique.append(article)
    return unique


def personalized_candidates(
    db: Session,
    profile: UserBehaviorProfile,
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[Article]:
    """
    Interest-matched articles followed by trending ones, deduplicated.

    Already-read and unpublished articles are removed. The pool never exceeds the
    two fetch caps combined.
    """
    interest_based: List[Article] = []
    if profile.interests:
        interest_based = article_queries.get_articles_by_tags(
            db, profile.interests, limit=limits.interest_candidates
        )
    trending = article_queries.get_trending_articles(db, limit=limits.trending_candidates)

    pool = [
        a for a in _dedupe(interest_based + trending)
        if a.published and a.id not in profile.read_article_ids
    ]
    logger.debug(
        "Personalized candidates user_id=%s interest=%d trending=%d pool=%d",
        profile.user_id, len(interest_based), len(trending), len(pool),
    )
    return pool


def content_candidates(
    db: Session,
    source: Article,
    limit: int,
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[Article]:
    """Published articles sharing a tag with `source`, minus `source` itself."""
    if limit <= 0:
        return []
    fetched = article_queries.get_articles_by_tags(
        db, source.tag_names, limit=limit * limits.similar_fetch_multiplier
    )
    return [a for a in fetched if a.id != source.id]


# ----------------------------
# Peers
# ----------------------------

def _overlap_peers(db: Session, user_id: int, limits: CandidateLimits) -> List[int]:
    co_readers = article_queries.get_co_readers(db, user_id, limit=limits.peer_candidate_pool)
    if not co_readers:
        return []
    candidate_ids = [uid for uid, _ in co_readers]
    read_sets = article_queries.get_read_article_ids(db, [user_id] + candidate_ids)
    mine = read_sets[user_id]

    def similarity(uid: int) -> float:
        theirs = read_sets[uid]
        union = mine | theirs
        return len(mine & theirs) / len(union) if union else 0.0

    ranked = sorted(candidate_ids, key=lambda uid: (-similarity(uid), uid))
    return ranked[:limits.peer_limit]


def find_peers(
    db: Session,
    user_id: int,
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[int]:
    """
    Ids of up to `peer_limit` other users treated as similar to `user_id`.

    "read_overlap" ranks co-readers by Jaccard over read-article sets and tops up
    with arbitrary other users; "first_users" takes other users in id order.
    """
    peers: List[int] = []
    if limits.peer_policy == "read_overlap":
        peers = _overlap_peers(db, user_id, limits)

    missing = limits.peer_limit - len(peers)
    if missing > 0:
        filler = article_queries.get_users_page(
            db, exclude_user_id=user_id, limit=missing, exclude_ids=peers
        )
        peers.extend(u.id for u in filler)

    logger.debug("Peers for user_id=%s policy=%s: %s", user_id, limits.peer_policy, peers)
    return peers


def collaborative_candidates(
    db: Session,
    peer_ids: List[int],
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[Article]:
    """Published articles at least one peer clapped for strongly."""
    strong_ids: List[int] = []
    seen = set()
    for clap in article_queries.get_claps_by_users(db, peer_ids):
        if clap.clap_count > limits.strong_clap_threshold and clap.article_id not in seen:
            seen.add(clap.article_id)
            strong_ids.append(clap.article_id)
    articles = article_queries.get_articles_by_ids(db, strong_ids)
    return [a for a in articles if a.published]


# ----------------------------
# Ranking
# ----------------------------

def rank(scored: List[ScoredArticle], limit: int) -> List[ScoredArticle]:
    """
    Highest score first, truncated to `limit`.

    The sort is stable, so equal scores keep their candidate-pool order.
    """
    if limit <= 0:
        return []
    return sorted(scored, key=lambda s: s.score, reverse=True)[:limit]


# ----------------------------
# Public operations
# ----------------------------

def recommend_personalized(
    db: Session,
    user_id: int,
    limit: int,
    config: ScoringConfig = DEFAULT_SCORING,
    limits: CandidateLimits = DEFAULT_LIMITS,
    now: Optional[datetime] = None,
) -> List[ScoredArticle]:
    """Weighted content/behavior/popularity/recency ranking for one reader."""
    now = now or datetime.utcnow()
    with time_operation(f"personalized user_id={user_id}"):
        profile = load_behavior_profile(db, user_id)
        candidates = personalized_candidates(db, profile, limits)

        scored = []
        for article in candidates:
            factors = personalized_factors(article, profile, now, config)
            scored.append(ScoredArticle(article, weighted_total(factors, config), factors.to_dict()))

        results = rank(scored, limit)
    logger.info(
        "Personalized feed user_id=%s candidates=%d returned=%d",
        user_id, len(candidates), len(results),
    )
    return results


def recommend_more_like_this(
    db: Session,
    article_id: int,
    limit: int,
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[ScoredArticle]:
    """Articles ranked by tag Jaccard similarity to `article_id`."""
    with time_operation(f"more_like_this article_id={article_id}"):
        source = article_queries.get_article(db, article_id)
        if source is None:
            raise NotFoundError(f"Article {article_id} not found")

        scored = []
        for article in content_candidates(db, source, limit, limits):
            similarity = content_similarity(source, article)
            scored.append(ScoredArticle(article, similarity, {"similarity": similarity}))

        results = rank(scored, limit)
    logger.info("More like this article_id=%s returned=%d", article_id, len(results))
    return results


def recommend_collaborative(
    db: Session,
    user_id: int,
    limit: int,
    limits: CandidateLimits = DEFAULT_LIMITS,
) -> List[ScoredArticle]:
    """Articles peers clapped for strongly, ranked by total peer claps."""
    with time_operation(f"collaborative user_id={user_id}"):
        user = article_queries.get_user(db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        peer_ids = find_peers(db, user.id, limits)
        candidates = collaborative_candidates(db, peer_ids, limits)
        totals: Dict[int, int] = article_queries.get_clap_totals(
            db, [a.id for a in candidates], peer_ids
        )

        scored = []
        for article in candidates:
            peer_claps = totals.get(article.id, 0)
            scored.append(
                ScoredArticle(article, collaborative_score(peer_claps), {"peer_claps": float(peer_claps)})
            )

        results = rank(scored, limit)
    logger.info(
        "Collaborative recommendations user_id=%s peers=%d candidates=%d returned=%d",
        user_id, len(peer_ids), len(candidates), len(results),
    )
    return results


def get_personalized_feed(db: Session, user_id: int, limit: int, **kwargs) -> List[int]:
    return [s.article.id for s in recommend_personalized(db, user_id, limit, **kwargs)]


def get_more_like_this(db: Session, article_id: int, limit: int, **kwargs) -> List[int]:
    return [s.article.id for s in recommend_more_like_this(db, article_id, limit, **kwargs)]


def get_collaborative_recommendations(db: Session, user_id: int, limit: int, **kwargs) -> List[int]:
    return [s.article.id for s in recommend_collaborative(db, user_id, limit, **kwargs)]
