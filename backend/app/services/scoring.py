"""
Pure scoring functions for article recommendations.

Nothing in this module touches the database: every function takes already-loaded
articles and profiles and returns a number, so results are reproducible given the
same inputs and the same `now`.
"""
import math
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import AbstractSet, Dict, Optional

from app.core.config import Settings
from app.models import Article
from app.services.behavior_profile import UserBehaviorProfile

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and thresholds for the personalized score."""
    content_weight: float = 0.3
    behavior_weight: float = 0.4
    popularity_weight: float = 0.2
    recency_weight: float = 0.1

    # Behavior bonuses
    length_tolerance: int = 1000
    length_bonus: float = 0.3
    author_bonus: float = 0.2
    engaged_reader_bonus: float = 0.2
    engaged_reader_level: float = 0.7
    popular_like_count: int = 100

    # Recency decay
    recency_horizon_days: float = 365.0
    recency_floor: float = 0.1
    undated_recency: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(
            content_weight=settings.RECO_WEIGHT_CONTENT,
            behavior_weight=settings.RECO_WEIGHT_BEHAVIOR,
            popularity_weight=settings.RECO_WEIGHT_POPULARITY,
            recency_weight=settings.RECO_WEIGHT_RECENCY,
        )


DEFAULT_SCORING = ScoringConfig()


@dataclass
class ScoreFactors:
    """Per-component breakdown of a personalized score."""
    content: float = 0.0
    behavior: float = 0.0
    popularity: float = 0.0
    recency: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class ScoredArticle:
    article: Article
    score: float
    factors: Dict[str, float] = field(default_factory=dict)


def jaccard_similarity(tags_a: AbstractSet[str], tags_b: AbstractSet[str]) -> float:
    """|A ∩ B| / |A ∪ B|, with two empty sets scoring 0.0."""
    union = tags_a | tags_b
    if not union:
        return 0.0
    return len(tags_a & tags_b) / len(union)


def content_similarity(article_a: Article, article_b: Article) -> float:
    """Jaccard similarity of two articles' tag names."""
    return jaccard_similarity(article_a.tag_names, article_b.tag_names)


def interest_overlap_score(article: Article, profile: UserBehaviorProfile) -> float:
    """Share of the user's interest tags this article carries."""
    if not profile.interests:
        return 0.0
    return len(article.tag_names & profile.interests) / len(profile.interests)


def behavior_score(
    article: Article,
    profile: UserBehaviorProfile,
    config: ScoringConfig = DEFAULT_SCORING,
) -> float:
    score = 0.0

    # Content length close to what the user usually reads
    if abs(article.content_length - profile.preferred_content_length) < config.length_tolerance:
        score += config.length_bonus

    # Author the user has read before
    if article.author_id in profile.read_author_ids:
        score += config.author_bonus

    # Highly engaged readers get a nudge toward well-liked articles
    if (
        profile.engagement_level > config.engaged_reader_level
        and (article.like_count or 0) > config.popular_like_count
    ):
        score += config.engaged_reader_bonus

    return score


def popularity_score(article: Article) -> float:
    """Mean of log10(count + 1) / 10 over views, likes and comments."""
    view_score = math.log10(max(article.view_count or 0, 0) + 1) / 10.0
    like_score = math.log10(max(article.like_count or 0, 0) + 1) / 10.0
    comment_score = math.log10(max(article.comment_count or 0, 0) + 1) / 10.0
    return (view_score + like_score + comment_score) / 3.0


def recency_score(
    article: Article,
    now: Optional[datetime] = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> float:
    """Linear decay over a year from publication, floored; undated articles get 0.5."""
    if article.published_at is None:
        return config.undated_recency
    now = now or datetime.utcnow()
    # whole days, truncated toward zero for future dates too
    days_since_published = int((now - article.published_at).total_seconds() / SECONDS_PER_DAY)
    return max(config.recency_floor, 1.0 - (days_since_published / config.recency_horizon_days))


def personalized_factors(
    article: Article,
    profile: UserBehaviorProfile,
    now: Optional[datetime] = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> ScoreFactors:
    return ScoreFactors(
        content=interest_overlap_score(article, profile),
        behavior=behavior_score(article, profile, config),
        popularity=popularity_score(article),
        recency=recency_score(article, now, config),
    )


def weighted_total(factors: ScoreFactors, config: ScoringConfig = DEFAULT_SCORING) -> float:
    return (
        factors.content * config.content_weight
        + factors.behavior * config.behavior_weight
        + factors.popularity * config.popularity_weight
        + factors.recency * config.recency_weight
    )


def personalized_score(
    article: Article,
    profile: UserBehaviorProfile,
    now: Optional[datetime] = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> float:
    return weighted_total(personalized_factors(article, profile, now, config), config)


def collaborative_score(total_peer_claps: int) -> float:
    """log10(total clap magnitude from peers + 1) / 10."""
    return math.log10(max(total_peer_claps, 0) + 1) / 10.0
