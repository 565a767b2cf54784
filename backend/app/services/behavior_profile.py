"""Per-request behavioral profile of a reader, derived from history and claps."""
import logging
from dataclasses import dataclass, field
from typing import List, Set

from app.models import Clap, ReadingHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_READ_TIME_MINUTES = 5.0
DEFAULT_CONTENT_LENGTH = 2000
ENGAGEMENT_SATURATION = 100.0


@dataclass
class UserBehaviorProfile:
    user_id: int
    interests: Set[str] = field(default_factory=set)
    engagement_level: float = 0.0
    average_read_time: float = DEFAULT_READ_TIME_MINUTES
    preferred_content_length: int = DEFAULT_CONTENT_LENGTH
    read_article_ids: Set[int] = field(default_factory=set)
    read_author_ids: Set[int] = field(default_factory=set)


def engagement_level(claps: List[Clap]) -> float:
    """Total clap magnitude normalized to [0, 1], saturating at 100 claps."""
    if not claps:
        return 0.0
    total = sum(c.clap_count for c in claps)
    return min(1.0, total / ENGAGEMENT_SATURATION)


def average_read_time(history: List[ReadingHistoryEntry]) -> float:
    if not history:
        return DEFAULT_READ_TIME_MINUTES
    minutes = [
        float(h.article.read_time_minutes)
        if h.article.read_time_minutes is not None
        else DEFAULT_READ_TIME_MINUTES
        for h in history
    ]
    return sum(minutes) / len(minutes)


def preferred_content_length(history: List[ReadingHistoryEntry]) -> int:
    if not history:
        return DEFAULT_CONTENT_LENGTH
    lengths = [h.article.content_length for h in history]
    return int(sum(lengths) / len(lengths))


def build_behavior_profile(
    user_id: int,
    history: List[ReadingHistoryEntry],
    claps: List[Clap],
) -> UserBehaviorProfile:
    """
    Aggregate a reader's history (most recent first) and claps into a profile.

    Interests are the plain union of tags across every read article; neither
    recency nor frequency weights them.
    """
    interests: Set[str] = set()
    for entry in history:
        interests |= entry.article.tag_names

    profile = UserBehaviorProfile(
        user_id=user_id,
        interests=interests,
        engagement_level=engagement_level(claps),
        average_read_time=average_read_time(history),
        preferred_content_length=preferred_content_length(history),
        read_article_ids={h.article_id for h in history},
        read_author_ids={h.article.author_id for h in history},
    )
    logger.debug(
        "Built behavior profile user_id=%s history=%d interests=%d engagement=%.2f",
        user_id, len(history), len(interests), profile.engagement_level,
    )
    return profile
