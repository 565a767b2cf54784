from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List, Dict

from app.services.scoring import ScoredArticle


class AuthorSummary(BaseModel):
    id: int
    username: str
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None


class RecommendationItem(BaseModel):
    article_id: int
    title: str
    slug: str
    summary: Optional[str] = None
    cover_image_url: Optional[str] = None
    read_time_minutes: Optional[int] = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    published: bool
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    author: Optional[AuthorSummary] = None
    tags: List[str] = []
    score: float
    # Debug fields (only included when debug=true)
    score_factors: Optional[Dict[str, float]] = None


class RecommendationsResponse(BaseModel):
    """Ranked articles for one request, tagged with a request_id for tracing."""
    request_id: str
    strategy: str  # personalized | more_like_this | collaborative
    items: List[RecommendationItem]


def to_recommendation_item(scored: ScoredArticle, debug: bool = False) -> RecommendationItem:
    """Project a scored article onto the response shape shared by every strategy."""
    article = scored.article
    author = article.author
    return RecommendationItem(
        article_id=article.id,
        title=article.title,
        slug=article.slug,
        summary=article.summary,
        cover_image_url=article.cover_image_url,
        read_time_minutes=article.read_time_minutes,
        view_count=article.view_count or 0,
        like_count=article.like_count or 0,
        comment_count=article.comment_count or 0,
        published=article.published,
        created_at=article.created_at,
        published_at=article.published_at,
        author=AuthorSummary(
            id=author.id,
            username=author.username,
            bio=author.bio,
            profile_image_url=author.profile_image_url,
        ) if author is not None else None,
        tags=sorted(article.tag_names),
        score=scored.score,
        score_factors=dict(scored.factors) if debug else None,
    )
