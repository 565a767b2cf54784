from typing import Callable, List
import uuid as uuid_lib
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.services import recommendation_engine, article_queries
from app.services.recommendation_engine import CandidateLimits, NotFoundError
from app.services.scoring import ScoredArticle, ScoringConfig
from app.schemas.recommendation import RecommendationsResponse, to_recommendation_item
from app.utils.timing import now_ms, log_elapsed
from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


def get_scoring_config() -> ScoringConfig:
    return ScoringConfig.from_settings(settings)


def get_candidate_limits() -> CandidateLimits:
    return CandidateLimits.from_settings(settings)


def _limit_query(default: int = 10):
    return Query(default, ge=1, le=settings.RECO_MAX_LIMIT)


def _respond(
    strategy: str,
    subject: str,
    run: Callable[[], List[ScoredArticle]],
    debug: bool,
) -> RecommendationsResponse:
    """Run one strategy, translating engine errors to HTTP and timing the call."""
    request_id = str(uuid_lib.uuid4())
    t0 = now_ms()
    try:
        scored = run()
    except NotFoundError as e:
        logger.info("req_id=%s %s %s: %s", request_id, strategy, subject, e)
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        error_type = type(e).__name__
        error_message = str(e) if str(e) else "An unexpected error occurred"
        logger.exception(
            f"[GET {strategy} ERROR] req_id={request_id} {subject} "
            f"error_type={error_type}, error={error_message}"
        )
        raise HTTPException(
            status_code=500,
            detail={
                "detail": "internal_error",
                "error_type": error_type,
                "error": error_message,
            },
        )

    if settings.DEBUG:
        log_elapsed(t0, f"req_id={request_id} {strategy} {subject}", logger.debug)

    return RecommendationsResponse(
        request_id=request_id,
        strategy=strategy,
        items=[to_recommendation_item(s, debug=debug) for s in scored],
    )


@router.get("/users/{user_id}/feed", response_model=RecommendationsResponse)
def get_personalized_feed(
    user_id: int,
    limit: int = _limit_query(),
    debug: bool = Query(False, description="Include score factors in response"),
    db: Session = Depends(get_db),
    config: ScoringConfig = Depends(get_scoring_config),
    limits: CandidateLimits = Depends(get_candidate_limits),
):
    return _respond(
        "personalized",
        f"user_id={user_id}",
        lambda: recommendation_engine.recommend_personalized(
            db, user_id, limit, config=config, limits=limits
        ),
        debug,
    )


@router.get("/users/by-username/{username}/feed", response_model=RecommendationsResponse)
def get_personalized_feed_by_username(
    username: str,
    limit: int = _limit_query(),
    debug: bool = Query(False, description="Include score factors in response"),
    db: Session = Depends(get_db),
    config: ScoringConfig = Depends(get_scoring_config),
    limits: CandidateLimits = Depends(get_candidate_limits),
):
    user = article_queries.get_user_by_username(db, username)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {username!r} not found")
    return _respond(
        "personalized",
        f"username={username}",
        lambda: recommendation_engine.recommend_personalized(
            db, user.id, limit, config=config, limits=limits
        ),
        debug,
    )


@router.get("/articles/{article_id}/more-like-this", response_model=RecommendationsResponse)
def get_more_like_this(
    article_id: int,
    limit: int = _limit_query(),
    debug: bool = Query(False, description="Include score factors in response"),
    db: Session = Depends(get_db),
    limits: CandidateLimits = Depends(get_candidate_limits),
):
    return _respond(
        "more_like_this",
        f"article_id={article_id}",
        lambda: recommendation_engine.recommend_more_like_this(db, article_id, limit, limits=limits),
        debug,
    )


@router.get("/users/{user_id}/collaborative", response_model=RecommendationsResponse)
def get_collaborative_recommendations(
    user_id: int,
    limit: int = _limit_query(),
    debug: bool = Query(False, description="Include score factors in response"),
    db: Session = Depends(get_db),
    limits: CandidateLimits = Depends(get_candidate_limits),
):
    return _respond(
        "collaborative",
        f"user_id={user_id}",
        lambda: recommendation_engine.recommend_collaborative(db, user_id, limit, limits=limits),
        debug,
    )
