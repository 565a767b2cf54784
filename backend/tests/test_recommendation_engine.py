"""Tests for candidate generation, peer selection, ranking and the public operations."""
import pytest
from sqlalchemy.orm import Session

from app.services import recommendation_engine
from app.services.recommendation_engine import (
    CandidateLimits,
    NotFoundError,
    find_peers,
    get_collaborative_recommendations,
    get_more_like_this,
    get_personalized_feed,
    load_behavior_profile,
    personalized_candidates,
    rank,
    recommend_collaborative,
    recommend_personalized,
)
from app.services.scoring import ScoredArticle
from conftest import NOW


# ----------------------------
# Personalized feed
# ----------------------------

def test_feed_excludes_already_read_articles(db: Session, make_user, make_article, read):
    user = make_user()
    seen = make_article(tags=["go"], views=5000)
    fresh = make_article(tags=["go"])
    read(user, seen)

    ids = get_personalized_feed(db, user.id, 10, now=NOW)
    assert seen.id not in ids
    assert fresh.id in ids


def test_cold_user_gets_trending_articles_only(db: Session, make_user, make_article):
    user = make_user()
    published = [make_article(views=100 * i) for i in range(1, 8)]
    draft = make_article(views=10**6, published=False)

    results = recommend_personalized(db, user.id, 5, now=NOW)

    assert len(results) == 5
    ids = [r.article.id for r in results]
    assert draft.id not in ids
    assert set(ids) <= {a.id for a in published}
    assert all(r.article.published for r in results)
    assert all(r.factors["content"] == 0.0 for r in results)


def test_feed_never_contains_unpublished_articles(db: Session, make_user, make_article, read):
    user = make_user()
    read(user, make_article(tags=["rust"]))
    hidden = make_article(tags=["rust"], published=False)

    assert hidden.id not in get_personalized_feed(db, user.id, 10, now=NOW)


def test_candidate_pool_is_deduplicated(db: Session, make_user, make_article, read):
    user = make_user()
    read(user, make_article(tags=["go"]))
    both = make_article(tags=["go"], views=10**6)  # interest-matched and trending

    profile = load_behavior_profile(db, user.id)
    pool = personalized_candidates(db, profile)
    assert [a.id for a in pool].count(both.id) == 1


def test_candidate_pool_puts_interest_matches_before_trending(db: Session, make_user, make_article, read):
    user = make_user()
    read(user, make_article(tags=["go"]))
    niche = make_article(tags=["go"], views=1)
    both = make_article(tags=["go"], views=10**6)
    viral = make_article(tags=["web"], views=10**5)

    profile = load_behavior_profile(db, user.id)
    ids = [a.id for a in personalized_candidates(db, profile)]

    assert ids.index(niche.id) < ids.index(viral.id)
    # first occurrence wins: `both` keeps its interest-matched slot
    assert ids.index(both.id) < ids.index(viral.id)


def test_candidate_pool_respects_fetch_caps(db: Session, make_user, make_article, read):
    user = make_user()
    read(user, make_article(tags=["go"]))
    for i in range(6):
        make_article(tags=["go"])
    for i in range(6):
        make_article(views=1000 + i)

    limits = CandidateLimits(interest_candidates=2, trending_candidates=1)
    profile = load_behavior_profile(db, user.id)
    pool = personalized_candidates(db, profile, limits)
    assert 0 < len(pool) <= 3


def test_feed_ranks_closer_interest_match_first(db: Session, make_user, make_article, read):
    user = make_user()
    read(user, make_article(tags=["go", "rust"]))
    partial = make_article(tags=["go"], age_days=10)
    full = make_article(tags=["go", "rust"], age_days=10)

    ids = get_personalized_feed(db, user.id, 2, now=NOW)
    assert ids == [full.id, partial.id]


def test_feed_truncates_to_limit(db: Session, make_user, make_article):
    user = make_user()
    for i in range(8):
        make_article(views=i)
    assert len(get_personalized_feed(db, user.id, 3, now=NOW)) == 3
    assert get_personalized_feed(db, user.id, 0, now=NOW) == []


def test_feed_for_missing_user_raises_not_found(db: Session):
    with pytest.raises(NotFoundError):
        get_personalized_feed(db, 424242, 5)


# ----------------------------
# More like this
# ----------------------------

def test_more_like_this_ranks_by_jaccard_and_excludes_source(db: Session, make_article):
    source = make_article(tags=["go", "rust", "systems"])
    half = make_article(tags=["go", "rust", "web"])
    third = make_article(tags=["go", "css", "html"])
    make_article(tags=["python"])

    results = recommendation_engine.recommend_more_like_this(db, source.id, 10)
    assert [r.article.id for r in results] == [half.id, third.id]
    assert results[0].score == pytest.approx(0.5)
    assert results[1].score == pytest.approx(0.2)


@pytest.mark.parametrize("limit", [0, 1, 2, 10])
def test_more_like_this_never_returns_source(db: Session, make_article, limit):
    source = make_article(tags=["go"])
    for _ in range(4):
        make_article(tags=["go"])

    ids = get_more_like_this(db, source.id, limit)
    assert source.id not in ids
    assert len(ids) <= limit


def test_more_like_this_without_shared_tags_is_empty(db: Session, make_article):
    source = make_article(tags=["haskell"])
    make_article(tags=["go"])
    make_article(tags=["rust"])
    assert get_more_like_this(db, source.id, 10) == []


def test_more_like_this_for_untagged_source_is_empty(db: Session, make_article):
    source = make_article()
    make_article(tags=["go"])
    assert get_more_like_this(db, source.id, 10) == []


def test_more_like_this_skips_unpublished(db: Session, make_article):
    source = make_article(tags=["go"])
    draft = make_article(tags=["go"], published=False)
    assert draft.id not in get_more_like_this(db, source.id, 10)


def test_more_like_this_for_missing_article_raises_not_found(db: Session):
    with pytest.raises(NotFoundError):
        get_more_like_this(db, 13579, 5)


# ----------------------------
# Peers and collaborative
# ----------------------------

def test_peers_are_bounded_and_exclude_self(db: Session, make_user):
    me = make_user()
    for _ in range(15):
        make_user()

    for policy in ("first_users", "read_overlap"):
        peers = find_peers(db, me.id, CandidateLimits(peer_policy=policy))
        assert len(peers) == 10
        assert me.id not in peers
        assert len(set(peers)) == len(peers)


def test_first_users_policy_returns_other_users_in_id_order(db: Session, make_user):
    me = make_user()
    others = [make_user() for _ in range(15)]

    peers = find_peers(db, me.id, CandidateLimits(peer_policy="first_users"))
    assert peers == sorted(u.id for u in others)[:10]


def test_overlap_policy_prefers_similar_readers(db: Session, make_user, make_article, read):
    x, y, z, w = (make_article() for _ in range(4))
    me = make_user("me")
    close = make_user("close")
    far = make_user("far")
    make_user("stranger")

    read(me, x)
    read(me, y)
    read(close, x)
    read(close, y)
    read(far, x)
    read(far, z)
    read(far, w)

    top_two = find_peers(db, me.id, CandidateLimits(peer_limit=2))
    assert top_two == [close.id, far.id]

    topped_up = find_peers(db, me.id, CandidateLimits(peer_limit=3))
    assert topped_up[:2] == [close.id, far.id]
    assert len(topped_up) == 3
    assert me.id not in topped_up


def test_collaborative_uses_strong_peer_claps(db: Session, make_user, make_article, clap):
    me = make_user("me")
    p1 = make_user("p1")
    p2 = make_user("p2")
    a = make_article()
    b = make_article()
    c = make_article()
    clap(p1, a, 10)
    clap(p1, b, 3)   # weak signal only
    clap(p2, a, 20)
    clap(p2, c, 6)
    clap(me, b, 50)  # own claps never count

    limits = CandidateLimits(peer_policy="first_users")
    results = recommend_collaborative(db, me.id, 10, limits=limits)

    assert [r.article.id for r in results] == [a.id, c.id]
    assert results[0].factors["peer_claps"] == 30.0
    assert results[1].factors["peer_claps"] == 6.0


def test_collaborative_skips_unpublished(db: Session, make_user, make_article, clap):
    me = make_user()
    peer = make_user()
    draft = make_article(published=False)
    clap(peer, draft, 40)

    ids = get_collaborative_recommendations(db, me.id, 10, limits=CandidateLimits(peer_policy="first_users"))
    assert draft.id not in ids


def test_collaborative_for_missing_user_raises_not_found(db: Session):
    with pytest.raises(NotFoundError):
        get_collaborative_recommendations(db, 112233, 5)


# ----------------------------
# Ranker
# ----------------------------

def test_rank_keeps_candidate_order_for_ties():
    first, second, best = object(), object(), object()
    scored = [
        ScoredArticle(first, 0.5),
        ScoredArticle(second, 0.5),
        ScoredArticle(best, 0.9),
    ]
    ranked = rank(scored, 10)
    assert [s.article for s in ranked] == [best, first, second]


def test_rank_truncates_and_handles_empty_input():
    scored = [ScoredArticle(object(), float(i)) for i in range(5)]
    assert [s.score for s in rank(scored, 2)] == [4.0, 3.0]
    assert rank([], 5) == []
    assert rank(scored, 0) == []
