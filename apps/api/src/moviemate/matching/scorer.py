from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from moviemate.matching.profile import RATING_MAX, RATING_MIN, UserPreferenceProfile, coerce_profile
from moviemate.matching.types import DimensionScores, MatchDetails, MatchResult


@dataclass(frozen=True)
class MatchWeights:
    favorites: float = 0.4
    genres: float = 0.3
    ratings: float = 0.2
    watchlist: float = 0.1


@dataclass(frozen=True)
class MatchCriteria:
    min_common_favorites: int = 1
    min_common_genres: int = 2
    min_total_score: float = 0.3
    min_common_ratings: int = 3


WEIGHTS = MatchWeights()
CRITERIA = MatchCriteria()
RATING_RANGE_WIDTH = float(RATING_MAX - RATING_MIN)


def overlap_ratio(left: frozenset[str], right: frozenset[str]) -> tuple[float, int]:
    common = len(left & right)
    return common / max(1, min(len(left), len(right))), common


def rating_similarity(left: UserPreferenceProfile, right: UserPreferenceProfile) -> tuple[float, int]:
    # Sorted so a-vs-b and b-vs-a sum in the same order.
    common = sorted(left.ratings.keys() & right.ratings.keys())
    if len(common) < CRITERIA.min_common_ratings:
        return 0.0, len(common)
    total = 0.0
    for movie_id in common:
        total += 1.0 - abs(left.ratings[movie_id] - right.ratings[movie_id]) / RATING_RANGE_WIDTH
    return total / len(common), len(common)


def score_dimensions(a, b) -> DimensionScores:
    a = coerce_profile(a)
    b = coerce_profile(b)

    favorites, common_favorites = overlap_ratio(a.favorite_movies, b.favorite_movies)
    genres, common_genres = overlap_ratio(a.genres, b.genres)
    ratings, common_ratings = rating_similarity(a, b)
    watchlist, common_watchlist = overlap_ratio(a.watchlist, b.watchlist)

    total = (
        WEIGHTS.favorites * favorites
        + WEIGHTS.genres * genres
        + WEIGHTS.ratings * ratings
        + WEIGHTS.watchlist * watchlist
    )
    return DimensionScores(
        favorites=favorites,
        genres=genres,
        ratings=ratings,
        watchlist=watchlist,
        common_favorites=common_favorites,
        common_genres=common_genres,
        common_ratings=common_ratings,
        common_watchlist=common_watchlist,
        total=max(0.0, min(total, 1.0)),
        shared_genres=tuple(sorted(a.genres & b.genres)),
    )


def is_viable(dimensions: DimensionScores) -> bool:
    return (
        dimensions.common_favorites >= CRITERIA.min_common_favorites
        and dimensions.common_genres >= CRITERIA.min_common_genres
        and dimensions.total >= CRITERIA.min_total_score
    )


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    return singular if count == 1 else (plural or f"{singular}s")


def explain(dimensions: DimensionScores) -> list[str]:
    reasons: list[str] = []
    if dimensions.common_favorites:
        n = dimensions.common_favorites
        reasons.append(f"{n} common favorite {_plural(n, 'movie')}")
    if dimensions.common_genres:
        n = dimensions.common_genres
        reasons.append(f"shares {n} {_plural(n, 'genre')}: {', '.join(dimensions.shared_genres)}")
    if dimensions.common_ratings:
        n = dimensions.common_ratings
        reason = f"{n} commonly rated {_plural(n, 'movie')}"
        if n >= CRITERIA.min_common_ratings:
            reason += f", {round(dimensions.ratings * 100)}% rating agreement"
        reasons.append(reason)
    if dimensions.common_watchlist:
        n = dimensions.common_watchlist
        reasons.append(f"{n} {_plural(n, 'movie')} on both watchlists")
    return reasons


def score(a, b) -> MatchResult:
    """Score ``b`` against the subject ``a``.

    The returned score is the weighted sum of the four dimensions when the
    pair clears the minimum criteria, and exactly ``0.0`` otherwise. The
    explanation lists every dimension with a non-zero overlap regardless of
    gating.
    """
    b = coerce_profile(b)
    dimensions = score_dimensions(a, b)
    gated = dimensions.total if is_viable(dimensions) else 0.0
    return MatchResult(user_id=b.user_id, score=gated, match_reason=explain(dimensions))


def _id_sort_key(user_id: str) -> tuple[int, int, str]:
    if user_id.isdigit():
        return (0, int(user_id), user_id)
    return (1, 0, user_id)


def find_candidates(subject, candidates: Iterable) -> list[MatchResult]:
    subject = coerce_profile(subject)
    results: list[MatchResult] = []
    for candidate in candidates:
        candidate = coerce_profile(candidate)
        if candidate.user_id == subject.user_id:
            continue
        result = score(subject, candidate)
        if result.score > CRITERIA.min_total_score:
            results.append(result)

    results.sort(key=lambda item: (-item.score, _id_sort_key(item.user_id)))
    return results


def match_details(a, b) -> MatchDetails:
    a = coerce_profile(a)
    b = coerce_profile(b)
    common_movies = sorted(a.favorite_movies & b.favorite_movies)
    common_genres = sorted(a.genres & b.genres)
    return MatchDetails(
        common_movies=common_movies,
        common_genres=common_genres,
        common_movies_count=len(common_movies),
        common_genres_count=len(common_genres),
        common_ratings_count=len(a.ratings.keys() & b.ratings.keys()),
    )
