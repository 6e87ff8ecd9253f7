from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy import text

from moviemate.config import MATCH_CANDIDATES_LIMIT
from moviemate.db import get_engine
from moviemate.matching.profile import UserPreferenceProfile
from moviemate.profiles.db import ensure_user
from moviemate.profiles.interactions import fetch_interaction_rows, fetch_interaction_rows_for_users
from moviemate.profiles.types import INTERACTION_ACTIONS


# Ratings at or above this count as positive genre signal.
POSITIVE_RATING_MIN = 4


def build_profile(user_id: int | str, rows: Iterable[Mapping]) -> UserPreferenceProfile:
    """Aggregate interaction rows, oldest first, into a preference profile.

    Later rows win: a dislike drops an earlier like and the latest rating
    replaces older ones. Genres are derived from the final state, from liked
    movies and from movies rated at least ``POSITIVE_RATING_MIN``.
    """
    favorites: set[str] = set()
    watchlist: set[str] = set()
    ratings: dict[str, float] = {}
    movie_genres: dict[str, set[str]] = {}

    for row in rows:
        action = row.get("action")
        if action not in INTERACTION_ACTIONS:
            raise ValueError(f"Unknown interaction action: {action!r}")
        movie_id = str(row["movie_id"])
        genres_seen = movie_genres.setdefault(movie_id, set())
        genres_seen.update(str(genre) for genre in row.get("genres") or ())

        if action == "liked":
            favorites.add(movie_id)
        elif action == "disliked":
            favorites.discard(movie_id)
        elif action == "watchlist":
            watchlist.add(movie_id)
        elif row.get("rating") is not None:
            ratings[movie_id] = float(row["rating"])

    positive = {movie_id for movie_id, rating in ratings.items() if rating >= POSITIVE_RATING_MIN}
    genres: set[str] = set()
    for movie_id in favorites | positive:
        genres.update(movie_genres[movie_id])

    return UserPreferenceProfile(
        user_id=user_id,
        genres=genres,
        favorite_movies=favorites,
        watchlist=watchlist,
        ratings=ratings,
    )


def fetch_profile(user_id: int) -> UserPreferenceProfile:
    ensure_user(user_id)
    return build_profile(user_id, fetch_interaction_rows(user_id))


def _candidate_user_ids(user_id: int, limit: int) -> list[int]:
    engine = get_engine()
    q = text(
        """
        SELECT DISTINCT user_id
        FROM movie_interactions
        WHERE user_id != :user_id
        ORDER BY user_id
        LIMIT :limit
        """
    )
    with engine.begin() as conn:
        return [int(row[0]) for row in conn.execute(q, {"user_id": user_id, "limit": limit})]


def fetch_candidate_profiles(user_id: int, limit: int | None = None) -> list[UserPreferenceProfile]:
    """Profiles of other users with at least one interaction, by ascending id."""
    ensure_user(user_id)
    user_ids = _candidate_user_ids(user_id, limit or MATCH_CANDIDATES_LIMIT)
    grouped = fetch_interaction_rows_for_users(user_ids)
    return [build_profile(candidate_id, grouped.get(candidate_id, [])) for candidate_id in user_ids]
