from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from moviemate.matching.types import InvalidProfileError


RATING_MIN = 1
RATING_MAX = 5

# Accepted spellings for each profile field; the first one is canonical.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "user_id": ("user_id", "userId", "id"),
    "genres": ("genres",),
    "favorite_movies": ("favorite_movies", "favoriteMovies"),
    "watchlist": ("watchlist",),
    "ratings": ("ratings",),
}


def normalize_id(value: object, field_name: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidProfileError(field_name, f"identifier must be a string or integer, got {type(value).__name__}")
    normalized = str(value).strip()
    if not normalized:
        raise InvalidProfileError(field_name, "identifier must not be empty")
    return normalized


def normalize_id_set(values: object, field_name: str) -> frozenset[str]:
    if values is None:
        raise InvalidProfileError(field_name, "is required")
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, Iterable):
        raise InvalidProfileError(field_name, "must be a collection of identifiers")
    return frozenset(normalize_id(value, field_name) for value in values)


def normalize_ratings(values: object) -> Mapping[str, float]:
    if values is None:
        raise InvalidProfileError("ratings", "is required")
    if not isinstance(values, Mapping):
        raise InvalidProfileError("ratings", "must be a mapping of movie id to rating")

    ratings: dict[str, float] = {}
    for movie_id, rating in values.items():
        key = normalize_id(movie_id, "ratings")
        if isinstance(rating, bool) or not isinstance(rating, (int, float)) or not math.isfinite(rating):
            raise InvalidProfileError(f"ratings[{key}]", "rating must be a number")
        if not RATING_MIN <= rating <= RATING_MAX:
            raise InvalidProfileError(f"ratings[{key}]", f"rating must be between {RATING_MIN} and {RATING_MAX}")
        ratings[key] = float(rating)
    return MappingProxyType(ratings)


@dataclass(frozen=True)
class UserPreferenceProfile:
    """Read-only snapshot of one user's movie preferences.

    Identifiers are normalized to strings on construction so that ``1`` and
    ``"1"`` name the same movie. Construction fails with
    :class:`InvalidProfileError` instead of defaulting missing collections.
    """

    user_id: str
    genres: frozenset[str]
    favorite_movies: frozenset[str]
    watchlist: frozenset[str]
    ratings: Mapping[str, float]

    def __post_init__(self) -> None:
        if self.user_id is None:
            raise InvalidProfileError("user_id", "is required")
        object.__setattr__(self, "user_id", normalize_id(self.user_id, "user_id"))
        object.__setattr__(self, "genres", normalize_id_set(self.genres, "genres"))
        object.__setattr__(self, "favorite_movies", normalize_id_set(self.favorite_movies, "favorite_movies"))
        object.__setattr__(self, "watchlist", normalize_id_set(self.watchlist, "watchlist"))
        object.__setattr__(self, "ratings", normalize_ratings(self.ratings))


def _lookup(payload: Mapping, name: str) -> object:
    for alias in _FIELD_ALIASES[name]:
        if alias in payload:
            return payload[alias]
    raise InvalidProfileError(name, "is required")


def profile_from_mapping(payload: object) -> UserPreferenceProfile:
    if not isinstance(payload, Mapping):
        raise InvalidProfileError("profile", "must be a mapping")
    return UserPreferenceProfile(
        user_id=_lookup(payload, "user_id"),
        genres=_lookup(payload, "genres"),
        favorite_movies=_lookup(payload, "favorite_movies"),
        watchlist=_lookup(payload, "watchlist"),
        ratings=_lookup(payload, "ratings"),
    )


def coerce_profile(value: object) -> UserPreferenceProfile:
    if isinstance(value, UserPreferenceProfile):
        return value
    return profile_from_mapping(value)
