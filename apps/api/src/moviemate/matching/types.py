from __future__ import annotations

from dataclasses import dataclass, field


class InvalidProfileError(ValueError):
    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(f"{field_name}: {message}")
        self.field = field_name


@dataclass
class MatchResult:
    user_id: str
    score: float
    match_reason: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DimensionScores:
    favorites: float
    genres: float
    ratings: float
    watchlist: float
    common_favorites: int
    common_genres: int
    common_ratings: int
    common_watchlist: int
    total: float
    shared_genres: tuple[str, ...] = ()


@dataclass
class MatchDetails:
    common_movies: list[str]
    common_genres: list[str]
    common_movies_count: int
    common_genres_count: int
    common_ratings_count: int
