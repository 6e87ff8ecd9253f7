from __future__ import annotations

from dataclasses import dataclass, field


INTERACTION_ACTIONS = frozenset({"watched", "watchlist", "liked", "disliked"})
# Recording one of these removes the other for the same movie.
EXCLUSIVE_ACTIONS = {"liked": "disliked", "disliked": "liked"}


class UserNotFoundError(LookupError):
    pass


class MovieNotFoundError(LookupError):
    pass


@dataclass
class UserSummary:
    id: int
    display_name: str | None
    num_interactions: int
    num_favorites: int


@dataclass
class Interaction:
    movie_id: int
    action: str
    rating: int | None = None
    genres: list[str] = field(default_factory=list)
    updated_at: str | None = None
