from __future__ import annotations

from sqlalchemy import text

from moviemate.db import get_engine
from moviemate.matching.profile import RATING_MAX, RATING_MIN
from moviemate.profiles.db import ensure_movie, ensure_user
from moviemate.profiles.types import EXCLUSIVE_ACTIONS, INTERACTION_ACTIONS, Interaction


def validate_interaction(action: str, rating: int | None) -> None:
    if action not in INTERACTION_ACTIONS:
        raise ValueError(f"action must be one of {', '.join(sorted(INTERACTION_ACTIONS))}")
    if rating is None:
        return
    if action != "watched":
        raise ValueError("rating is only allowed with the watched action")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ValueError(f"rating must be between {RATING_MIN} and {RATING_MAX}")


def record_interaction(user_id: int, movie_id: int, action: str, rating: int | None = None) -> None:
    validate_interaction(action, rating)
    ensure_user(user_id)
    ensure_movie(movie_id)
    engine = get_engine()
    q_upsert = text(
        """
        INSERT INTO movie_interactions (user_id, movie_id, action, rating)
        VALUES (:user_id, :movie_id, :action, :rating)
        ON CONFLICT (user_id, movie_id, action)
        DO UPDATE SET rating = EXCLUDED.rating,
                      updated_at = now()
        """
    )
    q_remove = text(
        """
        DELETE FROM movie_interactions
        WHERE user_id = :user_id
          AND movie_id = :movie_id
          AND action = :action
        """
    )
    params = {"user_id": user_id, "movie_id": movie_id, "action": action, "rating": rating}
    with engine.begin() as conn:
        opposite = EXCLUSIVE_ACTIONS.get(action)
        if opposite:
            conn.execute(q_remove, {"user_id": user_id, "movie_id": movie_id, "action": opposite})
        conn.execute(q_upsert, params)


def remove_interaction(user_id: int, movie_id: int, action: str) -> bool:
    validate_interaction(action, None)
    ensure_user(user_id)
    engine = get_engine()
    q = text(
        """
        DELETE FROM movie_interactions
        WHERE user_id = :user_id
          AND movie_id = :movie_id
          AND action = :action
        """
    )
    with engine.begin() as conn:
        result = conn.execute(q, {"user_id": user_id, "movie_id": movie_id, "action": action})
    return result.rowcount > 0


_INTERACTION_ROWS_SQL = """
    SELECT i.user_id,
           i.movie_id,
           i.action,
           i.rating,
           i.updated_at,
           COALESCE(
               array_agg(g.genre ORDER BY g.genre) FILTER (WHERE g.genre IS NOT NULL),
               ARRAY[]::text[]
           ) AS genres
    FROM movie_interactions i
    LEFT JOIN movie_genres g ON g.movie_id = i.movie_id
    WHERE {where}
    GROUP BY i.user_id, i.movie_id, i.action, i.rating, i.updated_at
    ORDER BY i.user_id, i.updated_at ASC, i.movie_id
"""


def fetch_interaction_rows(user_id: int) -> list[dict]:
    engine = get_engine()
    q = text(_INTERACTION_ROWS_SQL.format(where="i.user_id = :user_id"))
    with engine.begin() as conn:
        return [dict(row) for row in conn.execute(q, {"user_id": user_id}).mappings()]


def fetch_interaction_rows_for_users(user_ids: list[int]) -> dict[int, list[dict]]:
    if not user_ids:
        return {}
    engine = get_engine()
    q = text(_INTERACTION_ROWS_SQL.format(where="i.user_id = ANY(:user_ids)"))
    grouped: dict[int, list[dict]] = {user_id: [] for user_id in user_ids}
    with engine.begin() as conn:
        for row in conn.execute(q, {"user_ids": list(user_ids)}).mappings():
            grouped.setdefault(int(row["user_id"]), []).append(dict(row))
    return grouped


def get_user_interactions(user_id: int, limit: int, offset: int = 0) -> list[Interaction]:
    ensure_user(user_id)
    engine = get_engine()
    q = text(
        """
        SELECT i.movie_id,
               i.action,
               i.rating,
               i.updated_at,
               COALESCE(
                   array_agg(g.genre ORDER BY g.genre) FILTER (WHERE g.genre IS NOT NULL),
                   ARRAY[]::text[]
               ) AS genres
        FROM movie_interactions i
        LEFT JOIN movie_genres g ON g.movie_id = i.movie_id
        WHERE i.user_id = :user_id
        GROUP BY i.movie_id, i.action, i.rating, i.updated_at
        ORDER BY i.updated_at DESC, i.movie_id
        LIMIT :limit
        OFFSET :offset
        """
    )
    with engine.begin() as conn:
        rows = (
            conn.execute(q, {"user_id": user_id, "limit": limit, "offset": offset}).mappings().all()
        )
    return [
        Interaction(
            movie_id=row["movie_id"],
            action=row["action"],
            rating=row["rating"],
            genres=list(row["genres"] or []),
            updated_at=str(row["updated_at"]) if row["updated_at"] else None,
        )
        for row in rows
    ]
