from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import text

from moviemate.db import get_engine
from moviemate.profiles.types import MovieNotFoundError, UserNotFoundError, UserSummary


def ensure_user(user_id: int) -> None:
    engine = get_engine()
    q = text("SELECT 1 FROM users WHERE id = :user_id")
    with engine.begin() as conn:
        row = conn.execute(q, {"user_id": user_id}).first()
    if row is None:
        raise UserNotFoundError(f"User {user_id} not found")


def ensure_movie(movie_id: int) -> None:
    engine = get_engine()
    q = text("SELECT 1 FROM movies WHERE id = :movie_id")
    with engine.begin() as conn:
        row = conn.execute(q, {"movie_id": movie_id}).first()
    if row is None:
        raise MovieNotFoundError(f"Movie {movie_id} not found")


def create_user(display_name: str | None = None) -> int:
    engine = get_engine()
    q = text("INSERT INTO users (display_name) VALUES (:display_name) RETURNING id")
    with engine.begin() as conn:
        row = conn.execute(q, {"display_name": display_name}).first()
    if row is None:
        raise RuntimeError("Failed to create user")
    return int(row[0])


def upsert_movie(movie_id: int, title: str | None, genres: Iterable[str]) -> None:
    """Store the metadata matching needs: a movie and its genre names."""
    engine = get_engine()
    q_movie = text(
        """
        INSERT INTO movies (id, title)
        VALUES (:movie_id, :title)
        ON CONFLICT (id)
        DO UPDATE SET title = EXCLUDED.title
        """
    )
    q_clear = text("DELETE FROM movie_genres WHERE movie_id = :movie_id")
    q_genre = text(
        """
        INSERT INTO movie_genres (movie_id, genre)
        VALUES (:movie_id, :genre)
        ON CONFLICT DO NOTHING
        """
    )
    names = sorted({genre.strip() for genre in genres if genre and genre.strip()})
    with engine.begin() as conn:
        conn.execute(q_movie, {"movie_id": movie_id, "title": title})
        conn.execute(q_clear, {"movie_id": movie_id})
        for genre in names:
            conn.execute(q_genre, {"movie_id": movie_id, "genre": genre})


def get_user_summary(user_id: int) -> UserSummary:
    engine = get_engine()
    q = text(
        """
        SELECT u.id,
               u.display_name,
               COUNT(i.movie_id) AS num_interactions,
               COUNT(i.movie_id) FILTER (WHERE i.action = 'liked') AS num_favorites
        FROM users u
        LEFT JOIN movie_interactions i ON i.user_id = u.id
        WHERE u.id = :user_id
        GROUP BY u.id, u.display_name
        """
    )
    with engine.begin() as conn:
        row = conn.execute(q, {"user_id": user_id}).mappings().first()
    if not row:
        raise UserNotFoundError(f"User {user_id} not found")
    return UserSummary(
        id=row["id"],
        display_name=row["display_name"],
        num_interactions=int(row["num_interactions"] or 0),
        num_favorites=int(row["num_favorites"] or 0),
    )
