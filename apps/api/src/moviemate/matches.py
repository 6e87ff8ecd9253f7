from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import text

from moviemate.db import get_engine
from moviemate.profiles.db import ensure_user


MATCH_STATUSES = frozenset({"pending", "accepted", "rejected"})


class MatchNotFoundError(LookupError):
    pass


class NotMatchParticipantError(PermissionError):
    pass


@dataclass
class Match:
    id: int
    user1_id: int
    user2_id: int
    match_score: float
    status: str
    created_at: str | None
    updated_at: str | None


@dataclass
class UserMatch:
    id: int
    matched_user_id: int
    matched_display_name: str | None
    match_score: float
    status: str
    created_at: str | None


def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
    if user_a == user_b:
        raise ValueError("A user cannot match with themselves")
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def _match_from_row(row) -> Match:
    return Match(
        id=row["id"],
        user1_id=row["user1_id"],
        user2_id=row["user2_id"],
        match_score=float(row["match_score"]),
        status=row["status"],
        created_at=str(row["created_at"]) if row["created_at"] else None,
        updated_at=str(row["updated_at"]) if row["updated_at"] else None,
    )


def create_match(user_a: int, user_b: int, match_score: float) -> Match:
    user1_id, user2_id = canonical_pair(user_a, user_b)
    ensure_user(user1_id)
    ensure_user(user2_id)
    engine = get_engine()
    q = text(
        """
        INSERT INTO matches (user1_id, user2_id, match_score, status)
        VALUES (:user1_id, :user2_id, :match_score, 'pending')
        ON CONFLICT (user1_id, user2_id)
        DO UPDATE SET match_score = EXCLUDED.match_score,
                      updated_at = now()
        RETURNING id, user1_id, user2_id, match_score, status, created_at, updated_at
        """
    )
    with engine.begin() as conn:
        row = (
            conn.execute(
                q,
                {"user1_id": user1_id, "user2_id": user2_id, "match_score": match_score},
            )
            .mappings()
            .first()
        )
    if row is None:
        raise RuntimeError("Failed to create match")
    return _match_from_row(row)


def list_matches(user_id: int, limit: int = 50, offset: int = 0) -> list[UserMatch]:
    ensure_user(user_id)
    engine = get_engine()
    q = text(
        """
        SELECT m.id,
               CASE WHEN m.user1_id = :user_id THEN m.user2_id ELSE m.user1_id END AS matched_user_id,
               u.display_name AS matched_display_name,
               m.match_score,
               m.status,
               m.created_at
        FROM matches m
        JOIN users u
          ON u.id = CASE WHEN m.user1_id = :user_id THEN m.user2_id ELSE m.user1_id END
        WHERE m.user1_id = :user_id OR m.user2_id = :user_id
        ORDER BY m.created_at DESC, m.id DESC
        LIMIT :limit
        OFFSET :offset
        """
    )
    with engine.begin() as conn:
        rows = (
            conn.execute(q, {"user_id": user_id, "limit": limit, "offset": offset}).mappings().all()
        )
    return [
        UserMatch(
            id=row["id"],
            matched_user_id=row["matched_user_id"],
            matched_display_name=row["matched_display_name"],
            match_score=float(row["match_score"]),
            status=row["status"],
            created_at=str(row["created_at"]) if row["created_at"] else None,
        )
        for row in rows
    ]


def update_match_status(match_id: int, user_id: int, status: str) -> Match:
    if status not in MATCH_STATUSES:
        raise ValueError(f"status must be one of {', '.join(sorted(MATCH_STATUSES))}")
    engine = get_engine()
    q_select = text("SELECT user1_id, user2_id FROM matches WHERE id = :match_id")
    q_update = text(
        """
        UPDATE matches
        SET status = :status,
            updated_at = now()
        WHERE id = :match_id
        RETURNING id, user1_id, user2_id, match_score, status, created_at, updated_at
        """
    )
    with engine.begin() as conn:
        owners = conn.execute(q_select, {"match_id": match_id}).mappings().first()
        if owners is None:
            raise MatchNotFoundError(f"Match {match_id} not found")
        if user_id not in (owners["user1_id"], owners["user2_id"]):
            raise NotMatchParticipantError(f"User {user_id} is not part of match {match_id}")
        row = conn.execute(q_update, {"match_id": match_id, "status": status}).mappings().first()
    return _match_from_row(row)
