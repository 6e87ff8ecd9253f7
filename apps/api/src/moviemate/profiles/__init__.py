from __future__ import annotations

from moviemate.profiles.db import create_user, get_user_summary, upsert_movie
from moviemate.profiles.interactions import (
    get_user_interactions,
    record_interaction,
    remove_interaction,
    validate_interaction,
)
from moviemate.profiles.profile import build_profile, fetch_candidate_profiles, fetch_profile
from moviemate.profiles.types import (
    INTERACTION_ACTIONS,
    Interaction,
    MovieNotFoundError,
    UserNotFoundError,
    UserSummary,
)

__all__ = [
    "INTERACTION_ACTIONS",
    "Interaction",
    "MovieNotFoundError",
    "UserNotFoundError",
    "UserSummary",
    "build_profile",
    "create_user",
    "fetch_candidate_profiles",
    "fetch_profile",
    "get_user_interactions",
    "get_user_summary",
    "record_interaction",
    "remove_interaction",
    "upsert_movie",
    "validate_interaction",
]
