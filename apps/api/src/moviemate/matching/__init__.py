from __future__ import annotations

from moviemate.matching.cache import CacheEntry, CandidateCache
from moviemate.matching.profile import (
    RATING_MAX,
    RATING_MIN,
    UserPreferenceProfile,
    coerce_profile,
    profile_from_mapping,
)
from moviemate.matching.scorer import (
    CRITERIA,
    WEIGHTS,
    MatchCriteria,
    MatchWeights,
    explain,
    find_candidates,
    is_viable,
    match_details,
    overlap_ratio,
    rating_similarity,
    score,
    score_dimensions,
)
from moviemate.matching.types import DimensionScores, InvalidProfileError, MatchDetails, MatchResult

__all__ = [
    "CRITERIA",
    "RATING_MAX",
    "RATING_MIN",
    "WEIGHTS",
    "CacheEntry",
    "CandidateCache",
    "DimensionScores",
    "InvalidProfileError",
    "MatchCriteria",
    "MatchDetails",
    "MatchResult",
    "MatchWeights",
    "UserPreferenceProfile",
    "coerce_profile",
    "explain",
    "find_candidates",
    "is_viable",
    "match_details",
    "overlap_ratio",
    "profile_from_mapping",
    "rating_similarity",
    "score",
    "score_dimensions",
]
