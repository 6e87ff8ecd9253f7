from __future__ import annotations

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from moviemate.config import (
    DEFAULT_RATE_LIMIT_BATCH_SCORE,
    DEFAULT_RATE_LIMIT_CANDIDATES,
    RATE_LIMIT_DEFAULT,
)


def candidates_rate_limit() -> str:
    return os.getenv("RATE_LIMIT_CANDIDATES", DEFAULT_RATE_LIMIT_CANDIDATES)


def batch_score_rate_limit() -> str:
    return os.getenv("RATE_LIMIT_BATCH_SCORE", DEFAULT_RATE_LIMIT_BATCH_SCORE)


# Keyed on the connecting peer; forwarding headers are client-controlled.
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT_DEFAULT])
