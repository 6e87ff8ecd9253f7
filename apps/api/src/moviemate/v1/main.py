import logging
from typing import Generic, Literal, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from moviemate.config import MAX_CANDIDATES_PER_REQUEST
from moviemate.errors import ApiError
from moviemate.matches import create_match, list_matches, update_match_status
from moviemate.matching import (
    CandidateCache,
    MatchResult,
    UserPreferenceProfile,
    find_candidates,
    is_viable,
    match_details,
    score,
    score_dimensions,
)
from moviemate.profiles import (
    create_user,
    fetch_candidate_profiles,
    fetch_profile,
    get_user_interactions,
    get_user_summary,
    record_interaction,
    remove_interaction,
)
from moviemate.rate_limit import batch_score_rate_limit, candidates_rate_limit, limiter

router = APIRouter()
logger = logging.getLogger("moviemate")

T = TypeVar("T")

InteractionAction = Literal["watched", "watchlist", "liked", "disliked"]
MatchStatus = Literal["pending", "accepted", "rejected"]


class Envelope(BaseModel, Generic[T]):
    data: T
    meta: dict | None = None


class ProfilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | int = Field(alias="userId")
    genres: list[str | int]
    favorite_movies: list[str | int] = Field(alias="favoriteMovies")
    watchlist: list[str | int]
    ratings: dict[str, float]

    def to_profile(self) -> UserPreferenceProfile:
        return UserPreferenceProfile(
            user_id=self.user_id,
            genres=self.genres,
            favorite_movies=self.favorite_movies,
            watchlist=self.watchlist,
            ratings=self.ratings,
        )


class PairRequest(BaseModel):
    subject: ProfilePayload
    candidate: ProfilePayload


class CandidatesRequest(BaseModel):
    subject: ProfilePayload
    candidates: list[ProfilePayload] = Field(max_length=MAX_CANDIDATES_PER_REQUEST)


class MatchResultResponse(BaseModel):
    user_id: str
    score: float
    match_reason: list[str]


class DimensionScoresResponse(BaseModel):
    favorites: float
    genres: float
    ratings: float
    watchlist: float
    common_favorites: int
    common_genres: int
    common_ratings: int
    common_watchlist: int
    total: float


class ScoreResponse(BaseModel):
    match: MatchResultResponse
    dimensions: DimensionScoresResponse
    viable: bool


class MatchDetailsResponse(BaseModel):
    common_movies: list[str]
    common_genres: list[str]
    common_movies_count: int
    common_genres_count: int
    common_ratings_count: int


class UserCreateRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=100)


class UserSummaryResponse(BaseModel):
    id: int
    display_name: str | None
    num_interactions: int
    num_favorites: int


class InteractionRequest(BaseModel):
    action: InteractionAction
    rating: int | None = Field(default=None, ge=1, le=5)


class InteractionResponse(BaseModel):
    movie_id: int
    action: str
    rating: int | None
    genres: list[str]
    updated_at: str | None


class ProfileResponse(BaseModel):
    user_id: str
    genres: list[str]
    favorite_movies: list[str]
    watchlist: list[str]
    ratings: dict[str, float]


class MatchCreateRequest(BaseModel):
    candidate_id: int


class MatchStatusRequest(BaseModel):
    status: MatchStatus


class MatchResponse(BaseModel):
    id: int
    user1_id: int
    user2_id: int
    match_score: float
    status: str
    created_at: str | None
    updated_at: str | None


class UserMatchResponse(BaseModel):
    id: int
    matched_user_id: int
    matched_display_name: str | None
    match_score: float
    status: str
    created_at: str | None


def get_candidate_cache(request: Request) -> CandidateCache:
    return request.app.state.candidate_cache


def _match_response(result: MatchResult) -> MatchResultResponse:
    return MatchResultResponse(**result.__dict__)


def _profile_response(profile: UserPreferenceProfile) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        genres=sorted(profile.genres),
        favorite_movies=sorted(profile.favorite_movies),
        watchlist=sorted(profile.watchlist),
        ratings=dict(profile.ratings),
    )


@router.post("/match/score", response_model=Envelope[ScoreResponse])
def score_pair(payload: PairRequest):
    subject = payload.subject.to_profile()
    candidate = payload.candidate.to_profile()
    dimensions = score_dimensions(subject, candidate)
    result = score(subject, candidate)
    return Envelope(
        data=ScoreResponse(
            match=_match_response(result),
            dimensions=DimensionScoresResponse(
                **{key: value for key, value in dimensions.__dict__.items() if key != "shared_genres"}
            ),
            viable=is_viable(dimensions),
        )
    )


@router.post("/match/candidates", response_model=Envelope[list[MatchResultResponse]])
@limiter.limit(batch_score_rate_limit)
def rank_candidates(request: Request, payload: CandidatesRequest):  # noqa: ARG001
    subject = payload.subject.to_profile()
    candidates = [item.to_profile() for item in payload.candidates]
    results = find_candidates(subject, candidates)
    return Envelope(
        data=[_match_response(result) for result in results],
        meta={"evaluated": len(candidates), "matched": len(results)},
    )


@router.post("/match/details", response_model=Envelope[MatchDetailsResponse])
def pair_details(payload: PairRequest):
    details = match_details(payload.subject.to_profile(), payload.candidate.to_profile())
    return Envelope(data=MatchDetailsResponse(**details.__dict__))


@router.post("/users", response_model=Envelope[UserSummaryResponse])
def create_user_profile(payload: UserCreateRequest):
    user_id = create_user(payload.display_name)
    summary = get_user_summary(user_id)
    return Envelope(data=UserSummaryResponse(**summary.__dict__))


@router.get("/users/{user_id}", response_model=Envelope[UserSummaryResponse])
def get_user(user_id: int):
    summary = get_user_summary(user_id)
    return Envelope(data=UserSummaryResponse(**summary.__dict__))


@router.put("/users/{user_id}/interactions/{movie_id}")
def put_interaction(
    user_id: int,
    movie_id: int,
    payload: InteractionRequest,
    cache: CandidateCache = Depends(get_candidate_cache),
):
    try:
        record_interaction(user_id, movie_id, payload.action, payload.rating)
    except ValueError as exc:
        raise ApiError(400, "BAD_REQUEST", str(exc)) from exc
    # Every cached ranking may include this user, not only their own.
    cache.clear()
    return {"status": "ok"}


@router.delete("/users/{user_id}/interactions/{movie_id}")
def delete_interaction(
    user_id: int,
    movie_id: int,
    action: InteractionAction = Query(),
    cache: CandidateCache = Depends(get_candidate_cache),
):
    removed = remove_interaction(user_id, movie_id, action)
    if removed:
        cache.clear()
    return {"status": "ok", "removed": removed}


@router.get("/users/{user_id}/interactions", response_model=Envelope[list[InteractionResponse]])
def user_interactions(
    user_id: int,
    k: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    items = get_user_interactions(user_id, k, offset)
    return Envelope(data=[InteractionResponse(**item.__dict__) for item in items])


@router.get("/users/{user_id}/profile", response_model=Envelope[ProfileResponse])
def user_profile(user_id: int):
    return Envelope(data=_profile_response(fetch_profile(user_id)))


@router.get("/users/{user_id}/candidates", response_model=Envelope[list[MatchResultResponse]])
@limiter.limit(candidates_rate_limit)
def user_candidates(
    request: Request,  # noqa: ARG001
    user_id: int,
    k: int = Query(default=20, ge=1, le=100),
    cache: CandidateCache = Depends(get_candidate_cache),
):
    key = f"candidates:{user_id}"
    entry = cache.get(key)
    cached = entry is not None
    if entry is not None:
        results = entry.items
    else:
        generation = cache.generation
        subject = fetch_profile(user_id)
        results = find_candidates(subject, fetch_candidate_profiles(user_id))
        # Skipped if an interaction write invalidated the cache meanwhile.
        cache.set(key, results, generation=generation)

    logger.info(
        "candidates_ranked",
        extra={"user_id": user_id, "matches": len(results), "cached": cached},
    )
    return Envelope(
        data=[_match_response(result) for result in results[:k]],
        meta={"total": len(results), "cached": cached},
    )


@router.post("/users/{user_id}/matches", response_model=Envelope[MatchResponse])
def create_user_match(user_id: int, payload: MatchCreateRequest):
    if payload.candidate_id == user_id:
        raise ApiError(400, "BAD_REQUEST", "A user cannot match with themselves")
    subject = fetch_profile(user_id)
    candidate = fetch_profile(payload.candidate_id)
    result = score(subject, candidate)
    if result.score <= 0:
        raise ApiError(409, "NOT_A_MATCH", f"Users {user_id} and {payload.candidate_id} do not match")

    match = create_match(user_id, payload.candidate_id, result.score)
    logger.info("match_created", extra={"user_id": user_id, "matches": 1})
    return Envelope(data=MatchResponse(**match.__dict__), meta={"match_reason": result.match_reason})


@router.get("/users/{user_id}/matches", response_model=Envelope[list[UserMatchResponse]])
def user_matches(
    user_id: int,
    k: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    items = list_matches(user_id, k, offset)
    return Envelope(data=[UserMatchResponse(**item.__dict__) for item in items])


@router.patch("/users/{user_id}/matches/{match_id}", response_model=Envelope[MatchResponse])
def patch_user_match(user_id: int, match_id: int, payload: MatchStatusRequest):
    match = update_match_status(match_id, user_id, payload.status)
    return Envelope(data=MatchResponse(**match.__dict__))
