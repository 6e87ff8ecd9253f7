import logging
import random
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from moviemate.config import (
    CANDIDATE_CACHE_ENABLED,
    CANDIDATE_CACHE_TTL_S,
    FRONTEND_ORIGINS,
    LOG_REQUEST_SAMPLE_RATE,
    LOG_SLOW_REQUEST_MS,
    MAX_REQUEST_BYTES,
)
from moviemate.errors import HTTP_STATUS_CODES, ApiError, error_payload
from moviemate.logging_config import configure_logging
from moviemate.matches import MatchNotFoundError, NotMatchParticipantError
from moviemate.matching import CandidateCache, InvalidProfileError
from moviemate.profiles import MovieNotFoundError, UserNotFoundError
from moviemate.rate_limit import limiter
from moviemate.v1.main import router as v1_router

logger = logging.getLogger("moviemate")

SECURITY_HEADERS = {
    "x-content-type-options": "nosniff",
    "x-frame-options": "DENY",
    "referrer-policy": "strict-origin-when-cross-origin",
    "permissions-policy": "geolocation=(), camera=(), microphone=()",
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    yield


app = FastAPI(title="MovieMate Matching API", lifespan=lifespan)
app.state.limiter = limiter
app.state.candidate_cache = CandidateCache(CANDIDATE_CACHE_TTL_S if CANDIDATE_CACHE_ENABLED else 0)

app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_payload(code, message))


def _apply_security_headers(response: Response) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# Registration order matters: the last registered middleware runs outermost.
@app.middleware("http")
async def limit_request_size(request: Request, call_next):
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            size = int(content_length)
        except ValueError:
            return _error_response(400, "BAD_REQUEST", "Invalid Content-Length header")
        if size > MAX_REQUEST_BYTES:
            return _error_response(
                413, "PAYLOAD_TOO_LARGE", f"Request body exceeds {MAX_REQUEST_BYTES} bytes"
            )
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["x-request-id"] = request_id

    slow = duration_ms >= LOG_SLOW_REQUEST_MS
    sampled = random.random() < LOG_REQUEST_SAMPLE_RATE
    if slow or sampled:
        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "request_id": request_id,
                "client": request.client.host if request.client else None,
                "slow": slow,
                "sampled": sampled,
            },
        )
    return response


@app.exception_handler(ApiError)
async def _api_error_handler(_request: Request, exc: ApiError):
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_request: Request, exc: RequestValidationError):
    payload = error_payload("VALIDATION_ERROR", "Request validation failed")
    payload["error"]["details"] = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(InvalidProfileError)
async def _invalid_profile_handler(_request: Request, exc: InvalidProfileError):
    payload = error_payload("INVALID_PROFILE", str(exc))
    payload["error"]["field"] = exc.field
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(UserNotFoundError)
async def _user_not_found_handler(_request: Request, exc: UserNotFoundError):
    return _error_response(404, "USER_NOT_FOUND", str(exc))


@app.exception_handler(MovieNotFoundError)
async def _movie_not_found_handler(_request: Request, exc: MovieNotFoundError):
    return _error_response(404, "MOVIE_NOT_FOUND", str(exc))


@app.exception_handler(MatchNotFoundError)
async def _match_not_found_handler(_request: Request, exc: MatchNotFoundError):
    return _error_response(404, "MATCH_NOT_FOUND", str(exc))


@app.exception_handler(NotMatchParticipantError)
async def _forbidden_handler(_request: Request, exc: NotMatchParticipantError):
    return _error_response(403, "FORBIDDEN", str(exc))


# Sync so SlowAPIMiddleware can call it directly as well.
@app.exception_handler(RateLimitExceeded)
def _rate_limit_handler(_request: Request, exc: RateLimitExceeded):
    return _error_response(429, "RATE_LIMITED", f"Rate limit exceeded: {exc.detail}")


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_request: Request, exc: StarletteHTTPException):
    code = HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return _error_response(exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_error",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    # Served from outside the http middlewares, so headers are applied here.
    response = _error_response(500, "INTERNAL_ERROR", "Internal server error")
    return _apply_security_headers(response)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(v1_router, prefix="/v1")
