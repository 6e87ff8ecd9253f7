import os
import shutil
import subprocess
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, text
from testcontainers.postgres import PostgresContainer

import moviemate.db
from moviemate.main import app
from moviemate.profiles import upsert_movie
from moviemate.rate_limit import limiter

INIT_SQL_PATH = Path(__file__).parent / "../../../infra/db/init.sql"


def _docker_available() -> bool:
    if shutil.which("docker") is None:
        return False

    try:
        subprocess.check_output(["docker", "info"], stderr=subprocess.STDOUT, text=True)
    except (OSError, subprocess.CalledProcessError):
        return False

    return True


def _ensure_docker_host_env() -> None:
    if os.environ.get("DOCKER_HOST"):
        return

    try:
        host = subprocess.check_output(
            ["docker", "context", "inspect", "--format", "{{.Endpoints.docker.Host}}"],
            text=True,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return

    if host:
        os.environ["DOCKER_HOST"] = host


@pytest.fixture(autouse=True)
def _reset_app_state():
    limiter.reset()
    app.state.candidate_cache.clear()
    yield
    app.state.candidate_cache.clear()


@pytest.fixture(scope="session")
def postgres_container():
    _ensure_docker_host_env()
    os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")

    if not _docker_available():
        pytest.skip("Docker is required for integration tests")

    with PostgresContainer("postgres:16", driver="psycopg") as postgres:
        yield postgres


@pytest.fixture(scope="session")
def db_engine(postgres_container):
    engine = create_engine(postgres_container.get_connection_url())
    with engine.begin() as conn:
        conn.execute(text(INIT_SQL_PATH.read_text()))

    moviemate.db.install_query_logging(engine)
    moviemate.db._ENGINE = engine
    yield engine
    engine.dispose()
    moviemate.db._ENGINE = None


@pytest.fixture(scope="function")
def db_session(db_engine):
    with db_engine.begin() as conn:
        conn.execute(text("TRUNCATE TABLE matches, movie_interactions, users RESTART IDENTITY CASCADE"))
    yield db_engine


@pytest.fixture(scope="session")
def seeded_movies(db_engine):
    movies = [
        (1, "Inception", ["Action", "Science Fiction"]),
        (2, "The Matrix", ["Action", "Science Fiction"]),
        (3, "Interstellar", ["Adventure", "Drama", "Science Fiction"]),
        (4, "Superbad", ["Comedy"]),
        (5, "The Notebook", ["Drama", "Romance"]),
        (6, "Heat", ["Action", "Crime", "Drama"]),
    ]
    for movie_id, title, genres in movies:
        upsert_movie(movie_id, title, genres)
    return {
        "inception_id": 1,
        "matrix_id": 2,
        "interstellar_id": 3,
        "superbad_id": 4,
        "notebook_id": 5,
        "heat_id": 6,
    }


@pytest_asyncio.fixture
async def app_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def client(db_session):  # noqa: ARG001
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_profile():
    def _make(
        user_id,
        *,
        genres=(),
        favorites=(),
        watchlist=(),
        ratings=None,
    ) -> dict:
        return {
            "user_id": user_id,
            "genres": list(genres),
            "favorite_movies": list(favorites),
            "watchlist": list(watchlist),
            "ratings": dict(ratings or {}),
        }

    return _make
