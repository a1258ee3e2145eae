"""
System smoke test: full API flow in-process with SQLite.
Verifies health, auth, the lecture catalogue, the prerequisite gate, the
learner workflow through mastery, and the knowledge graph endpoints.
Uses a temp file DB so all connections share the same database.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

# Use file-based SQLite so all connections share the same DB (in-memory is per-connection)
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
# Force config reload so app uses test DB
from lyceum.config import get_settings
get_settings.cache_clear()

from lyceum.database import get_db
from lyceum.kernel.models import Base, User, UserRole
from lyceum.main import app

API = "/api/v1"
PASSWORD = "SecurePass123"
LONG_TEXT = " ".join(f"word{i}" for i in range(60))

# Create test engine and session factory (same file so app and fixture share DB)
TEST_ENGINE = create_async_engine(
    f"sqlite+aiosqlite:///{TEST_DB_PATH}",
    echo=False,
    connect_args={"check_same_thread": False},
)
TEST_SESSION_MAKER = async_sessionmaker(
    TEST_ENGINE,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TEST_SESSION_MAKER() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture(scope="module", autouse=True)
def _remove_test_db():
    """Delete the temp DB file once this module is done."""
    yield
    if os.path.exists(TEST_DB_PATH):
        os.unlink(TEST_DB_PATH)


@pytest_asyncio.fixture
async def client():
    """Async client with test DB and rate limit disabled."""
    async with TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)
        await TEST_ENGINE.dispose()


async def register(client: AsyncClient, prefix: str) -> dict:
    email = f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"
    r = await client.post(
        f"{API}/auth/register",
        json={"email": email, "password": PASSWORD, "full_name": f"{prefix.title()} User"},
    )
    assert r.status_code == 201, r.text
    return r.json()


def auth(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def register_admin(client: AsyncClient) -> dict:
    """Register a user and promote them straight in the database."""
    tokens = await register(client, "admin")
    async with TEST_SESSION_MAKER() as session:
        await session.execute(
            update(User)
            .where(User.id == uuid.UUID(tokens["user"]["id"]))
            .values(role=UserRole.ADMIN.value)
        )
        await session.commit()
    return tokens


async def create_lecture(client: AsyncClient, headers: dict, title: str) -> dict:
    r = await client.post(
        f"{API}/lectures",
        json={
            "title": title,
            "description": f"Lecture on {title}",
            "content_url": "http://lectures.example.com/" + title.lower().replace(" ", "-"),
            "lecturer_name": "Dr. Diotima",
            "category": "Ancient",
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Health endpoint responds."""
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert r.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_register_login_and_me(client: AsyncClient):
    """Register and login return tokens; /me reflects the account."""
    data = await register(client, "smoke")
    assert data["user"]["role"] == "STUDENT"

    r = await client.post(
        f"{API}/auth/login",
        json={"email": data["user"]["email"], "password": PASSWORD},
    )
    assert r.status_code == 200
    tokens = r.json()

    r = await client.get(f"{API}/auth/me", headers=auth(tokens))
    assert r.status_code == 200
    assert r.json()["email"] == data["user"]["email"]

    r = await client.post(
        f"{API}/auth/login",
        json={"email": data["user"]["email"], "password": "WrongPass123"},
    )
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"


@pytest.mark.asyncio
async def test_students_cannot_edit_catalogue(client: AsyncClient):
    """Lecture creation is staff-only."""
    student = await register(client, "student")
    r = await client.post(
        f"{API}/lectures",
        json={
            "title": "Forbidden",
            "description": "x",
            "content_url": "https://example.com",
            "lecturer_name": "x",
            "category": "x",
        },
        headers=auth(student),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_learner_flow_through_mastery(client: AsyncClient):
    """Gate denial -> master the prerequisite -> unlocked."""
    admin = await register_admin(client)
    student = await register(client, "learner")
    staff, learner = auth(admin), auth(student)

    intro = await create_lecture(client, staff, f"Presocratics {uuid.uuid4().hex[:4]}")
    plato = await create_lecture(client, staff, f"Plato {uuid.uuid4().hex[:4]}")
    assert intro["content_url"].startswith("https://")

    r = await client.post(
        f"{API}/lectures/{plato['id']}/prerequisites",
        json={"prerequisite_lecture_id": intro["id"], "is_required": True, "importance_level": 4},
        headers=staff,
    )
    assert r.status_code == 201, r.text

    # A cycle back to plato is rejected with its path
    r = await client.post(
        f"{API}/lectures/{intro['id']}/prerequisites",
        json={"prerequisite_lecture_id": plato["id"]},
        headers=staff,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "circular_dependency"
    assert r.json()["path"][0] == intro["id"]

    # Gate closed
    r = await client.post(f"{API}/student/lectures/{plato['id']}/start", headers=learner)
    assert r.status_code == 409
    assert r.json()["code"] == "sequence_error"

    r = await client.get(f"{API}/lectures/{plato['id']}/readiness", headers=learner)
    assert r.status_code == 200
    assert r.json()["satisfied"] is False
    assert r.json()["missing_required"] == [intro["id"]]

    # Work through the prerequisite
    base = f"{API}/student/lectures/{intro['id']}"
    r = await client.post(f"{base}/start", headers=learner)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "STARTED"

    r = await client.post(f"{base}/viewed", headers=learner)
    assert r.json()["status"] == "WATCHED"

    r = await client.post(
        f"{base}/reflections",
        json={"prompt_type": "initial", "content": "too short"},
        headers=learner,
    )
    assert r.status_code == 400
    assert r.json()["invalid_fields"] == ["content"]

    r = await client.post(
        f"{base}/reflections",
        json={"prompt_type": "initial", "content": LONG_TEXT},
        headers=learner,
    )
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "INITIAL_REFLECTION"

    r = await client.post(
        f"{base}/reflections",
        json={"prompt_type": "mastery", "content": LONG_TEXT},
        headers=learner,
    )
    assert r.json()["status"] == "MASTERY_TESTING"

    r = await client.post(f"{base}/mastery", json={"score": 150}, headers=learner)
    assert r.status_code == 400

    r = await client.post(f"{base}/mastery", json={"score": 85}, headers=learner)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "MASTERED"
    assert body["completed"] is True
    assert body["mastery"]["mastered"] is True
    assert body["progress"]["completed_at"] is not None

    r = await client.get(f"{API}/lectures/{intro['id']}/completion-status", headers=learner)
    assert r.status_code == 200
    assert r.json()["completion_percentage"] == 100

    # Gate open
    r = await client.post(f"{API}/student/lectures/{plato['id']}/start", headers=learner)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "STARTED"

    r = await client.get(f"{API}/student/progress", headers=learner)
    assert r.status_code == 200
    assert {item["lecture"]["id"] for item in r.json()} == {intro["id"], plato["id"]}

    r = await client.get(f"{API}/reflections", headers=learner)
    assert r.status_code == 200
    assert len(r.json()) == 2

    # Prerequisite lecture cannot be deleted while plato depends on it
    r = await client.delete(f"{API}/lectures/{intro['id']}", headers=staff)
    assert r.status_code == 400
    assert r.json()["code"] == "dependency_error"


@pytest.mark.asyncio
async def test_knowledge_graph(client: AsyncClient):
    """Entities, relations and a learning path."""
    admin = await register_admin(client)
    staff = auth(admin)

    ids = {}
    for name in ("Logic", "Epistemology", "Metaphysics"):
        r = await client.post(
            f"{API}/philosophical-entities",
            json={"name": name, "type": "PhilosophicalConcept"},
            headers=staff,
        )
        assert r.status_code == 201, r.text
        ids[name] = r.json()["id"]

    for source, target in (("Logic", "Epistemology"), ("Epistemology", "Metaphysics")):
        r = await client.post(
            f"{API}/philosophical-relationships",
            json={
                "source_entity_id": ids[source],
                "target_entity_id": ids[target],
                "relation_types": ["hierarchical"],
            },
            headers=staff,
        )
        assert r.status_code == 201, r.text

    r = await client.post(
        f"{API}/philosophical-relationships",
        json={
            "source_entity_id": ids["Logic"],
            "target_entity_id": ids["Logic"],
            "relation_types": ["NONSENSE"],
        },
        headers=staff,
    )
    assert r.status_code == 400
    assert "; " in r.json()["detail"]

    r = await client.get(f"{API}/philosophical-entities/{ids['Metaphysics']}/learning-path", headers=staff)
    assert r.status_code == 200
    assert [e["name"] for e in r.json()["path"]] == ["Logic", "Epistemology", "Metaphysics"]
