"""
Pytest fixtures for Lyceum tests.
"""

import os

# Cheap hashing and no throttling for the whole test session
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lyceum.config import get_settings
from lyceum.kernel.identity.jwt import JWTManager
from lyceum.kernel.identity.password import hash_password
from lyceum.kernel.models import Base, Lecture, LecturePrerequisite, User, UserRole

get_settings.cache_clear()

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session
        await session.rollback()


async def _make_user(session: AsyncSession, email: str, role: UserRole) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=hash_password("TestPassword123"),
        full_name=email.split("@")[0].title(),
        role=role,
    )
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def student(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "student@example.com", UserRole.STUDENT)


@pytest_asyncio.fixture
async def other_student(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@example.com", UserRole.STUDENT)


@pytest_asyncio.fixture
async def instructor(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "instructor@example.com", UserRole.INSTRUCTOR)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def make_lecture(db_session: AsyncSession):
    """Factory: ``await make_lecture("Plato", category="Ancient", order=0)``."""

    async def _make(title: str, category: str = "Ancient", order: int = 0, **fields) -> Lecture:
        lecture = Lecture(
            title=title,
            description=f"Lecture on {title}",
            content_url=f"https://lectures.example.com/{title.lower().replace(' ', '-')}",
            lecturer_name="Dr. Diotima",
            category=category,
            order=order,
            **fields,
        )
        db_session.add(lecture)
        await db_session.flush()
        return lecture

    return _make


@pytest.fixture
def add_prerequisite(db_session: AsyncSession):
    """Factory that inserts an edge directly, bypassing cycle checks."""

    async def _add(lecture: Lecture, prerequisite: Lecture, required: bool = True, importance: int = 3):
        edge = LecturePrerequisite(
            lecture_id=lecture.id,
            prerequisite_lecture_id=prerequisite.id,
            is_required=required,
            importance_level=importance,
        )
        db_session.add(edge)
        await db_session.flush()
        return edge

    return _add


@pytest.fixture
def jwt_manager() -> JWTManager:
    return JWTManager(
        secret_key="test-secret-key-for-testing-only",
        algorithm="HS256",
        access_token_expire_minutes=30,
        refresh_token_expire_days=7,
    )
