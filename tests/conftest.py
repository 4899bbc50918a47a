"""Pytest fixtures: in-memory database, seed helpers and an HTTP client."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENABLE_METRICS"] = "false"
os.environ["LOG_FORMAT"] = "plain"
os.environ["EMAIL_ENABLED"] = "true"
os.environ.pop("EMAIL_API_KEY", None)

from typing import Callable, List, Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from aiocache import Cache  # noqa: E402
from sqlalchemy import select, func  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models  # noqa: E402,F401
from app.core.database import Base, get_db  # noqa: E402
from app.core.dependencies import create_access_token, get_http_client, get_redis_cache  # noqa: E402
from app.gamification.badge_seeder import DEFAULT_BADGES  # noqa: E402
from app.main import app as service_app  # noqa: E402
from app.models.gamification import Badge, StudentBadge  # noqa: E402
from app.models.lms import Course, Enrollment, Lesson, Profile, Section  # noqa: E402
from app.models.progress import Progress  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


class Seed:
    """Helpers that insert LMS rows and commit them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def profile(self, role: str = "student", xp_points: int = 0, full_name: str = "Test Student",
                      email: Optional[str] = None) -> UUID:
        profile_id = uuid4()
        self.db.add(Profile(
            id=profile_id,
            email=email or f"{profile_id.hex[:10]}@example.com",
            full_name=full_name,
            role=role,
            xp_points=xp_points
        ))
        await self.db.commit()
        return profile_id

    async def student(self, xp_points: int = 0, **kwargs) -> UUID:
        return await self.profile(role="student", xp_points=xp_points, **kwargs)

    async def course(self, *lessons_per_section: int, title: str = "Course") -> "tuple[UUID, List[UUID]]":
        """Create a course with one section per count given; return its id and lesson ids."""
        course_id = uuid4()
        self.db.add(Course(id=course_id, title=title))

        lesson_ids = []
        for s_idx, count in enumerate(lessons_per_section):
            section_id = uuid4()
            self.db.add(Section(id=section_id, course_id=course_id, title=f"Section {s_idx + 1}", position=s_idx))
            for l_idx in range(count):
                lesson_id = uuid4()
                self.db.add(Lesson(id=lesson_id, section_id=section_id, title=f"Lesson {l_idx + 1}", position=l_idx))
                lesson_ids.append(lesson_id)

        await self.db.commit()
        return course_id, lesson_ids

    async def enroll(self, student_id: UUID, course_id: UUID) -> None:
        self.db.add(Enrollment(student_id=student_id, course_id=course_id))
        await self.db.commit()

    async def complete(self, student_id: UUID, lesson_id: UUID) -> None:
        """Insert a completed progress row without awarding anything."""
        self.db.add(Progress(student_id=student_id, lesson_id=lesson_id, completed=True))
        await self.db.commit()

    async def badge(self, name: str, criteria: dict, xp_reward: int = 0) -> UUID:
        badge_id = uuid4()
        self.db.add(Badge(id=badge_id, name=name, description=name, xp_reward=xp_reward, criteria=criteria))
        await self.db.commit()
        return badge_id

    async def default_badge(self, name: str) -> UUID:
        spec = next(b for b in DEFAULT_BADGES if b["name"] == name)
        return await self.badge(spec["name"], spec["criteria"], spec["xp_reward"])

    async def award(self, student_id: UUID, badge_id: UUID) -> None:
        self.db.add(StudentBadge(student_id=student_id, badge_id=badge_id))
        await self.db.commit()

    # Reads use column queries so they always hit the database
    async def xp(self, student_id: UUID) -> int:
        return await self.db.scalar(select(Profile.xp_points).where(Profile.id == student_id))

    async def badge_names(self, student_id: UUID) -> List[str]:
        result = await self.db.execute(
            select(Badge.name)
            .join(StudentBadge, StudentBadge.badge_id == Badge.id)
            .where(StudentBadge.student_id == student_id)
            .order_by(Badge.name)
        )
        return list(result.scalars().all())

    async def progress_count(self, student_id: UUID) -> int:
        return await self.db.scalar(select(func.count(Progress.id)).where(Progress.student_id == student_id))


@pytest.fixture
def seed(db):
    return Seed(db)


def auth_headers(user_id, role: str = "student") -> dict:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


class OutboundHTTP:
    """Records outbound requests and answers them with ``responder``."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(200, json={})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


@pytest.fixture
def outbound():
    return OutboundHTTP()


@pytest_asyncio.fixture
async def client(session_maker, outbound):
    """HTTP client bound to the app, with database, cache and outbound HTTP overridden."""
    cache = Cache(Cache.MEMORY)
    mock_http = httpx.AsyncClient(transport=httpx.MockTransport(outbound.handler))

    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_cache():
        return cache

    async def override_get_http_client():
        return mock_http

    service_app.dependency_overrides[get_db] = override_get_db
    service_app.dependency_overrides[get_redis_cache] = override_get_cache
    service_app.dependency_overrides[get_http_client] = override_get_http_client

    transport = httpx.ASGITransport(app=service_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    service_app.dependency_overrides.clear()
    await mock_http.aclose()
    await cache.clear()


@pytest.fixture
def auth():
    return auth_headers
