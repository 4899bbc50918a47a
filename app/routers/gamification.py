"""Gamification endpoints."""

from typing import List
from uuid import UUID

from aiocache import Cache
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import (
    STAFF_ROLES, ensure_can_view_student, get_current_user, get_redis_cache, require_roles
)
from app.gamification.badge_engine import BadgeEngine
from app.gamification.badge_seeder import BadgeSeeder
from app.models.gamification import Badge, StudentBadge
from app.models.lms import Profile, UserRole
from app.schemas.gamification import (
    BadgeCreate, BadgeEvaluationResult, BadgeResponse, LeaderboardEntry,
    SeedResult, StudentBadgeResponse
)

logger = structlog.get_logger()
router = APIRouter()


@router.get("/badges", response_model=List[BadgeResponse])
async def get_all_badges(db: AsyncSession = Depends(get_db)):
    """Get all available badges."""
    result = await db.execute(select(Badge).order_by(Badge.xp_reward, Badge.name))
    return result.scalars().all()


@router.post("/badges", response_model=BadgeResponse, status_code=201)
async def create_badge(
    badge: BadgeCreate,
    current_user: dict = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db)
):
    """Create a badge definition."""
    db_badge = Badge(
        name=badge.name,
        description=badge.description,
        icon_url=badge.icon_url,
        xp_reward=badge.xp_reward,
        criteria=badge.criteria.model_dump()
    )
    db.add(db_badge)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A badge with this name already exists")

    await db.refresh(db_badge)
    logger.info("Badge created", badge_name=badge.name, created_by=current_user["sub"])
    return db_badge


@router.delete("/badges/{badge_id}", status_code=204)
async def delete_badge(
    badge_id: UUID,
    current_user: dict = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db)
):
    """Delete a badge definition together with its awards.

    XP already granted for the badge stays with the students.
    """
    badge = await db.get(Badge, badge_id)
    if badge is None:
        raise HTTPException(status_code=404, detail="Badge not found")
    name = badge.name

    await db.execute(delete(StudentBadge).where(StudentBadge.badge_id == badge_id))
    await db.execute(delete(Badge).where(Badge.id == badge_id))
    await db.commit()

    logger.info("Badge deleted", badge_name=name, deleted_by=current_user["sub"])
    return Response(status_code=204)


@router.post("/badges/defaults", response_model=SeedResult)
async def create_default_badges(
    current_user: dict = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db)
):
    """Install the default badge catalog."""
    return await BadgeSeeder(db).create_default_badges()


@router.get("/badges/{student_id}", response_model=List[StudentBadgeResponse])
async def get_student_badges(
    student_id: UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get badges earned by a student."""
    await ensure_can_view_student(db, current_user, student_id)
    return await BadgeEngine(db).list_student_badges(student_id)


@router.post("/badges/{student_id}/check", response_model=BadgeEvaluationResult)
async def check_student_badges(
    student_id: UUID,
    current_user: dict = Depends(require_roles(*STAFF_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Re-run badge evaluation for a student."""
    profile = await db.get(Profile, student_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Student not found")

    return await BadgeEngine(db).check_and_award_badges(student_id)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_xp_leaderboard(
    limit: int = Query(10, ge=1, le=settings.LEADERBOARD_SIZE),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_redis_cache)
):
    """Get the XP leaderboard."""
    cache_key = f"leaderboard:xp:{limit}"
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    result = await db.execute(
        select(Profile.id, Profile.full_name, Profile.xp_points)
        .where(Profile.role == UserRole.STUDENT.value)
        .order_by(Profile.xp_points.desc(), Profile.full_name)
        .limit(limit)
    )

    leaderboard = []
    for idx, row in enumerate(result):
        leaderboard.append(LeaderboardEntry(
            rank=idx + 1,
            student_id=row.id,
            full_name=row.full_name,
            xp_points=row.xp_points
        ).model_dump(mode="json"))

    await cache.set(cache_key, leaderboard, ttl=settings.LEADERBOARD_CACHE_TTL)
    return leaderboard
