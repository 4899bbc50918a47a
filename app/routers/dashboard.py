"""Dashboard data aggregation endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.database import get_db
from app.core.dependencies import ensure_can_view_student, get_current_user, require_roles
from app.gamification.badge_engine import BadgeEngine
from app.gamification.stats_engine import StatsEngine
from app.models.gamification import Badge, StudentBadge
from app.models.lms import Course, Enrollment, Lesson, Profile, UserRole
from app.models.progress import Progress
from app.schemas.dashboard import AdminDashboard, BadgeGoal, StudentDashboard
from app.schemas.gamification import parse_criterion

logger = structlog.get_logger()
router = APIRouter()


@router.get("/student/{student_id}", response_model=StudentDashboard)
async def get_student_dashboard(
    student_id: UUID,
    goals: int = Query(3, ge=0, le=20),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get stats, earned badges and the closest unearned badges for a student."""
    await ensure_can_view_student(db, current_user, student_id)

    if await db.get(Profile, student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")

    stats = await StatsEngine(db).get_student_stats(student_id)
    badges = await BadgeEngine(db).list_student_badges(student_id)
    held = {b.badge_id for b in badges}

    catalog = (await db.execute(select(Badge))).scalars().all()
    next_badges = []
    for badge in catalog:
        if badge.id in held:
            continue
        try:
            criterion = parse_criterion(badge.criteria)
        except ValidationError:
            continue
        # Streak badges are never earned
        if criterion.type == "streak_days":
            continue

        current = criterion.current(stats)
        target = criterion.value
        percentage = 100.0 if target == 0 else min(current / target, 1.0) * 100
        next_badges.append(BadgeGoal(
            badge_id=badge.id,
            name=badge.name,
            criterion_type=criterion.type,
            target=target,
            current=current,
            progress_percentage=round(percentage, 1)
        ))

    next_badges.sort(key=lambda g: (-g.progress_percentage, g.target, g.name))

    return StudentDashboard(
        student_id=student_id,
        stats=stats,
        badges=badges,
        next_badges=next_badges[:goals],
        last_updated=datetime.utcnow()
    )


@router.get("/admin", response_model=AdminDashboard)
async def get_admin_dashboard(
    current_user: dict = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db)
):
    """Get platform-wide totals."""
    student_filter = Profile.role == UserRole.STUDENT.value

    return AdminDashboard(
        total_students=await db.scalar(select(func.count(Profile.id)).where(student_filter)),
        total_courses=await db.scalar(select(func.count(Course.id))),
        total_lessons=await db.scalar(select(func.count(Lesson.id))),
        total_enrollments=await db.scalar(select(func.count(Enrollment.id))),
        lessons_completed=await db.scalar(
            select(func.count(Progress.id)).where(Progress.completed.is_(True))
        ),
        badges_awarded=await db.scalar(select(func.count(StudentBadge.id))),
        total_xp_awarded=await db.scalar(
            select(func.coalesce(func.sum(Profile.xp_points), 0)).where(student_filter)
        )
    )
