"""Parent endpoints: linking to students and following their progress."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import delete, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.database import get_db
from app.core.dependencies import require_roles
from app.gamification.badge_engine import BadgeEngine
from app.gamification.stats_engine import StatsEngine
from app.models.lms import Enrollment, ParentStudentLink, Profile, UserRole
from app.schemas.parents import LinkedStudentSummary, RecentBadge, StudentLinkRequest

logger = structlog.get_logger()
router = APIRouter()

RECENT_BADGES = 5


def current_parent_id(current_user: dict) -> UUID:
    try:
        return UUID(current_user["sub"])
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")


async def build_summary(db: AsyncSession, student: Profile) -> LinkedStudentSummary:
    stats = await StatsEngine(db).get_student_stats(student.id)
    total_courses = await db.scalar(
        select(func.count(Enrollment.id)).where(Enrollment.student_id == student.id)
    )
    badges = await BadgeEngine(db).list_student_badges(student.id, limit=RECENT_BADGES)

    return LinkedStudentSummary(
        student_id=student.id,
        full_name=student.full_name or "Unknown Student",
        email=student.email,
        xp_points=stats.total_xp,
        courses_completed=stats.courses_completed,
        total_courses=total_courses or 0,
        recent_badges=[
            RecentBadge(badge_id=b.badge_id, name=b.name, earned_at=b.earned_at) for b in badges
        ]
    )


@router.get("/students", response_model=List[LinkedStudentSummary])
async def get_linked_students(
    current_user: dict = Depends(require_roles("parent")),
    db: AsyncSession = Depends(get_db)
):
    """Get a progress summary for every student linked to the calling parent."""
    parent_id = current_parent_id(current_user)

    result = await db.execute(
        select(Profile)
        .join(ParentStudentLink, ParentStudentLink.student_id == Profile.id)
        .where(ParentStudentLink.parent_id == parent_id)
        .order_by(Profile.full_name)
    )
    return [await build_summary(db, student) for student in result.scalars().all()]


@router.post("/students", response_model=LinkedStudentSummary, status_code=201)
async def link_student(
    request: StudentLinkRequest,
    current_user: dict = Depends(require_roles("parent")),
    db: AsyncSession = Depends(get_db)
):
    """Link the calling parent to the student account with the given email."""
    parent_id = current_parent_id(current_user)

    student = await db.scalar(
        select(Profile).where(
            Profile.email == request.student_email,
            Profile.role == UserRole.STUDENT.value
        )
    )
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")

    existing = await db.scalar(
        select(ParentStudentLink.id).where(
            ParentStudentLink.parent_id == parent_id,
            ParentStudentLink.student_id == student.id
        )
    )
    if existing is not None:
        raise HTTPException(status_code=409, detail="Student is already linked to this account")

    db.add(ParentStudentLink(parent_id=parent_id, student_id=student.id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Student is already linked to this account")

    logger.info("Student linked", parent_id=str(parent_id), student_id=str(student.id))
    return await build_summary(db, student)


@router.delete("/students/{student_id}", status_code=204)
async def unlink_student(
    student_id: UUID,
    current_user: dict = Depends(require_roles("parent")),
    db: AsyncSession = Depends(get_db)
):
    """Remove the link between the calling parent and a student."""
    parent_id = current_parent_id(current_user)

    result = await db.execute(
        delete(ParentStudentLink).where(
            ParentStudentLink.parent_id == parent_id,
            ParentStudentLink.student_id == student_id
        )
    )
    if result.rowcount == 0:
        await db.rollback()
        raise HTTPException(status_code=404, detail="Student is not linked to this account")
    await db.commit()

    logger.info("Student unlinked", parent_id=str(parent_id), student_id=str(student_id))
    return Response(status_code=204)
