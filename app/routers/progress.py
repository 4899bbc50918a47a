"""Progress tracking endpoints."""

from typing import List, Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.database import get_db
from app.core.dependencies import (
    ensure_can_view_student, get_current_user, get_http_client, require_roles
)
from app.gamification.progress_recorder import ProgressRecorder
from app.gamification.stats_engine import StatsEngine
from app.models.lms import Enrollment, Lesson, Profile, Section
from app.models.progress import Progress
from app.notifications.notification_engine import NotificationEngine
from app.schemas.gamification import StudentStats
from app.schemas.progress import LessonCompletionResult, ProgressResponse

logger = structlog.get_logger()
router = APIRouter()


def current_student_id(current_user: dict) -> UUID:
    try:
        return UUID(current_user["sub"])
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")


@router.post("/lessons/{lesson_id}/complete", response_model=LessonCompletionResult)
async def complete_lesson(
    lesson_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_roles("student")),
    db: AsyncSession = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client)
):
    """Mark a lesson complete for the calling student and award XP and badges."""
    student_id = current_student_id(current_user)

    course_id = await db.scalar(
        select(Section.course_id)
        .join(Lesson, Lesson.section_id == Section.id)
        .where(Lesson.id == lesson_id)
    )
    if course_id is None:
        raise HTTPException(status_code=404, detail="Lesson not found")

    enrollment = await db.scalar(
        select(Enrollment.id).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id
        )
    )
    if enrollment is None:
        raise HTTPException(status_code=403, detail="Not enrolled in this course")

    result = await ProgressRecorder(db).award_lesson_xp(student_id, lesson_id)

    if result.evaluation and result.evaluation.awarded:
        notifier = NotificationEngine(http_client)
        profile = await db.get(Profile, student_id)
        if notifier.enabled and profile is not None:
            background_tasks.add_task(
                notifier.send_badge_notification,
                profile.email,
                profile.full_name,
                result.evaluation.awarded
            )

    return result


@router.get("/{student_id}", response_model=List[ProgressResponse])
async def get_student_progress(
    student_id: UUID,
    completed: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get lesson progress records for a student."""
    await ensure_can_view_student(db, current_user, student_id)

    query = select(Progress).where(Progress.student_id == student_id)
    if completed is not None:
        query = query.where(Progress.completed.is_(completed))

    query = query.order_by(Progress.completed_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{student_id}/stats", response_model=StudentStats)
async def get_student_stats(
    student_id: UUID,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get XP, completed lessons and completed courses for a student."""
    await ensure_can_view_student(db, current_user, student_id)
    return await StatsEngine(db).get_student_stats(student_id)
