"""Aggregate student statistics used for badge evaluation."""

from collections import defaultdict
from typing import Dict, List
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.errors import PersistenceError
from app.models.lms import Profile, Enrollment, Section, Lesson
from app.models.progress import Progress
from app.schemas.gamification import StudentStats

logger = structlog.get_logger()


class StatsEngine:
    """Computes ``{total_xp, lessons_completed, courses_completed}`` on demand.

    Nothing is cached: every call reads the store again.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student_stats(self, student_id: UUID) -> StudentStats:
        try:
            total_xp = await self.db.scalar(
                select(Profile.xp_points).where(Profile.id == student_id)
            )
            lessons_completed = await self.db.scalar(
                select(func.count(Progress.id)).where(
                    Progress.student_id == student_id,
                    Progress.completed.is_(True)
                )
            )
            courses_completed = await self._count_completed_courses(student_id)
        except SQLAlchemyError as e:
            logger.error("Failed to compute student stats", student_id=str(student_id), error=str(e))
            raise PersistenceError("get_student_stats", str(e)) from e

        return StudentStats(
            total_xp=total_xp or 0,
            lessons_completed=lessons_completed or 0,
            courses_completed=courses_completed
        )

    async def get_enrolled_course_lessons(self, student_id: UUID) -> Dict[UUID, List[UUID]]:
        """Map each enrolled course to the ids of all lessons across its sections."""
        result = await self.db.execute(
            select(Enrollment.course_id, Lesson.id)
            .select_from(Enrollment)
            .outerjoin(Section, Section.course_id == Enrollment.course_id)
            .outerjoin(Lesson, Lesson.section_id == Section.id)
            .where(Enrollment.student_id == student_id)
        )

        lessons_by_course: Dict[UUID, List[UUID]] = defaultdict(list)
        for course_id, lesson_id in result.all():
            lessons = lessons_by_course[course_id]
            if lesson_id is not None:
                lessons.append(lesson_id)
        return dict(lessons_by_course)

    async def _count_completed_courses(self, student_id: UUID) -> int:
        lessons_by_course = await self.get_enrolled_course_lessons(student_id)

        completed = 0
        for course_id, lesson_ids in lessons_by_course.items():
            # A course without lessons is never complete
            if not lesson_ids:
                continue

            completed_lessons = await self.db.scalar(
                select(func.count(Progress.id)).where(
                    Progress.student_id == student_id,
                    Progress.completed.is_(True),
                    Progress.lesson_id.in_(lesson_ids)
                )
            )
            if completed_lessons == len(lesson_ids):
                completed += 1

        return completed
