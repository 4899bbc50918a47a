"""Lesson completion recording and base XP award."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.config import settings
from app.core.errors import PersistenceError
from app.gamification.badge_engine import BadgeEngine
from app.gamification.xp_engine import XPEngine
from app.models.progress import Progress
from app.schemas.progress import LessonCompletionResult

logger = structlog.get_logger()


class ProgressRecorder:
    """Marks lessons complete and grants base XP at most once per lesson."""

    def __init__(self, db: AsyncSession, lesson_xp: Optional[int] = None):
        self.db = db
        self.lesson_xp = settings.LESSON_XP_REWARD if lesson_xp is None else lesson_xp
        self.xp = XPEngine(db)
        self.badges = BadgeEngine(db)

    async def award_lesson_xp(self, student_id: UUID, lesson_id: UUID) -> LessonCompletionResult:
        """Complete ``lesson_id`` for ``student_id`` and run badge evaluation.

        The caller must already have checked the student is enrolled in the
        lesson's course. Marking the lesson complete and granting XP commit
        together or not at all; a failure raises ``PersistenceError``. Losing the
        insert to a concurrent completion of the same lesson is reported as
        already completed. Badge evaluation runs after that commit and its
        failures are reported in the result rather than raised.
        """
        try:
            progress = await self._get_progress(student_id, lesson_id)
        except SQLAlchemyError as e:
            raise PersistenceError("award_lesson_xp", str(e)) from e

        if progress is not None and progress.completed:
            return LessonCompletionResult(
                student_id=student_id,
                lesson_id=lesson_id,
                already_completed=True
            )

        try:
            if progress is None:
                progress = Progress(student_id=student_id, lesson_id=lesson_id)
                self.db.add(progress)
            progress.completed = True
            progress.completed_at = datetime.utcnow()
            await self.db.flush()

            await self.xp.increment_student_xp(student_id, self.lesson_xp)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await self._completed_elsewhere(student_id, lesson_id):
                logger.info(
                    "Lesson completed concurrently",
                    student_id=str(student_id),
                    lesson_id=str(lesson_id)
                )
                return LessonCompletionResult(
                    student_id=student_id,
                    lesson_id=lesson_id,
                    already_completed=True
                )
            logger.error(
                "Failed to record lesson completion",
                student_id=str(student_id),
                lesson_id=str(lesson_id),
                error=str(e)
            )
            raise PersistenceError("award_lesson_xp", str(e)) from e
        except (SQLAlchemyError, PersistenceError) as e:
            await self.db.rollback()
            logger.error(
                "Failed to record lesson completion",
                student_id=str(student_id),
                lesson_id=str(lesson_id),
                error=str(e)
            )
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError("award_lesson_xp", str(e)) from e

        logger.info(
            "Lesson completed",
            student_id=str(student_id),
            lesson_id=str(lesson_id),
            xp_awarded=self.lesson_xp
        )

        evaluation = await self.badges.check_and_award_badges(student_id)

        return LessonCompletionResult(
            student_id=student_id,
            lesson_id=lesson_id,
            xp_awarded=self.lesson_xp,
            evaluation=evaluation
        )

    async def _get_progress(self, student_id: UUID, lesson_id: UUID) -> Optional[Progress]:
        result = await self.db.execute(
            select(Progress).where(
                Progress.student_id == student_id,
                Progress.lesson_id == lesson_id
            )
        )
        return result.scalar_one_or_none()

    async def _completed_elsewhere(self, student_id: UUID, lesson_id: UUID) -> bool:
        # A concurrent completion won the (student_id, lesson_id) insert
        try:
            completed = await self.db.scalar(
                select(Progress.completed).where(
                    Progress.student_id == student_id,
                    Progress.lesson_id == lesson_id
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError("award_lesson_xp", str(e)) from e
        return bool(completed)
