"""Badge awarding and tracking engine."""

from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.errors import PersistenceError
from app.gamification.stats_engine import StatsEngine
from app.gamification.xp_engine import XPEngine
from app.models.gamification import Badge, StudentBadge
from app.schemas.gamification import (
    AwardedBadge, BadgeAwardFailure, BadgeDefinition, BadgeEvaluationResult,
    StudentBadgeResponse
)

logger = structlog.get_logger()


class BadgeEngine:
    """Engine for checking and awarding badges."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.stats = StatsEngine(db)
        self.xp = XPEngine(db)

    async def check_and_award_badges(self, student_id: UUID) -> BadgeEvaluationResult:
        """Award every badge whose criterion the student now meets.

        Best effort: a badge that fails to insert or to grant its XP is
        recorded in ``failures`` and the remaining badges are still evaluated.
        Never raises for store errors.
        """
        result = BadgeEvaluationResult(student_id=student_id)

        try:
            stats = await self.stats.get_student_stats(student_id)
            badges = await self._load_catalog(result)
        except PersistenceError as e:
            logger.error("Badge evaluation aborted", student_id=str(student_id), error=str(e))
            result.error = str(e)
            return result

        result.stats = stats

        for badge in badges:
            try:
                if await self._has_badge(student_id, badge.id):
                    continue
            except SQLAlchemyError as e:
                # A failed statement aborts the transaction on PostgreSQL
                await self.db.rollback()
                logger.error("Failed to look up badge", badge_name=badge.name, error=str(e))
                result.failures.append(BadgeAwardFailure(
                    badge_id=badge.id, name=badge.name, stage="lookup", error=str(e)
                ))
                continue

            if badge.criteria.is_met(stats):
                await self._award_badge(student_id, badge, result)

        return result

    async def list_student_badges(self, student_id: UUID, limit: Optional[int] = None) -> List[StudentBadgeResponse]:
        """Badges held by a student, most recent first."""
        query = (
            select(Badge, StudentBadge.earned_at)
            .join(StudentBadge, StudentBadge.badge_id == Badge.id)
            .where(StudentBadge.student_id == student_id)
            .order_by(StudentBadge.earned_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [
            StudentBadgeResponse(
                badge_id=badge.id,
                name=badge.name,
                description=badge.description or "",
                icon_url=badge.icon_url,
                xp_reward=badge.xp_reward or 0,
                earned_at=earned_at
            )
            for badge, earned_at in result.all()
        ]

    async def _load_catalog(self, result: BadgeEvaluationResult) -> List[BadgeDefinition]:
        try:
            rows = (await self.db.execute(select(Badge).order_by(Badge.name))).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError("load_badge_catalog", str(e)) from e

        definitions = []
        for row in rows:
            try:
                definitions.append(BadgeDefinition(
                    id=row.id,
                    name=row.name,
                    description=row.description or "",
                    xp_reward=row.xp_reward or 0,
                    criteria=row.criteria
                ))
            except ValidationError as e:
                logger.warning("Skipping badge with invalid criteria", badge_name=row.name, error=str(e))
                result.failures.append(BadgeAwardFailure(
                    badge_id=row.id, name=row.name, stage="criteria", error=str(e)
                ))
        return definitions

    async def _has_badge(self, student_id: UUID, badge_id: UUID) -> bool:
        existing = await self.db.scalar(
            select(StudentBadge.id).where(
                StudentBadge.student_id == student_id,
                StudentBadge.badge_id == badge_id
            )
        )
        return existing is not None

    async def _award_badge(
        self,
        student_id: UUID,
        badge: BadgeDefinition,
        result: BadgeEvaluationResult
    ) -> Optional[AwardedBadge]:
        """Insert the award row, then grant the badge's XP as a separate step."""
        self.db.add(StudentBadge(student_id=student_id, badge_id=badge.id))

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            # Includes the unique (student_id, badge_id) violation of a concurrent award
            await self.db.rollback()
            logger.error("Failed to award badge", badge_name=badge.name, error=str(e))
            result.failures.append(BadgeAwardFailure(
                badge_id=badge.id, name=badge.name, stage="insert", error=str(e)
            ))
            return None

        xp_granted = True
        if badge.xp_reward > 0:
            try:
                await self.xp.increment_student_xp(student_id, badge.xp_reward)
                await self.db.commit()
            except (PersistenceError, SQLAlchemyError) as e:
                await self.db.rollback()
                xp_granted = False
                logger.error("Failed to award badge XP", badge_name=badge.name, error=str(e))
                result.failures.append(BadgeAwardFailure(
                    badge_id=badge.id, name=badge.name, stage="xp_increment", error=str(e)
                ))

        awarded = AwardedBadge(
            badge_id=badge.id,
            name=badge.name,
            description=badge.description,
            xp_reward=badge.xp_reward,
            xp_granted=xp_granted
        )
        result.awarded.append(awarded)

        logger.info(
            "Badge awarded",
            student_id=str(student_id),
            badge_name=badge.name,
            xp_reward=badge.xp_reward
        )
        return awarded
