"""XP balance updates."""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.core.errors import PersistenceError
from app.models.lms import Profile

logger = structlog.get_logger()


class XPEngine:
    """Engine for incrementing student XP balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment_student_xp(self, student_id: UUID, xp_amount: int) -> None:
        """Add ``xp_amount`` to the student's balance in a single UPDATE.

        The read-modify-write happens inside the database, so concurrent
        increments never lose updates. Does not commit; the caller owns the
        transaction.
        """
        if xp_amount < 0:
            raise ValueError("xp_amount must be non-negative")

        try:
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == student_id)
                .values(xp_points=Profile.xp_points + xp_amount)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise PersistenceError("increment_student_xp", str(e)) from e

        if result.rowcount == 0:
            raise PersistenceError("increment_student_xp", f"no profile {student_id}")

        logger.info(
            "XP incremented",
            student_id=str(student_id),
            xp_amount=xp_amount
        )
