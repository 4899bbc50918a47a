"""Default badge catalog installation."""

from typing import Any, Dict, List
import uuid

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.gamification import Badge
from app.schemas.gamification import SeedResult, parse_criterion

logger = structlog.get_logger()


DEFAULT_BADGES: List[Dict[str, Any]] = [
    {
        "name": "First Steps",
        "description": "Complete your first lesson",
        "xp_reward": 25,
        "criteria": {"type": "lessons_completed", "value": 1}
    },
    {
        "name": "Learning Enthusiast",
        "description": "Complete 10 lessons",
        "xp_reward": 50,
        "criteria": {"type": "lessons_completed", "value": 10}
    },
    {
        "name": "Knowledge Seeker",
        "description": "Complete 50 lessons",
        "xp_reward": 100,
        "criteria": {"type": "lessons_completed", "value": 50}
    },
    {
        "name": "Course Champion",
        "description": "Complete your first course",
        "xp_reward": 75,
        "criteria": {"type": "courses_completed", "value": 1}
    },
    {
        "name": "Academic Excellence",
        "description": "Complete 5 courses",
        "xp_reward": 200,
        "criteria": {"type": "courses_completed", "value": 5}
    },
    {
        "name": "XP Explorer",
        "description": "Earn 100 XP",
        "xp_reward": 30,
        "criteria": {"type": "xp_threshold", "value": 100}
    },
    {
        "name": "XP Master",
        "description": "Earn 500 XP",
        "xp_reward": 100,
        "criteria": {"type": "xp_threshold", "value": 500}
    },
    {
        "name": "XP Legend",
        "description": "Earn 1000 XP",
        "xp_reward": 250,
        "criteria": {"type": "xp_threshold", "value": 1000}
    },
]


class BadgeSeeder:
    """Installs the default badge catalog, keyed on badge name."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_default_badges(self) -> SeedResult:
        """Insert missing default badges; existing names are left as they are."""
        result = SeedResult()

        for spec in DEFAULT_BADGES:
            name = spec["name"]
            try:
                inserted = await self._insert_if_missing(spec)
                await self.db.commit()
                if inserted:
                    result.created.append(name)
                else:
                    result.existing.append(name)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("Failed to create badge", badge_name=name, error=str(e))
                result.failed.append(name)

        logger.info(
            "Default badges seeded",
            created=len(result.created),
            existing=len(result.existing),
            failed=len(result.failed)
        )
        return result

    async def _insert_if_missing(self, spec: Dict[str, Any]) -> bool:
        """Insert one catalog badge unless its name is taken; True if inserted."""
        insert = pg_insert if self.db.get_bind().dialect.name == "postgresql" else sqlite_insert
        stmt = (
            insert(Badge)
            .values(
                id=uuid.uuid4(),
                name=spec["name"],
                description=spec["description"],
                xp_reward=spec["xp_reward"],
                criteria=parse_criterion(spec["criteria"]).model_dump()
            )
            .on_conflict_do_nothing(index_elements=[Badge.name])
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1
