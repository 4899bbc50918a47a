"""Gamification models."""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, Index, JSON, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
import uuid

from app.core.database import Base


class Badge(Base):
    """Badge definitions."""
    __tablename__ = "badges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    description = Column(String, nullable=False, default="")
    icon_url = Column(String)
    xp_reward = Column(Integer, nullable=False, default=0)
    criteria = Column(JSON, nullable=False)  # {"type": ..., "value": ...}
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    student_badges = relationship("StudentBadge", back_populates="badge")

    __table_args__ = (
        CheckConstraint("xp_reward >= 0", name="ck_badges_xp_reward_non_negative"),
    )


class StudentBadge(Base):
    """Badges earned by students."""
    __tablename__ = "student_badges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id = Column(Uuid, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    badge = relationship("Badge", back_populates="student_badges")

    __table_args__ = (
        UniqueConstraint("student_id", "badge_id"),
        Index("ix_student_badge_earned", "earned_at"),
    )
