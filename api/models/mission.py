import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from database import Base
from models.badge import Badge


class Mission(Base):
    __tablename__ = "missions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: uuid.uuid4().hex[:8])
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String, default="technical")  # 'problem-solving', 'leadership', 'communication', 'technical', 'creativity'
    difficulty: Mapped[str] = mapped_column(String, default="medium")  # 'easy', 'medium', 'hard', 'expert'
    points: Mapped[int] = mapped_column(Integer, default=100)
    time_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    status: Mapped[str] = mapped_column(String, default="not-started")  # 'not-started', 'in-progress', 'completed', 'failed'
    completion_criteria: Mapped[str] = mapped_column(Text, default="")
    badge_reward_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("badges.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[str] = mapped_column(String, default="anonymous")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    badge_reward: Mapped[Optional[Badge]] = relationship(Badge, lazy="raise")


class MissionTask(Base):
    __tablename__ = "mission_tasks"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    mission_id: Mapped[str] = mapped_column(
        String, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class MissionSkill(Base):
    __tablename__ = "mission_skills"
    __table_args__ = (
        UniqueConstraint("mission_id", "skill_name", name="uq_mission_skill_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mission_id: Mapped[str] = mapped_column(
        String, ForeignKey("missions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    skill_name: Mapped[str] = mapped_column(String, nullable=False)
    skill_category: Mapped[str] = mapped_column(String, nullable=False)
