"""
Mission aggregate service.

A mission is a composite of its own row, an ordered task collection, a set of
skill requirements and an optional badge reference. This service translates
between that composite and the four tables it is stored in, and applies the
per-operation failure policy:

    create_mission        raises
    get_mission           raises (None when absent)
    get_missions          [] on failure
    update_mission        None on failure
    delete_mission        False on failure
    get_available_badges  [] on failure

A stored row the response schemas reject counts as a failure too
(``InvalidRowError``).
"""

import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from config import settings
from models.mission import Mission, MissionSkill, MissionTask
from schemas.mission import (
    BadgeResponse,
    MissionCategory,
    MissionCreate,
    MissionDifficulty,
    MissionResponse,
    MissionStatistics,
    MissionStatus,
    MissionUpdate,
    Skill,
    TaskResponse,
)
from services import catalog, statistics
from services.errors import (
    NoDataReturnedError,
    NotFoundError,
    fail_soft,
    persistence_guard,
    row_mapping_guard,
)
from services.task_service import task_service

logger = logging.getLogger(__name__)

# Patch fields stored directly as a column of the same name
SCALAR_FIELDS = (
    "title",
    "description",
    "category",
    "difficulty",
    "points",
    "time_limit",
    "status",
    "completion_criteria",
    "badge_reward_id",
)


def _value(v):
    """Enum members are stored by value."""
    return getattr(v, "value", v)


def dedupe_skills(skills: Iterable[Skill]) -> list[Skill]:
    """Drop repeated skill names (case-insensitive), keeping the first occurrence."""
    seen = set()
    unique = []
    for skill in skills:
        key = skill.name.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(skill)
    return unique


def _skill_rows(mission_id: str, skills: Iterable[Skill]) -> list[dict]:
    return [
        {"mission_id": mission_id, "skill_name": s.name, "skill_category": _value(s.category)}
        for s in dedupe_skills(skills)
    ]


def _to_response(
    mission: Mission,
    tasks: list[TaskResponse],
    skills: list[Skill],
) -> MissionResponse:
    """Assemble the hydrated aggregate from its row and child collections."""
    with row_mapping_guard(f"mission {mission.id}"):
        badge = None
        if mission.badge_reward is not None:
            badge = BadgeResponse.model_validate(mission.badge_reward)

        return MissionResponse(
            id=mission.id,
            title=mission.title,
            description=mission.description or "",
            category=mission.category,
            difficulty=mission.difficulty,
            points=mission.points,
            time_limit=mission.time_limit,
            status=mission.status,
            completion_criteria=mission.completion_criteria or "",
            tasks=tasks,
            required_skills=skills,
            badge_reward=badge,
            created_by=mission.created_by,
            created_at=mission.created_at,
        )


class MissionService:
    """Create, read, patch and delete missions as whole aggregates."""

    async def create_mission(self, db: AsyncSession, data: MissionCreate) -> MissionResponse:
        """Insert the mission row and its skill requirements.

        Tasks in ``data`` are not persisted: tasks are added one at a time
        through the task service once the mission has an id.
        """
        if data.tasks:
            logger.info(f"Ignoring {len(data.tasks)} task(s) supplied on mission create")

        mission = Mission(
            title=data.title or settings.DEFAULT_MISSION_TITLE,
            description=data.description or "",
            category=_value(data.category or MissionCategory.TECHNICAL),
            difficulty=_value(data.difficulty or MissionDifficulty.MEDIUM),
            points=data.points if data.points is not None else settings.DEFAULT_MISSION_POINTS,
            time_limit=data.time_limit,
            status=MissionStatus.NOT_STARTED.value,
            completion_criteria=data.completion_criteria or "",
            badge_reward_id=data.badge_reward_id,
            created_by=data.created_by or settings.DEFAULT_CREATOR,
        )

        async with persistence_guard(db, "create mission"):
            db.add(mission)
            await db.flush()
            skill_rows = _skill_rows(mission.id, data.required_skills)
            if skill_rows:
                await db.execute(insert(MissionSkill), skill_rows)
            await db.commit()

        created = await self.get_mission(db, mission.id)
        if created is None:
            raise NoDataReturnedError(f"No data returned from mission creation (id={mission.id})")

        logger.info(f"Mission {created.id} created by {created.created_by}")
        return created

    async def get_mission(self, db: AsyncSession, mission_id: str) -> Optional[MissionResponse]:
        async with persistence_guard(db, f"fetch mission {mission_id}"):
            result = await db.execute(
                select(Mission)
                .options(joinedload(Mission.badge_reward))
                .where(Mission.id == mission_id)
                .execution_options(populate_existing=True)
            )
            mission = result.scalar_one_or_none()

        if mission is None:
            return None

        tasks = await task_service.fetch_tasks(db, mission_id)
        skills = await catalog.get_mission_skills(db, mission_id)
        return _to_response(mission, tasks, skills)

    @fail_soft([])
    async def get_missions(
        self,
        db: AsyncSession,
        category: Optional[MissionCategory] = None,
        difficulty: Optional[MissionDifficulty] = None,
        status: Optional[MissionStatus] = None,
    ) -> list[MissionResponse]:
        """All missions, newest first, each fully hydrated."""
        stmt = (
            select(Mission)
            .options(joinedload(Mission.badge_reward))
            .order_by(Mission.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if category is not None:
            stmt = stmt.where(Mission.category == _value(category))
        if difficulty is not None:
            stmt = stmt.where(Mission.difficulty == _value(difficulty))
        if status is not None:
            stmt = stmt.where(Mission.status == _value(status))

        async with persistence_guard(db, "fetch missions"):
            result = await db.execute(stmt)
            missions = result.scalars().all()

        responses = []
        for m in missions:
            tasks = await task_service.fetch_tasks(db, m.id)
            skills = await catalog.get_mission_skills(db, m.id)
            responses.append(_to_response(m, tasks, skills))
        return responses

    @fail_soft(None)
    async def update_mission(
        self,
        db: AsyncSession,
        mission_id: str,
        patch: MissionUpdate,
    ) -> Optional[MissionResponse]:
        """Apply a sparse patch and return the re-fetched aggregate.

        ``tasks`` and ``required_skills`` replace the whole collection; task
        order indices are reassigned from list position. All writes share one
        transaction.
        """
        fields = patch.model_fields_set

        async with persistence_guard(db, f"look up mission {mission_id}"):
            found = await db.execute(select(Mission.id).where(Mission.id == mission_id))
            exists = found.scalar_one_or_none() is not None
        if not exists:
            raise NotFoundError(f"Mission {mission_id} not found")

        values = {f: _value(getattr(patch, f)) for f in SCALAR_FIELDS if f in fields}

        async with persistence_guard(db, f"update mission {mission_id}"):
            if values:
                await db.execute(
                    update(Mission)
                    .where(Mission.id == mission_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )

            if "tasks" in fields:
                await db.execute(
                    delete(MissionTask)
                    .where(MissionTask.mission_id == mission_id)
                    .execution_options(synchronize_session=False)
                )
                if patch.tasks:
                    await db.execute(
                        insert(MissionTask),
                        [
                            {
                                "id": task.id or uuid.uuid4().hex,
                                "mission_id": mission_id,
                                "description": task.description,
                                "completed": task.completed,
                                "order_index": index,
                            }
                            for index, task in enumerate(patch.tasks)
                        ],
                    )

            if "required_skills" in fields:
                await db.execute(
                    delete(MissionSkill)
                    .where(MissionSkill.mission_id == mission_id)
                    .execution_options(synchronize_session=False)
                )
                skill_rows = _skill_rows(mission_id, patch.required_skills or [])
                if skill_rows:
                    await db.execute(insert(MissionSkill), skill_rows)

            await db.commit()

        logger.info(f"Mission {mission_id} updated ({', '.join(sorted(fields)) or 'no fields'})")
        return await self.get_mission(db, mission_id)

    @fail_soft(False)
    async def delete_mission(self, db: AsyncSession, mission_id: str) -> bool:
        """Delete the mission row; tasks and skills go with it by foreign-key cascade."""
        async with persistence_guard(db, f"delete mission {mission_id}"):
            result = await db.execute(
                delete(Mission)
                .where(Mission.id == mission_id)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        if result.rowcount == 0:
            raise NotFoundError(f"Mission {mission_id} not found")

        logger.info(f"Mission {mission_id} deleted")
        return True

    @fail_soft([])
    async def get_available_badges(self, db: AsyncSession) -> list[BadgeResponse]:
        return await catalog.list_badges(db)

    async def get_mission_statistics(self, db: AsyncSession) -> MissionStatistics:
        return await statistics.get_mission_statistics(db)


mission_service = MissionService()
