"""
Unit tests for the mission aggregate service and reference data access.

These call the service layer directly against an in-memory database, without
going through the API router. Store failures are simulated by patching the
session's ``execute``.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from models.badge import Badge
from models.mission import Mission, MissionSkill, MissionTask
from schemas.mission import MissionCreate, MissionUpdate, Skill, TaskInput
from services import catalog
from services.errors import InvalidRowError, NoDataReturnedError, PersistenceError
from services.mission_service import dedupe_skills, mission_service
from services.task_service import task_service


def _outage(statement: str = "SELECT") -> OperationalError:
    return OperationalError(statement, {}, Exception("simulated outage"))


async def _count(db, model, mission_id):
    result = await db.execute(select(func.count()).select_from(model).where(model.mission_id == mission_id))
    return result.scalar()


# ---------------------------------------------------------------------------
# create_mission
# ---------------------------------------------------------------------------

class TestCreateMission:
    """Defaults, forced status, skills persisted at creation, fail-loud policy."""

    @pytest.mark.asyncio
    async def test_defaults_applied(self, db_session):
        mission = await mission_service.create_mission(db_session, MissionCreate())
        assert mission.title == "Untitled Mission"
        assert mission.description == ""
        assert mission.category.value == "technical"
        assert mission.difficulty.value == "medium"
        assert mission.points == 100
        assert mission.status.value == "not-started"
        assert mission.created_by == "anonymous"
        assert mission.tasks == []

    @pytest.mark.asyncio
    async def test_empty_title_defaults(self, db_session):
        mission = await mission_service.create_mission(db_session, MissionCreate(title=""))
        assert mission.title == "Untitled Mission"

    def test_zero_points_rejected_by_validation(self):
        with pytest.raises(ValueError):
            MissionCreate(title="Free", points=0)

    @pytest.mark.asyncio
    async def test_tasks_are_not_persisted_on_create(self, db_session):
        mission = await mission_service.create_mission(
            db_session,
            MissionCreate(title="T", tasks=[TaskInput(description="ignored")]),
        )
        assert mission.tasks == []
        assert await _count(db_session, MissionTask, mission.id) == 0

    @pytest.mark.asyncio
    async def test_skills_persisted_and_deduplicated(self, db_session):
        mission = await mission_service.create_mission(
            db_session,
            MissionCreate(
                title="Skills",
                required_skills=[
                    Skill(name="Debugging", category="technical"),
                    Skill(name="debugging", category="problem-solving"),
                    Skill(name="Leadership", category="leadership"),
                ],
            ),
        )
        assert [s.name for s in mission.required_skills] == ["Debugging", "Leadership"]
        assert await _count(db_session, MissionSkill, mission.id) == 2

    @pytest.mark.asyncio
    async def test_store_rejection_raises_persistence_error(self, db_session):
        with pytest.raises(PersistenceError):
            await mission_service.create_mission(
                db_session, MissionCreate(title="Bad", badge_reward_id="missing-badge")
            )

    @pytest.mark.asyncio
    async def test_missing_row_after_insert_raises_no_data(self, db_session):
        with patch.object(mission_service, "get_mission", new=AsyncMock(return_value=None)):
            with pytest.raises(NoDataReturnedError):
                await mission_service.create_mission(db_session, MissionCreate(title="Vanishes"))


# ---------------------------------------------------------------------------
# get_mission / get_missions
# ---------------------------------------------------------------------------

class TestReadMissions:

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, db_session):
        assert await mission_service.get_mission(db_session, "nope") is None

    @pytest.mark.asyncio
    async def test_get_assembles_aggregate(self, db_session, badges):
        created = await mission_service.create_mission(
            db_session,
            MissionCreate(
                title="Full",
                badge_reward_id=badges[0].id,
                required_skills=[Skill(name="Creativity", category="creativity")],
            ),
        )
        await task_service.create_task(db_session, created.id, "first")
        await task_service.create_task(db_session, created.id, "second")

        mission = await mission_service.get_mission(db_session, created.id)
        assert mission.badge_reward.id == badges[0].id
        assert [t.description for t in mission.tasks] == ["first", "second"]
        assert [t.order_index for t in mission.tasks] == [0, 1]
        assert mission.required_skills == [Skill(name="Creativity", category="creativity")]

    @pytest.mark.asyncio
    async def test_get_propagates_store_failure(self, db_session):
        with patch.object(db_session, "execute", new=AsyncMock(side_effect=_outage())):
            with pytest.raises(PersistenceError):
                await mission_service.get_mission(db_session, "any")

    @pytest.mark.asyncio
    async def test_get_all_newest_first(self, db_session):
        now = datetime.utcnow()
        for i, title in enumerate(["oldest", "middle", "newest"]):
            db_session.add(Mission(title=title, created_at=now + timedelta(minutes=i)))
        await db_session.commit()

        missions = await mission_service.get_missions(db_session)
        assert [m.title for m in missions] == ["newest", "middle", "oldest"]

    @pytest.mark.asyncio
    async def test_get_all_swallows_failure(self, db_session):
        await mission_service.create_mission(db_session, MissionCreate(title="Hidden"))
        with patch.object(db_session, "execute", new=AsyncMock(side_effect=_outage())):
            assert await mission_service.get_missions(db_session) == []

    @pytest.mark.asyncio
    async def test_get_all_empty_when_a_row_is_out_of_range(self, db_session):
        await mission_service.create_mission(db_session, MissionCreate(title="Valid"))
        db_session.add(Mission(title="Odd", category="cooking"))
        await db_session.commit()

        assert await mission_service.get_missions(db_session) == []

    @pytest.mark.asyncio
    async def test_get_raises_invalid_row(self, db_session):
        db_session.add(Mission(id="odd1", title="Odd", status="paused"))
        await db_session.commit()

        with pytest.raises(InvalidRowError):
            await mission_service.get_mission(db_session, "odd1")

    @pytest.mark.asyncio
    async def test_out_of_range_skill_category_raises_invalid_row(self, db_session):
        mission = await mission_service.create_mission(db_session, MissionCreate(title="Skilled"))
        db_session.add(MissionSkill(mission_id=mission.id, skill_name="Baking", skill_category="cooking"))
        await db_session.commit()

        with pytest.raises(InvalidRowError):
            await catalog.get_mission_skills(db_session, mission.id)
        assert await mission_service.get_missions(db_session) == []


# ---------------------------------------------------------------------------
# update_mission
# ---------------------------------------------------------------------------

class TestUpdateMission:
    """Sparse patch semantics and replace-all collections."""

    async def _populated(self, db, badge_id):
        mission = await mission_service.create_mission(
            db,
            MissionCreate(
                title="Before",
                badge_reward_id=badge_id,
                required_skills=[Skill(name="Debugging", category="technical")],
            ),
        )
        await task_service.create_task(db, mission.id, "a")
        await task_service.create_task(db, mission.id, "b")
        return await mission_service.get_mission(db, mission.id)

    @pytest.mark.asyncio
    async def test_title_only_leaves_collections_alone(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)

        after = await mission_service.update_mission(db_session, before.id, MissionUpdate(title="X"))
        assert after.title == "X"
        assert after.tasks == before.tasks
        assert after.required_skills == before.required_skills
        assert after.badge_reward == before.badge_reward
        assert after.points == before.points

    @pytest.mark.asyncio
    async def test_tasks_replaced_and_reindexed(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)
        kept = before.tasks[1]

        after = await mission_service.update_mission(
            db_session,
            before.id,
            MissionUpdate(tasks=[
                TaskInput(description="new first"),
                TaskInput(id=kept.id, description=kept.description, completed=True),
            ]),
        )
        assert [t.order_index for t in after.tasks] == [0, 1]
        assert after.tasks[0].description == "new first"
        assert after.tasks[0].id not in {t.id for t in before.tasks}
        assert after.tasks[1].id == kept.id
        assert after.tasks[1].completed is True
        assert before.tasks[0].id not in {t.id for t in after.tasks}

    @pytest.mark.asyncio
    async def test_empty_task_list_clears_tasks(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)
        after = await mission_service.update_mission(db_session, before.id, MissionUpdate(tasks=[]))
        assert after.tasks == []

    @pytest.mark.asyncio
    async def test_skills_replaced(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)
        after = await mission_service.update_mission(
            db_session,
            before.id,
            MissionUpdate(required_skills=[
                Skill(name="Communication", category="communication"),
                Skill(name="Communication", category="communication"),
            ]),
        )
        assert after.required_skills == [Skill(name="Communication", category="communication")]

    @pytest.mark.asyncio
    async def test_null_badge_clears_reward(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)
        after = await mission_service.update_mission(
            db_session, before.id, MissionUpdate(badge_reward_id=None)
        )
        assert after.badge_reward is None

    @pytest.mark.asyncio
    async def test_missing_mission_returns_none(self, db_session):
        assert await mission_service.update_mission(db_session, "nope", MissionUpdate(title="X")) is None

    @pytest.mark.asyncio
    async def test_failed_write_returns_none_and_rolls_back(self, db_session, badges):
        before = await self._populated(db_session, badges[0].id)

        # Duplicate ids make the bulk insert fail after the old tasks were deleted
        result = await mission_service.update_mission(
            db_session,
            before.id,
            MissionUpdate(
                title="Never applied",
                tasks=[TaskInput(id="dup", description="x"), TaskInput(id="dup", description="y")],
            ),
        )
        assert result is None

        unchanged = await mission_service.get_mission(db_session, before.id)
        assert unchanged.title == "Before"
        assert unchanged.tasks == before.tasks


# ---------------------------------------------------------------------------
# delete_mission
# ---------------------------------------------------------------------------

class TestDeleteMission:

    @pytest.mark.asyncio
    async def test_cascades_to_tasks_and_skills_but_not_badge(self, db_session, badges):
        mission = await mission_service.create_mission(
            db_session,
            MissionCreate(
                title="Doomed",
                badge_reward_id=badges[0].id,
                required_skills=[Skill(name="Leadership", category="leadership")],
            ),
        )
        await task_service.create_task(db_session, mission.id, "a")

        assert await mission_service.delete_mission(db_session, mission.id) is True
        assert await mission_service.get_mission(db_session, mission.id) is None
        assert await _count(db_session, MissionTask, mission.id) == 0
        assert await _count(db_session, MissionSkill, mission.id) == 0

        catalog_ids = [b.id for b in await mission_service.get_available_badges(db_session)]
        assert badges[0].id in catalog_ids

    @pytest.mark.asyncio
    async def test_missing_mission_returns_false(self, db_session):
        assert await mission_service.delete_mission(db_session, "nope") is False

    @pytest.mark.asyncio
    async def test_store_failure_returns_false(self, db_session):
        mission = await mission_service.create_mission(db_session, MissionCreate(title="Stays"))
        with patch.object(db_session, "execute", new=AsyncMock(side_effect=_outage("DELETE"))):
            assert await mission_service.delete_mission(db_session, mission.id) is False
        assert await mission_service.get_mission(db_session, mission.id) is not None


# ---------------------------------------------------------------------------
# Badge catalog and skills
# ---------------------------------------------------------------------------

class TestCatalog:

    @pytest.mark.asyncio
    async def test_badges_alphabetical(self, db_session, badges):
        names = [b.name for b in await mission_service.get_available_badges(db_session)]
        assert names == sorted(names)
        assert len(names) == len(catalog.STARTER_BADGES)

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session, badges):
        assert await catalog.seed_badges(db_session) == 0
        count = (await db_session.execute(select(func.count(Badge.id)))).scalar()
        assert count == len(catalog.STARTER_BADGES)

    @pytest.mark.asyncio
    async def test_get_badge(self, db_session, badges):
        badge = await catalog.get_badge(db_session, badges[0].id)
        assert badge == badges[0]
        assert await catalog.get_badge(db_session, "nope") is None

    @pytest.mark.asyncio
    async def test_badges_swallow_failure(self, db_session):
        with patch.object(db_session, "execute", new=AsyncMock(side_effect=_outage())):
            assert await mission_service.get_available_badges(db_session) == []

    @pytest.mark.asyncio
    async def test_badges_empty_when_a_row_is_out_of_range(self, db_session, badges):
        db_session.add(Badge(id="myth", name="Myth", rarity="mythic", category="technical"))
        await db_session.commit()

        assert await mission_service.get_available_badges(db_session) == []
        with pytest.raises(InvalidRowError):
            await catalog.get_badge(db_session, "myth")

    @pytest.mark.asyncio
    async def test_mission_skills_for_unknown_mission(self, db_session):
        assert await catalog.get_mission_skills(db_session, "nope") == []

    def test_dedupe_skills_keeps_first(self):
        skills = dedupe_skills([
            Skill(name="A", category="technical"),
            Skill(name=" a ", category="leadership"),
            Skill(name="B", category="creativity"),
        ])
        assert [(s.name, s.category.value) for s in skills] == [("A", "technical"), ("B", "creativity")]
