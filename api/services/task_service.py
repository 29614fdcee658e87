"""
Task ordering and completion engine.

Tasks belong to exactly one mission and carry a dense, zero-based
``order_index``: for N tasks the indices are exactly 0..N-1. Create appends,
delete re-indexes, reorder rewrites every index from a caller-supplied
permutation.

Known race: ``create_task`` reads the current maximum index and then inserts,
without a lock. Two concurrent creates on one mission can both pick the same
index. ``repair_task_order`` re-densifies the indices and is the recovery path
for that case.
"""

import logging
import uuid
from collections import Counter
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.mission import Mission, MissionTask
from schemas.mission import MissionStatus, TaskResponse
from schemas.task import TaskUpdate
from services.errors import (
    InvalidRowError,
    NoDataReturnedError,
    NotFoundError,
    PersistenceError,
    TaskSetMismatchError,
    fail_soft,
    persistence_guard,
    row_mapping_guard,
)

logger = logging.getLogger(__name__)


def derive_mission_status(completed_flags: list[bool]) -> MissionStatus:
    """``completed`` iff every task is done, otherwise ``in-progress``."""
    if all(completed_flags):
        return MissionStatus.COMPLETED
    return MissionStatus.IN_PROGRESS


class TaskService:
    """Ordered task collection of a single mission."""

    async def fetch_tasks(self, db: AsyncSession, mission_id: str) -> list[TaskResponse]:
        """Tasks of a mission in order. Raises ``PersistenceError``."""
        async with persistence_guard(db, f"fetch tasks for mission {mission_id}"):
            result = await db.execute(
                select(MissionTask)
                .where(MissionTask.mission_id == mission_id)
                .order_by(MissionTask.order_index, MissionTask.id)
                .execution_options(populate_existing=True)
            )
            tasks = result.scalars().all()
        with row_mapping_guard(f"tasks of mission {mission_id}"):
            return [TaskResponse.model_validate(t) for t in tasks]

    @fail_soft([])
    async def get_tasks(self, db: AsyncSession, mission_id: str) -> list[TaskResponse]:
        return await self.fetch_tasks(db, mission_id)

    async def find_task(self, db: AsyncSession, mission_id: str, task_id: str) -> Optional[TaskResponse]:
        """A single task scoped to its mission, or None. Raises on store failure."""
        task = await self._get_scoped(db, mission_id, task_id)
        if task is None:
            return None
        with row_mapping_guard(f"task {task_id}"):
            return TaskResponse.model_validate(task)

    @fail_soft(None)
    async def get_mission_status(self, db: AsyncSession, mission_id: str) -> Optional[MissionStatus]:
        async with persistence_guard(db, f"fetch status of mission {mission_id}"):
            result = await db.execute(select(Mission.status).where(Mission.id == mission_id))
            status = result.scalar_one_or_none()
        if status is None:
            return None
        try:
            return MissionStatus(status)
        except ValueError as e:
            raise InvalidRowError(f"status of mission {mission_id}", e) from e

    @fail_soft(None)
    async def create_task(
        self,
        db: AsyncSession,
        mission_id: str,
        description: str,
    ) -> Optional[TaskResponse]:
        async with persistence_guard(db, f"create task for mission {mission_id}"):
            result = await db.execute(
                select(func.max(MissionTask.order_index)).where(MissionTask.mission_id == mission_id)
            )
            current_max = result.scalar()
            next_index = current_max + 1 if current_max is not None else 0

            task = MissionTask(
                id=uuid.uuid4().hex,
                mission_id=mission_id,
                description=description,
                completed=False,
                order_index=next_index,
            )
            db.add(task)
            await db.commit()

        created = await self._get_scoped(db, mission_id, task.id)
        if created is None:
            raise NoDataReturnedError(f"No data returned after creating task for mission {mission_id}")
        with row_mapping_guard(f"task {created.id}"):
            return TaskResponse.model_validate(created)

    @fail_soft(None)
    async def update_task(
        self,
        db: AsyncSession,
        mission_id: str,
        task_id: str,
        patch: TaskUpdate,
    ) -> Optional[TaskResponse]:
        """Update description and/or completed on a task scoped to its mission."""
        values = patch.model_dump(exclude_unset=True, exclude_none=True)

        async with persistence_guard(db, f"update task {task_id}"):
            if values:
                result = await db.execute(
                    update(MissionTask)
                    .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
                if result.rowcount == 0:
                    raise NotFoundError(f"Task {task_id} not found in mission {mission_id}")

        task = await self._get_scoped(db, mission_id, task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found in mission {mission_id}")
        with row_mapping_guard(f"task {task_id}"):
            return TaskResponse.model_validate(task)

    @fail_soft(False)
    async def delete_task(self, db: AsyncSession, mission_id: str, task_id: str) -> bool:
        async with persistence_guard(db, f"delete task {task_id}"):
            result = await db.execute(
                delete(MissionTask)
                .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

        if result.rowcount == 0:
            raise NotFoundError(f"Task {task_id} not found in mission {mission_id}")

        await self.repair_task_order(db, mission_id)
        return True

    @fail_soft(False, reraise=(TaskSetMismatchError,))
    async def reorder_tasks(self, db: AsyncSession, mission_id: str, task_ids: list[str]) -> bool:
        """Set each task's index to its position in ``task_ids``.

        ``task_ids`` must be a permutation of the mission's task ids; otherwise
        ``TaskSetMismatchError`` is raised before anything is written. The row
        updates commit together; a store failure rolls all of them back.
        """
        async with persistence_guard(db, f"fetch task ids for mission {mission_id}"):
            result = await db.execute(
                select(MissionTask.id).where(MissionTask.mission_id == mission_id)
            )
            existing = set(result.scalars().all())

        given = set(task_ids)
        duplicates = {tid for tid, n in Counter(task_ids).items() if n > 1}
        if len(task_ids) != len(existing) or given != existing or duplicates:
            raise TaskSetMismatchError(
                mission_id,
                missing=existing - given,
                unexpected=given - existing,
                duplicates=duplicates,
                expected_count=len(existing),
                given_count=len(task_ids),
            )

        async with persistence_guard(db, f"reorder tasks for mission {mission_id}"):
            for index, task_id in enumerate(task_ids):
                await db.execute(
                    update(MissionTask)
                    .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                    .values(order_index=index)
                    .execution_options(synchronize_session=False)
                )
            await db.commit()

        logger.info(f"Reordered {len(task_ids)} task(s) for mission {mission_id}")
        return True

    @fail_soft(False)
    async def toggle_task_completion(self, db: AsyncSession, mission_id: str, task_id: str) -> bool:
        """Flip a task's ``completed`` flag, then resync the mission status.

        The flag flip is the operation's result. The mission status write is
        best-effort: its failure is logged and does not change the return value.
        """
        async with persistence_guard(db, f"toggle task {task_id}"):
            result = await db.execute(
                select(MissionTask.completed).where(
                    MissionTask.id == task_id, MissionTask.mission_id == mission_id
                )
            )
            current = result.scalar_one_or_none()
            if current is None:
                raise NotFoundError(f"Task {task_id} not found in mission {mission_id}")

            await db.execute(
                update(MissionTask)
                .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                .values(completed=not current)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

            result = await db.execute(
                select(MissionTask.completed).where(MissionTask.mission_id == mission_id)
            )
            flags = list(result.scalars().all())

        status = derive_mission_status(flags)
        try:
            await self._set_mission_status(db, mission_id, status)
        except PersistenceError as e:
            logger.warning(f"Task {task_id} toggled but mission {mission_id} status sync failed: {e}")

        return True

    async def repair_task_order(self, db: AsyncSession, mission_id: str) -> list[TaskResponse]:
        """Rewrite order indices to 0..N-1, keeping the current relative order.

        Only rows whose index is off are written. Raises ``PersistenceError``.
        """
        async with persistence_guard(db, f"re-index tasks for mission {mission_id}"):
            result = await db.execute(
                select(MissionTask.id, MissionTask.order_index)
                .where(MissionTask.mission_id == mission_id)
                .order_by(MissionTask.order_index, MissionTask.id)
            )
            rows = result.all()

            changed = 0
            for position, (task_id, order_index) in enumerate(rows):
                if order_index != position:
                    await db.execute(
                        update(MissionTask)
                        .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                        .values(order_index=position)
                        .execution_options(synchronize_session=False)
                    )
                    changed += 1
            if changed:
                await db.commit()
                logger.info(f"Re-indexed {changed} task(s) for mission {mission_id}")

        return await self.fetch_tasks(db, mission_id)

    async def _get_scoped(self, db: AsyncSession, mission_id: str, task_id: str) -> Optional[MissionTask]:
        async with persistence_guard(db, f"fetch task {task_id}"):
            result = await db.execute(
                select(MissionTask)
                .where(MissionTask.id == task_id, MissionTask.mission_id == mission_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def _set_mission_status(self, db: AsyncSession, mission_id: str, status: MissionStatus) -> None:
        async with persistence_guard(db, f"update status of mission {mission_id}"):
            await db.execute(
                update(Mission)
                .where(Mission.id == mission_id)
                .values(status=status.value)
                .execution_options(synchronize_session=False)
            )
            await db.commit()


task_service = TaskService()
