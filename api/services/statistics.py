import logging
from collections import Counter
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.mission import Mission
from schemas.mission import MissionStatistics, MissionStatus
from services.errors import fail_soft, persistence_guard

logger = logging.getLogger(__name__)


def compute_mission_statistics(statuses: Iterable[str]) -> MissionStatistics:
    """Count missions per status and derive the completion rate (0 when there are none)."""
    counts = Counter(getattr(s, "value", s) for s in statuses)
    total = sum(counts.values())
    completed = counts[MissionStatus.COMPLETED.value]

    return MissionStatistics(
        total_missions=total,
        completed_missions=completed,
        in_progress_missions=counts[MissionStatus.IN_PROGRESS.value],
        not_started_missions=counts[MissionStatus.NOT_STARTED.value],
        average_completion_rate=(completed / total) * 100 if total > 0 else 0.0,
    )


@fail_soft(MissionStatistics())
async def get_mission_statistics(db: AsyncSession) -> MissionStatistics:
    """Collect mission status counts across the full mission set."""
    async with persistence_guard(db, "fetch mission statistics"):
        result = await db.execute(select(Mission.status))
        statuses = result.scalars().all()

    return compute_mission_statistics(statuses)
