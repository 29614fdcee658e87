import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.badge import Badge
from models.mission import MissionSkill
from schemas.mission import BadgeResponse, Skill
from services.errors import persistence_guard, row_mapping_guard

logger = logging.getLogger(__name__)

STARTER_BADGES = [
    {
        "name": "Problem Solver",
        "description": "Successfully completed 3 problem-solving missions",
        "image_url": "/badges/problem-solver.svg",
        "rarity": "common",
        "category": "problem-solving",
    },
    {
        "name": "Team Captain",
        "description": "Demonstrated exceptional leadership skills",
        "image_url": "/badges/team-captain.svg",
        "rarity": "rare",
        "category": "leadership",
    },
    {
        "name": "Code Wizard",
        "description": "Solved a difficult technical challenge",
        "image_url": "/badges/code-wizard.svg",
        "rarity": "epic",
        "category": "technical",
    },
    {
        "name": "Effective Communicator",
        "description": "Successfully completed all communication challenges",
        "image_url": "/badges/communicator.svg",
        "rarity": "uncommon",
        "category": "communication",
    },
    {
        "name": "Creative Genius",
        "description": "Demonstrated exceptional creativity in solutions",
        "image_url": "/badges/creative-genius.svg",
        "rarity": "legendary",
        "category": "creativity",
    },
]


async def list_badges(db: AsyncSession) -> list[BadgeResponse]:
    """Badge catalog, alphabetical by name."""
    async with persistence_guard(db, "fetch badges"):
        result = await db.execute(select(Badge).order_by(Badge.name))
        badges = result.scalars().all()
    with row_mapping_guard("badge"):
        return [BadgeResponse.model_validate(b) for b in badges]


async def get_badge(db: AsyncSession, badge_id: str) -> Optional[BadgeResponse]:
    async with persistence_guard(db, f"fetch badge {badge_id}"):
        badge = await db.get(Badge, badge_id)
    if badge is None:
        return None
    with row_mapping_guard(f"badge {badge_id}"):
        return BadgeResponse.model_validate(badge)


async def get_mission_skills(db: AsyncSession, mission_id: str) -> list[Skill]:
    async with persistence_guard(db, f"fetch skills for mission {mission_id}"):
        result = await db.execute(
            select(MissionSkill)
            .where(MissionSkill.mission_id == mission_id)
            .order_by(MissionSkill.id)
        )
        rows = result.scalars().all()
    with row_mapping_guard(f"skills of mission {mission_id}"):
        return [Skill(name=r.skill_name, category=r.skill_category) for r in rows]


async def seed_badges(db: AsyncSession) -> int:
    """Insert the starter catalog if no badge exists yet. Returns rows inserted."""
    async with persistence_guard(db, "seed badge catalog"):
        count = (await db.execute(select(func.count(Badge.id)))).scalar() or 0
        if count:
            return 0
        for data in STARTER_BADGES:
            db.add(Badge(**data))
        await db.commit()
    logger.info(f"Seeded {len(STARTER_BADGES)} starter badges")
    return len(STARTER_BADGES)
