from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.mission import (
    MissionCategory,
    MissionCreate,
    MissionDifficulty,
    MissionResponse,
    MissionStatistics,
    MissionStatus,
    MissionUpdate,
)
from services.mission_service import mission_service

router = APIRouter(prefix="/api/missions", tags=["missions"])


@router.get("", response_model=list[MissionResponse])
async def list_missions(
    category: Optional[MissionCategory] = None,
    difficulty: Optional[MissionDifficulty] = None,
    status: Optional[MissionStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await mission_service.get_missions(
        db, category=category, difficulty=difficulty, status=status
    )


@router.get("/statistics", response_model=MissionStatistics)
async def mission_statistics(db: AsyncSession = Depends(get_db)):
    return await mission_service.get_mission_statistics(db)


@router.get("/{mission_id}", response_model=MissionResponse)
async def get_mission(mission_id: str, db: AsyncSession = Depends(get_db)):
    mission = await mission_service.get_mission(db, mission_id)
    if not mission:
        raise HTTPException(status_code=404, detail="Mission not found")
    return mission


@router.post("", response_model=MissionResponse)
async def create_mission(req: MissionCreate, db: AsyncSession = Depends(get_db)):
    return await mission_service.create_mission(db, req)


@router.put("/{mission_id}", response_model=MissionResponse)
async def update_mission(mission_id: str, req: MissionUpdate, db: AsyncSession = Depends(get_db)):
    if not await mission_service.get_mission(db, mission_id):
        raise HTTPException(status_code=404, detail="Mission not found")

    mission = await mission_service.update_mission(db, mission_id, req)
    if mission is None:
        raise HTTPException(status_code=500, detail="Failed to update mission. Please try again.")
    return mission


@router.delete("/{mission_id}")
async def delete_mission(mission_id: str, db: AsyncSession = Depends(get_db)):
    if not await mission_service.get_mission(db, mission_id):
        raise HTTPException(status_code=404, detail="Mission not found")

    if not await mission_service.delete_mission(db, mission_id):
        raise HTTPException(status_code=500, detail="Failed to delete mission. Please try again.")
    return {"status": "success", "message": f"Mission {mission_id} deleted"}
