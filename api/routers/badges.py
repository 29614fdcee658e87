from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.mission import BadgeResponse
from services.mission_service import mission_service

router = APIRouter(prefix="/api/badges", tags=["badges"])


@router.get("", response_model=list[BadgeResponse])
async def list_badges(db: AsyncSession = Depends(get_db)):
    return await mission_service.get_available_badges(db)
