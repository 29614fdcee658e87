from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.mission import TaskResponse
from schemas.task import TaskCreate, TaskReorder, TaskUpdate
from services.errors import TaskSetMismatchError
from services.mission_service import mission_service
from services.task_service import task_service

router = APIRouter(prefix="/api/missions/{mission_id}/tasks", tags=["tasks"])


async def _require_mission(db: AsyncSession, mission_id: str) -> None:
    if not await mission_service.get_mission(db, mission_id):
        raise HTTPException(status_code=404, detail="Mission not found")


@router.get("", response_model=list[TaskResponse])
async def list_tasks(mission_id: str, db: AsyncSession = Depends(get_db)):
    await _require_mission(db, mission_id)
    return await task_service.get_tasks(db, mission_id)


@router.post("", response_model=TaskResponse)
async def create_task(mission_id: str, req: TaskCreate, db: AsyncSession = Depends(get_db)):
    await _require_mission(db, mission_id)
    task = await task_service.create_task(db, mission_id, req.description)
    if task is None:
        raise HTTPException(status_code=500, detail="Failed to create task. Please try again.")
    return task


@router.put("/order")
async def reorder_tasks(mission_id: str, req: TaskReorder, db: AsyncSession = Depends(get_db)):
    await _require_mission(db, mission_id)
    try:
        ok = await task_service.reorder_tasks(db, mission_id, req.task_ids)
    except TaskSetMismatchError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    if not ok:
        raise HTTPException(status_code=500, detail="Failed to reorder tasks. Please reload and try again.")
    return {"status": "success", "task_ids": req.task_ids}


@router.post("/repair", response_model=list[TaskResponse])
async def repair_task_order(mission_id: str, db: AsyncSession = Depends(get_db)):
    await _require_mission(db, mission_id)
    return await task_service.repair_task_order(db, mission_id)


async def _require_task(db: AsyncSession, mission_id: str, task_id: str) -> None:
    if not await task_service.find_task(db, mission_id, task_id):
        raise HTTPException(status_code=404, detail="Task not found")


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(mission_id: str, task_id: str, req: TaskUpdate, db: AsyncSession = Depends(get_db)):
    await _require_task(db, mission_id, task_id)
    task = await task_service.update_task(db, mission_id, task_id, req)
    if task is None:
        raise HTTPException(status_code=500, detail="Failed to update task. Please try again.")
    return task


@router.delete("/{task_id}")
async def delete_task(mission_id: str, task_id: str, db: AsyncSession = Depends(get_db)):
    await _require_task(db, mission_id, task_id)
    if not await task_service.delete_task(db, mission_id, task_id):
        raise HTTPException(status_code=500, detail="Failed to delete task. Please reload and try again.")
    return {"status": "success", "message": f"Task {task_id} deleted"}


@router.post("/{task_id}/toggle")
async def toggle_task(mission_id: str, task_id: str, db: AsyncSession = Depends(get_db)):
    await _require_task(db, mission_id, task_id)
    if not await task_service.toggle_task_completion(db, mission_id, task_id):
        raise HTTPException(status_code=500, detail="Failed to toggle task. Please try again.")

    # The toggle is committed at this point; a failed status read reports null
    status = await task_service.get_mission_status(db, mission_id)
    return {
        "status": "success",
        "mission_status": status.value if status else None,
    }
