from pydantic import BaseModel, Field
from typing import Optional, List


class TaskCreate(BaseModel):
    description: str = Field(min_length=1)


class TaskUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1)
    completed: Optional[bool] = None


class TaskReorder(BaseModel):
    task_ids: List[str]
