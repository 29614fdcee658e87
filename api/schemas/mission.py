from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class MissionCategory(str, Enum):
    PROBLEM_SOLVING = "problem-solving"
    LEADERSHIP = "leadership"
    COMMUNICATION = "communication"
    TECHNICAL = "technical"
    CREATIVITY = "creativity"


class MissionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class MissionStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BadgeRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Skill(BaseModel):
    name: str = Field(min_length=1)
    category: MissionCategory


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    image_url: str = ""
    rarity: BadgeRarity
    category: MissionCategory

    model_config = {"from_attributes": True}


class TaskInput(BaseModel):
    """A task as supplied inside a mission update; ``id`` is kept when present."""
    id: Optional[str] = None
    description: str
    completed: bool = False


class TaskResponse(BaseModel):
    id: str
    description: str
    completed: bool
    order_index: int

    model_config = {"from_attributes": True}


class MissionCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[MissionCategory] = None
    difficulty: Optional[MissionDifficulty] = None
    points: Optional[int] = Field(default=None, gt=0)
    time_limit: Optional[int] = Field(default=None, ge=0)
    completion_criteria: Optional[str] = None
    badge_reward_id: Optional[str] = None
    created_by: Optional[str] = None
    tasks: List[TaskInput] = []
    required_skills: List[Skill] = []


class MissionUpdate(BaseModel):
    """Sparse patch. Absent fields are left alone; ``badge_reward_id=None`` and
    ``time_limit=None`` clear the column. Presence is read via ``exclude_unset``."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[MissionCategory] = None
    difficulty: Optional[MissionDifficulty] = None
    points: Optional[int] = Field(default=None, gt=0)
    time_limit: Optional[int] = Field(default=None, ge=0)
    status: Optional[MissionStatus] = None
    completion_criteria: Optional[str] = None
    badge_reward_id: Optional[str] = None
    tasks: Optional[List[TaskInput]] = None
    required_skills: Optional[List[Skill]] = None

    @field_validator(
        "title", "description", "category", "difficulty", "points",
        "status", "completion_criteria", "tasks", "required_skills",
    )
    @classmethod
    def _not_null(cls, v):
        # Only validated when the field is supplied; null cannot clear a required column
        if v is None:
            raise ValueError("field cannot be cleared")
        return v


class MissionResponse(BaseModel):
    id: str
    title: str
    description: str = ""
    category: MissionCategory
    difficulty: MissionDifficulty
    points: int
    time_limit: Optional[int] = None
    status: MissionStatus
    completion_criteria: str = ""
    tasks: List[TaskResponse] = []
    required_skills: List[Skill] = []
    badge_reward: Optional[BadgeResponse] = None
    created_by: str
    created_at: datetime


class MissionStatistics(BaseModel):
    total_missions: int = 0
    completed_missions: int = 0
    in_progress_missions: int = 0
    not_started_missions: int = 0
    average_completion_rate: float = 0.0
