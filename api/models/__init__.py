from models.badge import Badge
from models.mission import Mission, MissionTask, MissionSkill

__all__ = ["Badge", "Mission", "MissionTask", "MissionSkill"]
