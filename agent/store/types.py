"""
Task store boundary types.

TaskEntity is the persisted record; rewards are attached at creation time
from the task type and never recomputed.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from agent.nlu.types import TaskDraft, TaskType

# type -> (coins, exp)
REWARDS: Dict[TaskType, Tuple[int, int]] = {
    TaskType.MAIN: (100, 50),
    TaskType.SIDE: (50, 25),
    TaskType.DAILY: (20, 10),
}


def reward_for(task_type: TaskType) -> Tuple[int, int]:
    return REWARDS.get(TaskType(task_type), REWARDS[TaskType.SIDE])


@dataclass
class TaskEntity:
    """A task record as stored by a TaskStore."""

    title: str
    description: str = ""
    type: TaskType = TaskType.SIDE
    coin_reward: int = 50
    exp_reward: int = 25
    is_completed: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @classmethod
    def from_draft(cls, draft: TaskDraft) -> "TaskEntity":
        coins, exp = reward_for(draft.type)
        return cls(
            title=draft.title,
            description=draft.description,
            type=draft.type,
            coin_reward=coins,
            exp_reward=exp,
        )

    def mark_completed(self) -> None:
        self.is_completed = True
        self.completed_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["created_at"] = self.created_at.isoformat()
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data
