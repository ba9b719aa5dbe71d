"""
NLU types: intents, task types and the transient TaskDraft.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

TITLE_MIN_CHARS = 2
TITLE_MAX_CHARS = 50


class Intent(str, Enum):
    CREATE_TASK = "create_task"
    QUESTION = "question"
    UNCLEAR = "unclear"


class TaskType(str, Enum):
    MAIN = "main"     # important / urgent
    SIDE = "side"     # default
    DAILY = "daily"   # habits, routines


class TaskDraft(BaseModel):
    """
    Task proposed by the NLU pipeline, not yet persisted.

    Invariants:
    - title is trimmed and 2-50 chars long
    - type is always decided by rules, never by the model
    """

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    type: TaskType = TaskType.SIDE

    @field_validator("title")
    @classmethod
    def title_length(cls, v: str) -> str:
        v = (v or "").strip()
        if not TITLE_MIN_CHARS <= len(v) <= TITLE_MAX_CHARS:
            raise ValueError(
                f"Title must be {TITLE_MIN_CHARS}-{TITLE_MAX_CHARS} chars after trimming, got {len(v)}"
            )
        return v
