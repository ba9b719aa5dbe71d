"""
Chat state schema and types.

ChatMessage is the single unit the orchestrator emits: user turns,
assistant replies, task-created confirmations and system notices.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(str, Enum):
    TEXT = "text"
    TASK_CREATED = "task_created"
    SYSTEM = "system"


@dataclass
class ChatMessage:
    """
    One chat turn.

    Invariants:
    - is_user messages are always TEXT
    - TASK_CREATED messages carry the created task id
    """

    text: str
    is_user: bool = False
    type: MessageType = MessageType.TEXT
    task_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "is_user": self.is_user,
            "type": self.type.value,
            "task_id": self.task_id,
            "timestamp": self.timestamp.isoformat(),
        }
