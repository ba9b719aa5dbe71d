"""
Abstract task store interface.

The orchestrator depends only on this interface, not on a storage engine.
"""

from abc import ABC, abstractmethod
from typing import List

from agent.store.types import TaskEntity


class TaskStore(ABC):
    """
    Abstract task persistence boundary, keyed by TaskEntity.id.

    Key properties:
    - Operations report failure through return values, never raise
    - Records are stored as given; no schema knowledge leaks to callers
    """

    @abstractmethod
    def insert(self, task: TaskEntity) -> bool:
        """Persist a new task. Returns False on failure or duplicate id."""
        raise NotImplementedError

    @abstractmethod
    def update(self, task: TaskEntity) -> bool:
        """Overwrite an existing task. Returns False if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, task: TaskEntity) -> bool:
        raise NotImplementedError

    @abstractmethod
    def query_all(self) -> List[TaskEntity]:
        """All tasks, oldest first. Empty list on failure."""
        raise NotImplementedError

    def close(self) -> None:
        """Release storage resources (optional)."""
        pass
