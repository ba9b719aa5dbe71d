"""
In-memory task store for tests and store-less deployments.
"""

import copy
import threading
from typing import Dict, List

from agent.store.base import TaskStore
from agent.store.types import TaskEntity


class InMemoryTaskStore(TaskStore):
    """
    Deterministic dict-backed store.

    Records are copied in and out so callers cannot mutate stored state.
    """

    def __init__(self):
        self.storage: Dict[str, TaskEntity] = {}
        self._lock = threading.Lock()

    def insert(self, task: TaskEntity) -> bool:
        with self._lock:
            if task.id in self.storage:
                return False
            self.storage[task.id] = copy.deepcopy(task)
            return True

    def update(self, task: TaskEntity) -> bool:
        with self._lock:
            if task.id not in self.storage:
                return False
            self.storage[task.id] = copy.deepcopy(task)
            return True

    def delete(self, task: TaskEntity) -> bool:
        with self._lock:
            return self.storage.pop(task.id, None) is not None

    def query_all(self) -> List[TaskEntity]:
        with self._lock:
            tasks = [copy.deepcopy(t) for t in self.storage.values()]
        return sorted(tasks, key=lambda t: t.created_at)
