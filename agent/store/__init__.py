"""
Task store boundary.

The orchestrator depends only on TaskStore; the storage engine is chosen at
startup via create_task_store().
"""

from agent.store.types import REWARDS, TaskEntity, reward_for
from agent.store.base import TaskStore
from agent.store.stub import InMemoryTaskStore
from agent.store.sqlite import SQLiteTaskStore


def create_task_store(db_path: str = "") -> TaskStore:
    """SQLite when a path is configured, in-memory otherwise."""
    if db_path:
        return SQLiteTaskStore(db_path)
    return InMemoryTaskStore()


__all__ = [
    "REWARDS",
    "TaskEntity",
    "reward_for",
    "TaskStore",
    "InMemoryTaskStore",
    "SQLiteTaskStore",
    "create_task_store",
]
