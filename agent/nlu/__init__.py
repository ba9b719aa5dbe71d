"""
Hybrid NLU exports.

Intent detection, task-title extraction, and the rule layer behind them.
"""

from agent.nlu.types import Intent, TaskDraft, TaskType
from agent.nlu.rules import (
    classify_task_type,
    contains_task_keywords,
    detect_intent_by_rules,
)
from agent.nlu.titles import (
    extract_title_with_rules,
    parse_ai_title,
    validate_title,
)
from agent.nlu.pipeline import HybridNLUPipeline

__all__ = [
    "Intent",
    "TaskDraft",
    "TaskType",
    "classify_task_type",
    "contains_task_keywords",
    "detect_intent_by_rules",
    "extract_title_with_rules",
    "parse_ai_title",
    "validate_title",
    "HybridNLUPipeline",
]
