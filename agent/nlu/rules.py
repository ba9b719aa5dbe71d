"""
Rule layer of the hybrid NLU pipeline.

Deterministic keyword rules for:
- intent (create-task vs question, or undecided)
- whether a message mentions a task at all
- task type (main / daily / side)

All matching is case-insensitive on word boundaries, except "?" which is a
plain substring.
"""

import re
from typing import Iterable, Optional

from agent.nlu.types import Intent, TaskType


def keyword_pattern(phrases: Iterable[str]) -> re.Pattern:
    """Compile phrases into one word-bounded alternation (multi-word phrases allow any whitespace)."""
    parts = sorted((r"\s+".join(re.escape(w) for w in p.split()) for p in phrases), key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(parts) + r")\b", re.IGNORECASE)


# ── Intent keywords ───────────────────────────────────────────────────────────
TASK_ACTION_KEYWORDS = ("create", "build", "add", "new", "help me", "task", "tasks")
QUESTION_KEYWORDS = ("how", "what", "why", "can you", "could you")

_TASK_ACTION_RE = keyword_pattern(TASK_ACTION_KEYWORDS)
_QUESTION_RE = keyword_pattern(QUESTION_KEYWORDS)

# ── Task-indicating vocabulary (extraction guard) ─────────────────────────────
TASK_INDICATOR_KEYWORDS = (
    "task", "tasks", "todo", "to-do", "create", "add", "build", "new",
    "do", "finish", "complete", "start", "learn", "study", "practice",
    "run", "read", "write", "prepare", "review", "plan", "goal",
    "hope", "want", "going to", "need to", "remind me",
)
_TASK_INDICATOR_RE = keyword_pattern(TASK_INDICATOR_KEYWORDS)

# ── Task type buckets ─────────────────────────────────────────────────────────
MAIN_TASK_KEYWORDS = (
    "main", "important", "urgent", "must", "deadline", "due",
    "project", "report", "interview", "job", "exam", "thesis",
)
DAILY_TASK_KEYWORDS = (
    "daily", "every day", "everyday", "each day", "every morning", "every night",
    "every evening", "routine", "habit", "keep it up", "stick to",
    "run", "running", "jog", "exercise", "workout", "work out",
)
_MAIN_RE = keyword_pattern(MAIN_TASK_KEYWORDS)
# "work" counts as main unless it is "work out"
_WORK_RE = re.compile(r"\bwork\b(?!\s+out\b)", re.IGNORECASE)
_DAILY_RE = keyword_pattern(DAILY_TASK_KEYWORDS)


def has_task_action_keyword(message: str) -> bool:
    return bool(_TASK_ACTION_RE.search(message or ""))


def has_question_keyword(message: str) -> bool:
    message = message or ""
    return "?" in message or "？" in message or bool(_QUESTION_RE.search(message))


def detect_intent_by_rules(message: str) -> Optional[Intent]:
    """
    Rule pass of intent detection.

    task keyword and no question keyword -> CREATE_TASK
    any question keyword                 -> QUESTION
    neither                              -> None (ambiguous, ask the model)
    """
    has_task = has_task_action_keyword(message)
    has_question = has_question_keyword(message)

    if has_task and not has_question:
        return Intent.CREATE_TASK
    if has_question:
        return Intent.QUESTION
    return None


def contains_task_keywords(message: str) -> bool:
    """Cheap guard: does the message mention anything task-like at all?"""
    return bool(_TASK_INDICATOR_RE.search(message or ""))


def classify_task_type(message: str) -> TaskType:
    """main before daily; side when neither bucket matches."""
    message = message or ""
    if _MAIN_RE.search(message) or _WORK_RE.search(message):
        return TaskType.MAIN
    if _DAILY_RE.search(message):
        return TaskType.DAILY
    return TaskType.SIDE
