"""
Task title normalization, validation and rule-based extraction.

AI titles are untrusted advisory text: parse_ai_title() normalizes them and
validate_title() is the single gate they must pass. extract_title_with_rules()
is the deterministic fallback and always returns a usable title.
"""

import re
from typing import Optional

from agent.nlu.rules import keyword_pattern
from agent.nlu.types import TITLE_MAX_CHARS, TITLE_MIN_CHARS

RULE_TITLE_MAX_CHARS = 30
DEFAULT_TITLE = "New task"

# Label prefixes a model tends to echo before the answer
_LABEL_PREFIXES = ("task title:", "title:", "output:", "answer:", "task:", ":")

_QUOTE_PAIRS = (('"', '"'), ("'", "'"), ("“", "”"), ("‘", "’"), ("`", "`"))
_TRAILING_PUNCTUATION = ".!?,;:。！？，；："
_LEADING_PUNCTUATION = ",.:;!?，。：；！？ "

# Non-answers that must never become a task title
DENY_PHRASES = (
    "none", "no task", "no title", "nothing", "n/a", "unknown",
    "don't know", "do not know", "dont know", "not sure", "unclear",
    "cannot extract", "can't extract", "unable to extract", "extraction failed",
)
_DENY_RE = re.compile(
    r"(?<![\w/])(?:" + "|".join(re.escape(p) for p in sorted(DENY_PHRASES, key=len, reverse=True)) + r")(?![\w/])",
    re.IGNORECASE,
)

# ── Rule extraction vocabulary ────────────────────────────────────────────────
_TASK_TYPE_RE = keyword_pattern(
    ("main task", "side task", "daily task", "main tasks", "side tasks", "daily tasks", "task", "tasks")
)
_ACTION_RE = keyword_pattern(
    (
        "help me", "please", "could you", "can you",
        "set up a new", "build a new", "create a new", "add a new",
        "set up a", "build a", "create a", "add a",
        "set up", "build", "create", "add",
    )
)
_INTENT_PHRASE_RE = keyword_pattern(
    (
        "i want to", "i'd like to", "i would like to", "i hope to", "i plan to",
        "i'm going to", "i am going to", "i need to", "i wish to", "remind me to",
        "i want", "i hope", "i'd like",
    )
)
_LEADING_TEMPORAL_RE = re.compile(
    r"^(?:by|before|until|after|on|at|in|this|next|tomorrow|today|tonight)\b[^,:;]*[,:;]\s*",
    re.IGNORECASE,
)
_PUNCTUATION_RE = re.compile(r"[,.!?:;，。！？：；\"“”]")
_WHITESPACE_RE = re.compile(r"\s+")


def validate_title(title: Optional[str]) -> Optional[str]:
    """Return the trimmed title if it is 2-50 chars and not a non-answer, else None."""
    if title is None:
        return None
    title = title.strip()
    if not TITLE_MIN_CHARS <= len(title) <= TITLE_MAX_CHARS:
        return None
    if _DENY_RE.search(title):
        return None
    return title


def _strip_quotes(text: str) -> str:
    for left, right in _QUOTE_PAIRS:
        if len(text) >= 2 and text.startswith(left) and text.endswith(right):
            return text[1:-1].strip()
    return text


def parse_ai_title(response: Optional[str]) -> Optional[str]:
    """
    Normalize a raw model continuation of "Title:" into a validated title.

    label prefixes -> first line -> surrounding quotes -> trailing punctuation -> validate
    """
    if not response:
        return None

    title = response.strip()
    for prefix in _LABEL_PREFIXES:
        if title.lower().startswith(prefix):
            title = title[len(prefix):].strip()

    lines = title.splitlines()
    title = lines[0].strip() if lines else ""
    title = title.rstrip(_TRAILING_PUNCTUATION).strip()
    title = _strip_quotes(title)
    title = title.rstrip(_TRAILING_PUNCTUATION).strip()

    return validate_title(title)


def extract_title_with_rules(message: str) -> str:
    """
    Fallback title extraction by string surgery. Never returns a blank title.

    task-type words -> action verbs -> keep text after first intent phrase ->
    leading temporal clause -> punctuation -> whitespace -> 30 chars

    A leading temporal clause ("by Friday,") is only dropped when a comma,
    colon or semicolon closes it; without one its extent is unknown and the
    words are kept as part of the title.
    """
    title = _TASK_TYPE_RE.sub(" ", message or "")
    title = _ACTION_RE.sub(" ", title)

    intent = _INTENT_PHRASE_RE.search(title)
    if intent:
        title = title[intent.end():]
    title = title.strip().lstrip(_LEADING_PUNCTUATION)

    title = _LEADING_TEMPORAL_RE.sub("", title)
    title = _PUNCTUATION_RE.sub(" ", title)
    title = _WHITESPACE_RE.sub(" ", title).strip()

    if len(title) > RULE_TITLE_MAX_CHARS:
        title = title[:RULE_TITLE_MAX_CHARS].rstrip()

    return title or DEFAULT_TITLE
