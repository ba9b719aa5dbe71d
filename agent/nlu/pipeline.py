"""
Hybrid NLU Pipeline

Two independent two-stage cascades on top of the inference session:

  detect_intent:     rules -> (only if ambiguous) few-shot model call -> default QUESTION
  extract_task_info: keyword guard -> model title -> validator -> rule fallback
                     + rule-only task type

The model is an enhancement, never a dependency: with the session absent,
failed, or timing out, every method still returns a deterministic answer.

Guarantees:
- Never raises
- At most one model call per method invocation, each time-boxed
- Task type is never decided by the model
"""

import logging
from typing import Optional

from pydantic import ValidationError

from agent.nlu.rules import classify_task_type, contains_task_keywords, detect_intent_by_rules
from agent.nlu.titles import extract_title_with_rules, parse_ai_title
from agent.nlu.types import TITLE_MIN_CHARS, Intent, TaskDraft
from agent.prompting.prompt_builder import (
    INTENT_QUESTION_WORD,
    INTENT_TASK_WORD,
    build_intent_prompt,
    build_title_prompt,
)
from inference import InferenceSessionManager

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Task extracted from chat"


class HybridNLUPipeline:
    """
    Intent classification and task extraction with rule-based fallbacks.

    Args:
        session: Inference session, or None for rule-only operation
        timeout_s: Deadline for each model call
    """

    INTENT_MAX_TOKENS = 5
    TITLE_MAX_TOKENS = 30

    def __init__(self, session: Optional[InferenceSessionManager] = None, timeout_s: float = 15.0):
        self.session = session
        self.timeout_s = timeout_s

    @property
    def ai_available(self) -> bool:
        return self.session is not None and self.session.is_ready

    def _generate(self, prompt: str, max_tokens: int) -> Optional[str]:
        if not self.ai_available:
            return None
        try:
            return self.session.generate(prompt, max_tokens=max_tokens, timeout_s=self.timeout_s)
        except Exception as e:
            logger.warning(f"Model call failed: {e}")
            return None

    # ── Intent ────────────────────────────────────────────────────────────

    def detect_intent(self, message: str) -> Intent:
        """Rules first; the model only settles messages the rules leave open."""
        intent = detect_intent_by_rules(message)
        if intent is not None:
            logger.debug(f"Intent by rules: {intent.value}")
            return intent
        return self._detect_intent_with_ai(message)

    def _detect_intent_with_ai(self, message: str) -> Intent:
        response = self._generate(build_intent_prompt(message), self.INTENT_MAX_TOKENS)
        if not response:
            logger.debug("Intent model unavailable or failed; defaulting to question")
            return Intent.QUESTION

        answer = response.strip().lower()
        if INTENT_TASK_WORD in answer:
            intent = Intent.CREATE_TASK
        elif INTENT_QUESTION_WORD in answer:
            intent = Intent.QUESTION
        else:
            intent = Intent.QUESTION
        logger.info(f"Intent by model: {intent.value} (raw={answer!r})")
        return intent

    # ── Task extraction ───────────────────────────────────────────────────

    def extract_task_info(self, message: str) -> Optional[TaskDraft]:
        """
        Build a TaskDraft from a chat message, or None when it mentions no task.

        The title comes from the model when it passes validation, otherwise
        from the rule extractor; the type always comes from rules.
        """
        if not contains_task_keywords(message):
            logger.debug("No task keywords found")
            return None

        title = self._extract_title_with_ai(message)
        if not title or len(title) < TITLE_MIN_CHARS:
            title = extract_title_with_rules(message)
            logger.info(f"Rule-based title: {title!r}")

        task_type = classify_task_type(message)
        try:
            draft = TaskDraft(title=title, description=DEFAULT_DESCRIPTION, type=task_type)
        except ValidationError as e:
            logger.warning(f"Rejected task draft: {e}")
            return None

        logger.info(f"Task extracted: title={draft.title!r}, type={draft.type.value}")
        return draft

    def _extract_title_with_ai(self, message: str) -> Optional[str]:
        response = self._generate(build_title_prompt(message), self.TITLE_MAX_TOKENS)
        if not response:
            return None

        title = parse_ai_title(response)
        if title is None:
            logger.info(f"Model title rejected: {response[:60]!r}")
        else:
            logger.info(f"Model title: {title!r}")
        return title
