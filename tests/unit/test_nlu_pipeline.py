"""
Test suite for HybridNLUPipeline.

The session is a MagicMock so every model call is observable.

Verifies:
- Rule-decided intents never call the model
- Ambiguous intents ask the model once (5 tokens) and map its answer
- Unmatched/failed/absent model -> QUESTION
- Title: model output validated, rule fallback on any rejection
- Task type always from rules
- No task keywords -> None, no model call
"""

from unittest.mock import MagicMock

import pytest

from agent.nlu import HybridNLUPipeline, Intent, TaskDraft, TaskType


def make_session(response=None, ready=True, side_effect=None):
    session = MagicMock()
    session.is_ready = ready
    session.generate.return_value = response
    if side_effect is not None:
        session.generate.side_effect = side_effect
    return session


class TestDetectIntent:
    """Tests for detect_intent()."""

    def test_create_task_by_rules_without_model(self):
        session = make_session("question")
        pipeline = HybridNLUPipeline(session)

        assert pipeline.detect_intent("create a main task: finish thesis") is Intent.CREATE_TASK
        session.generate.assert_not_called()

    def test_question_by_rules_without_model(self):
        session = make_session("task")
        pipeline = HybridNLUPipeline(session)

        assert pipeline.detect_intent("how do I build a habit?") is Intent.QUESTION
        session.generate.assert_not_called()

    def test_ambiguous_asks_model(self):
        session = make_session(" task\n")
        pipeline = HybridNLUPipeline(session, timeout_s=3)

        assert pipeline.detect_intent("I want to learn Python") is Intent.CREATE_TASK
        session.generate.assert_called_once()
        args, kwargs = session.generate.call_args
        assert args[0].endswith("User: I want to learn Python\nIntent:")
        assert kwargs["max_tokens"] == HybridNLUPipeline.INTENT_MAX_TOKENS
        assert kwargs["timeout_s"] == 3

    def test_model_says_question(self):
        pipeline = HybridNLUPipeline(make_session("Question."))
        assert pipeline.detect_intent("I feel stuck") is Intent.QUESTION

    @pytest.mark.parametrize("response", [None, "", "banana"])
    def test_unmatched_or_failed_defaults_to_question(self, response):
        pipeline = HybridNLUPipeline(make_session(response))
        assert pipeline.detect_intent("I feel stuck") is Intent.QUESTION

    def test_model_exception_defaults_to_question(self):
        pipeline = HybridNLUPipeline(make_session(side_effect=RuntimeError("boom")))
        assert pipeline.detect_intent("I feel stuck") is Intent.QUESTION

    def test_not_ready_skips_model(self):
        session = make_session("task", ready=False)
        pipeline = HybridNLUPipeline(session)
        assert pipeline.detect_intent("I feel stuck") is Intent.QUESTION
        session.generate.assert_not_called()

    def test_no_session(self):
        assert HybridNLUPipeline(None).detect_intent("I feel stuck") is Intent.QUESTION


class TestExtractTaskInfo:
    """Tests for extract_task_info()."""

    def test_no_task_keywords_short_circuits(self):
        session = make_session("anything")
        pipeline = HybridNLUPipeline(session)

        assert pipeline.extract_task_info("hello there") is None
        session.generate.assert_not_called()

    def test_model_title_accepted(self):
        session = make_session(' "Finish the thesis draft".\nUser: more')
        pipeline = HybridNLUPipeline(session)

        draft = pipeline.extract_task_info("create a main task: finish thesis")

        assert isinstance(draft, TaskDraft)
        assert draft.title == "Finish the thesis draft"
        assert draft.type is TaskType.MAIN
        args, kwargs = session.generate.call_args
        assert args[0].endswith("\nTitle:")
        assert kwargs["max_tokens"] == HybridNLUPipeline.TITLE_MAX_TOKENS

    @pytest.mark.parametrize("response", ["extraction failed", "x", None, "", "a" * 80])
    def test_rejected_model_title_falls_back_to_rules(self, response):
        pipeline = HybridNLUPipeline(make_session(response))
        draft = pipeline.extract_task_info("help me build a new task, I want to run every morning for 30 minutes")

        assert draft is not None
        assert draft.title
        assert len(draft.title) <= 30
        assert "run every morning for 30 minutes".startswith(draft.title)
        assert draft.type is TaskType.DAILY

    def test_model_timeout_falls_back_to_rules(self):
        """A timed-out session call surfaces as None."""
        session = make_session(None)
        pipeline = HybridNLUPipeline(session)
        draft = pipeline.extract_task_info("I want to learn Python")
        assert draft.title == "learn Python"
        assert draft.type is TaskType.SIDE
        session.generate.assert_called_once()

    def test_model_absent_uses_rules(self):
        draft = HybridNLUPipeline(None).extract_task_info("create a daily task: stretch for 10 minutes")
        assert draft.title == "stretch for 10 minutes"
        assert draft.type is TaskType.DAILY

    def test_type_never_from_model(self):
        """The model's title may mention 'main', the type still comes from the message."""
        pipeline = HybridNLUPipeline(make_session("main task urgent deadline"))
        draft = pipeline.extract_task_info("I want to learn the guitar")
        assert draft.type is TaskType.SIDE

    def test_draft_title_never_below_two_chars(self):
        pipeline = HybridNLUPipeline(None)
        draft = pipeline.extract_task_info("create a new task")
        assert draft is not None
        assert len(draft.title) >= 2
