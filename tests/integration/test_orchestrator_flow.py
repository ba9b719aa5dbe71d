"""
Integration tests: orchestrator + NLU pipeline + session (stub engine) + store.

Verifies:
- Availability notices for READY / NOT_FOUND / ERROR
- Task creation persists the task before confirming, with type rewards
- Confirmation uses the model, falls back to a template
- Questions use the model with the system preamble, fall back to canned replies
- Everything works with the model absent
- help command answers without the model
- History is bounded
"""

from unittest.mock import MagicMock

import pytest

from agent.orchestrator import (
    NOT_FOUND_NOTICE,
    READY_NOTICE,
    UNCLEAR_TASK_REPLY,
    ConversationOrchestrator,
    confirmation_fallback,
)
from agent.state_schema import MessageType
from agent.store import InMemoryTaskStore
from inference import InferenceSessionManager, SessionState, StubInferenceEngine
from inference.canned import HABIT_REPLY


def build(model_path, responses=None, **engine_kwargs):
    engine = StubInferenceEngine(responses=responses, **engine_kwargs)
    session = InferenceSessionManager(engine, str(model_path))
    store = InMemoryTaskStore()
    orchestrator = ConversationOrchestrator(session=session, store=store, max_history=50)
    return engine, orchestrator, store


class TestStartup:
    """Availability notices."""

    @pytest.mark.asyncio
    async def test_ready_notice(self, model_file):
        _, orch, _ = build(model_file)
        notice = await orch.start()
        assert notice.type is MessageType.SYSTEM
        assert notice.text == READY_NOTICE
        assert orch.model_state is SessionState.READY
        orch.close()

    @pytest.mark.asyncio
    async def test_not_found_notice(self, missing_model_file):
        engine, orch, _ = build(missing_model_file)
        notice = await orch.start()
        assert notice.text == NOT_FOUND_NOTICE
        assert "reduced functionality" in notice.text
        assert engine.load_calls == 0
        orch.close()

    @pytest.mark.asyncio
    async def test_error_notice_includes_cause(self, model_file):
        _, orch, _ = build(model_file, fail_load=True)
        notice = await orch.start()
        assert orch.model_state is SessionState.ERROR
        assert "failed to load" in notice.text
        assert orch.session.error_message in notice.text
        orch.close()


class TestCreateTask:
    """Task-creation branch."""

    @pytest.mark.asyncio
    async def test_model_title_and_confirmation(self, model_file):
        engine, orch, store = build(
            model_file,
            responses={
                "Title:": "Finish thesis chapter two",
                "created the task": "Great start, you can do it!",
            },
        )
        await orch.start()

        messages = await orch.handle_message("create a main task: finish thesis")

        assert messages[0].is_user
        reply = messages[-1]
        assert reply.type is MessageType.TASK_CREATED
        assert reply.text == "Great start, you can do it!"

        tasks = store.query_all()
        assert len(tasks) == 1
        assert tasks[0].id == reply.task_id
        assert tasks[0].title == "Finish thesis chapter two"
        assert (tasks[0].coin_reward, tasks[0].exp_reward) == (100, 50)
        # Rule intent: no intent prompt was sent
        assert not any(p.endswith("Intent:") for p in engine.prompts)
        orch.close()

    @pytest.mark.asyncio
    async def test_confirmation_fallback_when_model_fails(self, model_file):
        _, orch, store = build(model_file, fail_generate=True)
        await orch.start()

        messages = await orch.handle_message("help me build a new task, I want to run every morning for 30 minutes")

        task = store.query_all()[0]
        assert task.title.startswith("run every morning")
        assert (task.coin_reward, task.exp_reward) == (20, 10)
        assert messages[-1].text == confirmation_fallback(task)
        assert orch.model_state is SessionState.READY
        orch.close()

    @pytest.mark.asyncio
    async def test_works_without_model(self, missing_model_file):
        engine, orch, store = build(missing_model_file)
        await orch.start()

        messages = await orch.handle_message("add a task: call the plumber")

        assert messages[-1].type is MessageType.TASK_CREATED
        assert store.query_all()[0].title == "call the plumber"
        assert engine.generate_calls == 0
        orch.close()

    @pytest.mark.asyncio
    async def test_ambiguous_message_uses_model_intent(self, model_file):
        engine, orch, store = build(
            model_file,
            responses={"Intent:": "task", "Title:": "learn Python", "created the task": "Nice!"},
        )
        await orch.start()

        messages = await orch.handle_message("I want to learn Python")

        assert messages[-1].type is MessageType.TASK_CREATED
        assert store.query_all()[0].title == "learn Python"
        assert engine.prompts[0].endswith("User: I want to learn Python\nIntent:")
        orch.close()

    @pytest.mark.asyncio
    async def test_no_task_keywords_asks_to_rephrase(self, model_file):
        _, orch, store = build(model_file, responses={"Intent:": "task"})
        await orch.start()

        messages = await orch.handle_message("hello there")

        assert messages[-1].text == UNCLEAR_TASK_REPLY
        assert store.query_all() == []
        orch.close()


class TestQuestion:
    """Question-answering branch."""

    @pytest.mark.asyncio
    async def test_model_answer_with_preamble(self, model_file):
        engine, orch, store = build(model_file, responses="Start with five minutes a day.")
        await orch.start()

        messages = await orch.handle_message("how do I build a habit?")

        assert messages[-1].text == "Start with five minutes a day."
        assert messages[-1].type is MessageType.TEXT
        assert engine.prompts[-1].startswith("<|system|>")
        assert "The user asks: how do I build a habit?" in engine.prompts[-1]
        assert store.query_all() == []
        orch.close()

    @pytest.mark.asyncio
    async def test_canned_fallback_on_timeout(self, model_file):
        engine, orch, _ = build(model_file, responses="too late", latency_s=0.5)
        orch.answer_timeout_s = 0.05
        await orch.start()

        messages = await orch.handle_message("how do I stick to a habit?")

        assert messages[-1].text == HABIT_REPLY
        assert orch.model_state is SessionState.READY
        orch.close()

    @pytest.mark.asyncio
    async def test_canned_without_session(self):
        orch = ConversationOrchestrator(session=None)
        await orch.start()
        messages = await orch.handle_message("how do I stick to a habit?")
        assert messages[-1].text == HABIT_REPLY
        orch.close()


class TestHelpAndHistory:
    """help command, reinitialize, bounded history."""

    @pytest.mark.asyncio
    async def test_help_reports_model_status(self, missing_model_file):
        engine, orch, _ = build(missing_model_file)
        await orch.start()

        messages = await orch.handle_message("help")

        assert "not installed" in messages[-1].text
        assert "100 coins + 50 exp" in messages[-1].text
        assert engine.generate_calls == 0
        orch.close()

    @pytest.mark.asyncio
    async def test_history_bounded(self, missing_model_file):
        engine = StubInferenceEngine()
        session = InferenceSessionManager(engine, str(missing_model_file))
        orch = ConversationOrchestrator(session=session, max_history=5)
        await orch.start()

        for i in range(10):
            await orch.handle_message(f"how do I do thing {i}?")

        history = orch.history()
        assert len(history) == 5
        assert history[-1].is_user is False
        assert history[-2].text == "how do I do thing 9?"
        orch.close()

    def test_reinitialize_model(self, tmp_path):
        path = tmp_path / "model.gguf"
        _, orch, _ = build(path)
        orch.initialize_model()
        assert orch.model_state is SessionState.NOT_FOUND

        path.write_bytes(b"GGUF" + b"\x00" * 32)
        notice = orch.reinitialize_model()
        assert notice.text == READY_NOTICE
        assert orch.model_status()["state"] == "ready"
        orch.close()

    def test_process_message_never_raises(self, missing_model_file):
        _, orch, _ = build(missing_model_file)
        orch.pipeline.detect_intent = MagicMock(side_effect=RuntimeError("kaboom"))

        replies = orch.process_message("anything")

        assert len(replies) == 1
        assert "kaboom" in replies[0].text
        orch.close()
