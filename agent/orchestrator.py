"""
Conversation Orchestrator

Public entry point for the chat feature. Glue between the user, the hybrid
NLU pipeline, the inference session and the task store:

  user message -> detect_intent -> create_task: extract_task_info -> store.insert -> confirmation
                                -> question:    session.respond (canned fallback)
                                -> unclear:     ask the user to rephrase

Every reply is produced whether or not the model is available; the model
only makes replies nicer.

Invariants:
- handle_message never raises; unexpected failures become an apology message
- the chat history never exceeds max_history messages
- tasks are persisted before their confirmation message is emitted
"""

import asyncio
import logging
import re
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from agent.nlu import HybridNLUPipeline, Intent, TaskDraft, TaskType
from agent.prompting import SYSTEM_PREAMBLE, build_confirmation_prompt, build_question_prompt
from agent.state_schema import ChatMessage, MessageType
from agent.store import REWARDS, InMemoryTaskStore, TaskEntity, TaskStore
from config import Config
from inference import CannedResponder, InferenceSessionManager, SessionState

logger = logging.getLogger(__name__)

CONFIRM_MAX_TOKENS = 50
ANSWER_MAX_TOKENS = 80

_HELP_RE = re.compile(r"^\s*(?:/?help|how do i use (?:this|you)|usage)\s*[?!.]*\s*$", re.IGNORECASE)

# ── Replies ───────────────────────────────────────────────────────────────────
READY_NOTICE = (
    "AI model ready.\n"
    "Hi! I'm the LifeQuest assistant. I can:\n"
    "- create and organize tasks from plain language\n"
    "- help you plan your time\n"
    "- keep you motivated\n"
    "Tell me what you want to do!"
)
NOT_FOUND_NOTICE = (
    "AI model not installed.\n"
    "Running with reduced functionality: tasks are created with simple rules "
    "and questions get standard answers. Install a model to enable the full assistant."
)
ERROR_NOTICE = "AI model failed to load: {error}\nRunning with reduced functionality."
UNCLEAR_TASK_REPLY = "I didn't quite get that. What task would you like to create?"
UNCLEAR_INTENT_REPLY = "I can create tasks for you or answer questions. What do you need?"
STORE_FAILURE_REPLY = "Sorry, I couldn't save the task \"{title}\". Please try again."
APOLOGY_REPLY = "Sorry, something went wrong while handling your message: {error}\nPlease try again later."

_STATUS_LABELS = {
    SessionState.READY: "enabled (full functionality)",
    SessionState.NOT_FOUND: "not installed (reduced functionality)",
    SessionState.ERROR: "failed to load (reduced functionality)",
}


def confirmation_fallback(task: TaskEntity) -> str:
    """Templated confirmation used when the model gives no reply."""
    return (
        f"Created {task.type.value} task \"{task.title}\"! "
        f"Reward: {task.coin_reward} coins + {task.exp_reward} exp. You've got this!"
    )


def _reward_line(task_type: TaskType, hint: str) -> str:
    coins, exp = REWARDS[task_type]
    return f"- {task_type.value}: {coins} coins + {exp} exp ({hint})"


class ConversationOrchestrator:
    """
    Chat orchestrator.

    Args:
        session: Inference session, or None to run rules/canned replies only
        pipeline: NLU pipeline (built on top of session by default)
        store: Task store (in-memory by default)
        max_history: Bound on stored chat messages
    """

    def __init__(
        self,
        session: Optional[InferenceSessionManager] = None,
        pipeline: Optional[HybridNLUPipeline] = None,
        store: Optional[TaskStore] = None,
        max_history: int = Config.MAX_CHAT_HISTORY,
        confirm_timeout_s: float = Config.CONFIRM_TIMEOUT_S,
        answer_timeout_s: float = Config.ANSWER_TIMEOUT_S,
    ):
        self.session = session
        self.pipeline = pipeline or HybridNLUPipeline(session, timeout_s=Config.NLU_TIMEOUT_S)
        self.store = store or InMemoryTaskStore()
        self.confirm_timeout_s = confirm_timeout_s
        self.answer_timeout_s = answer_timeout_s
        self.canned = CannedResponder()

        self._history: Deque[ChatMessage] = deque(maxlen=max(1, max_history))
        self._history_lock = threading.Lock()

    # ── History ───────────────────────────────────────────────────────────

    def _post(self, message: ChatMessage) -> ChatMessage:
        with self._history_lock:
            self._history.append(message)
        return message

    def history(self) -> List[ChatMessage]:
        with self._history_lock:
            return list(self._history)

    # ── Model lifecycle ───────────────────────────────────────────────────

    @property
    def model_state(self) -> SessionState:
        if self.session is None:
            return SessionState.NOT_FOUND
        return self.session.state

    def model_status(self) -> Dict[str, Any]:
        if self.session is None:
            return {"state": SessionState.NOT_FOUND.value, "model_path": None, "size_mb": 0.0, "error": None}
        return {
            "state": self.session.state.value,
            "model_path": self.session.model_path,
            "size_mb": round(self.session.model_size_mb(), 1),
            "error": self.session.error_message,
        }

    def _availability_notice(self) -> ChatMessage:
        state = self.model_state
        if state is SessionState.READY:
            text = READY_NOTICE
        elif state is SessionState.ERROR:
            text = ERROR_NOTICE.format(error=self.session.error_message or "unknown error")
        else:
            text = NOT_FOUND_NOTICE
        return self._post(ChatMessage(text=text, type=MessageType.SYSTEM))

    def initialize_model(self) -> ChatMessage:
        """Blocking: initialize the session and post the availability notice."""
        if self.session is not None:
            logger.info("Initializing AI model...")
            self.session.initialize()
        return self._availability_notice()

    def reinitialize_model(self) -> ChatMessage:
        """Blocking: release and reload the model, then post the new notice."""
        if self.session is not None:
            logger.info("Reinitializing AI model...")
            self.session.reinitialize()
        return self._availability_notice()

    async def start(self) -> ChatMessage:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.initialize_model)

    def close(self) -> None:
        """Teardown: release the model and the store."""
        if self.session is not None:
            self.session.close()
        self.store.close()
        logger.info("Orchestrator closed")

    # ── Tasks ─────────────────────────────────────────────────────────────

    def list_tasks(self) -> List[TaskEntity]:
        return self.store.query_all()

    def create_task(self, draft: TaskDraft) -> Optional[TaskEntity]:
        task = TaskEntity.from_draft(draft)
        if not self.store.insert(task):
            logger.error(f"Task store rejected task: {task.title!r}")
            return None
        logger.info(f"Task created from chat: {task.title!r} ({task.type.value})")
        return task

    # ── Message handling ──────────────────────────────────────────────────

    async def handle_message(self, text: str) -> List[ChatMessage]:
        """
        Process one user message; returns the user turn followed by the replies.

        Blocking NLU/model work runs in the default executor.
        """
        user_message = self._post(ChatMessage(text=text, is_user=True))
        loop = asyncio.get_running_loop()
        replies = await loop.run_in_executor(None, self.process_message, text)
        return [user_message] + replies

    def process_message(self, text: str) -> List[ChatMessage]:
        """Blocking core of handle_message. Never raises."""
        try:
            replies = self._dispatch(text)
        except Exception as e:
            logger.error(f"Error handling message: {e}", exc_info=True)
            replies = [ChatMessage(text=APOLOGY_REPLY.format(error=e))]
        return [self._post(reply) for reply in replies]

    def _dispatch(self, text: str) -> List[ChatMessage]:
        if _HELP_RE.match(text):
            return [ChatMessage(text=self.help_message())]

        intent = self.pipeline.detect_intent(text)
        logger.info(f"Detected intent: {intent.value}")

        if intent is Intent.CREATE_TASK:
            return self._handle_create_task(text)
        if intent is Intent.QUESTION:
            return [ChatMessage(text=self._answer_question(text))]
        return [ChatMessage(text=UNCLEAR_INTENT_REPLY)]

    def _handle_create_task(self, text: str) -> List[ChatMessage]:
        draft = self.pipeline.extract_task_info(text)
        if draft is None:
            return [ChatMessage(text=UNCLEAR_TASK_REPLY)]

        task = self.create_task(draft)
        if task is None:
            return [ChatMessage(text=STORE_FAILURE_REPLY.format(title=draft.title))]

        return [
            ChatMessage(
                text=self._confirm_task(task),
                type=MessageType.TASK_CREATED,
                task_id=task.id,
            )
        ]

    def _confirm_task(self, task: TaskEntity) -> str:
        if self.session is not None and self.session.is_ready:
            response = self.session.generate(
                build_confirmation_prompt(task.title),
                max_tokens=CONFIRM_MAX_TOKENS,
                timeout_s=self.confirm_timeout_s,
            )
            if response and response.strip():
                return response.strip()
        return confirmation_fallback(task)

    def _answer_question(self, text: str) -> str:
        if self.session is None:
            return self.canned.respond(text)
        return self.session.respond(
            build_question_prompt(text),
            max_tokens=ANSWER_MAX_TOKENS,
            fallback_message=text,
            timeout_s=self.answer_timeout_s,
            system_preamble=SYSTEM_PREAMBLE,
        )

    def help_message(self) -> str:
        state = self.model_state
        status = _STATUS_LABELS.get(state, state.value)
        return (
            "LifeQuest assistant help\n\n"
            "Create tasks by just saying what you want to do:\n"
            "- \"create a main task: finish the thesis\"\n"
            "- \"daily task: run for 30 minutes every morning\"\n"
            "- \"I want to learn Python\"\n\n"
            "Task types and rewards:\n"
            f"{_reward_line(TaskType.MAIN, 'important, urgent')}\n"
            f"{_reward_line(TaskType.SIDE, 'everything else')}\n"
            f"{_reward_line(TaskType.DAILY, 'habits, routines')}\n\n"
            "Ask me anything else and I'll do my best to answer.\n\n"
            f"AI model: {status}"
        )
