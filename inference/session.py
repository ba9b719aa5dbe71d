"""
Inference session manager.

Owns the engine binding and the only ModelHandle in the process, tracks the
session lifecycle, and time-boxes every generation call.

Concurrency model:
- One worker thread owns every native call (load, generate, release).
  Calls are serialized in submission order; the engine is never re-entered.
- generate() races a deadline against the worker. When the deadline wins the
  caller gets None and moves on; the native call cannot be preempted and
  keeps running to completion on the worker, its result discarded. Its
  runtime is bounded by the engine's own max_tokens clamp.
- initialize(), reinitialize() and release() are serialized by one lifecycle
  lock, and their native calls go through the same worker, so resources are
  never freed under a running generation or a load in progress.

Invariants:
- handle is live  <=>  state == READY
- generation failures never change state
- no automatic retry of a failed load; only reinitialize() re-enters it
"""

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Optional

from .base import InferenceEngine
from .canned import CannedResponder
from .handle import ModelHandle, is_live
from .types import (
    Availability,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    SessionState,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 20.0


def format_chat_prompt(prompt: str, system_preamble: Optional[str] = None) -> str:
    """Wrap prompt in the system/user/assistant chat template when a preamble is given."""
    if not system_preamble:
        return prompt
    return (
        f"<|system|>\n{system_preamble.strip()}\n<|end|>\n"
        f"<|user|>\n{prompt.strip()}\n<|end|>\n"
        f"<|assistant|>"
    )


class InferenceSessionManager:
    """
    Process-wide inference session, constructed once and passed to consumers.

    Usage:
        session = InferenceSessionManager(LlamaCppEngine(), "./models/model.gguf")
        session.initialize()
        text = session.generate("Hello", max_tokens=50, timeout_s=15)
        session.close()
    """

    def __init__(
        self,
        engine: InferenceEngine,
        model_path: str,
        canned: Optional[CannedResponder] = None,
        default_timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._engine = engine
        self.model_path = model_path
        self._canned = canned or CannedResponder()
        self.default_timeout_s = default_timeout_s

        self._state = SessionState.UNINITIALIZED
        self._handle: Optional[ModelHandle] = None
        self._error_message: Optional[str] = None

        self._state_lock = threading.RLock()
        self._lifecycle_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self._closed = False

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def _set_state(self, state: SessionState, error: Optional[str] = None) -> None:
        with self._state_lock:
            previous = self._state
            self._state = state
            self._error_message = error
        if error:
            logger.error(f"Session state {previous.value} -> {state.value}: {error}")
        else:
            logger.info(f"Session state {previous.value} -> {state.value}")

    # ── Availability ──────────────────────────────────────────────────────

    def check_availability(self) -> Availability:
        """Existence/size check of the model artifact. Never loads it."""
        try:
            present = os.path.isfile(self.model_path) and os.path.getsize(self.model_path) > 0
        except OSError:
            present = False
        logger.debug(f"Model availability: {present}, path: {self.model_path}")
        return Availability.PRESENT if present else Availability.ABSENT

    def model_size_mb(self) -> float:
        try:
            return os.path.getsize(self.model_path) / (1024 * 1024)
        except OSError:
            return 0.0

    # ── Worker ────────────────────────────────────────────────────────────

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if self._closed:
            raise RuntimeError("inference session is closed")
        return self._executor.submit(fn, *args)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    #
    # initialize(), reinitialize() and release() all hold _lifecycle_lock, so
    # a lifecycle step in CHECKING/LOADING finishes before another one starts.

    def initialize(self) -> bool:
        """
        Uninitialized -> Checking -> (NotFound | Loading -> Ready | Error).

        Returns True when the session ends up READY. A missing artifact is an
        expected branch: NOT_FOUND, no load attempted.
        """
        with self._lifecycle_lock:
            return self._initialize_locked()

    def _initialize_locked(self) -> bool:
        with self._state_lock:
            if self._state is SessionState.READY:
                logger.debug("Model already initialized")
                return True
            if self._state is not SessionState.UNINITIALIZED:
                logger.warning(f"initialize() ignored in state {self._state.value}; use reinitialize()")
                return False
            self._set_state(SessionState.CHECKING)

        if self.check_availability() is Availability.ABSENT:
            self._set_state(SessionState.NOT_FOUND, f"Model file not found: {self.model_path}")
            return False

        self._set_state(SessionState.LOADING)
        start = time.perf_counter()
        try:
            handle = self._submit(self._engine.load, self.model_path).result()
        except Exception as e:
            self._set_state(SessionState.ERROR, f"Model initialization failed: {e}")
            return False

        if not is_live(handle):
            self._set_state(SessionState.ERROR, f"Engine could not load model: {self.model_path}")
            return False

        with self._state_lock:
            self._handle = handle
            self._set_state(SessionState.READY)
        logger.info(f"Model ready in {time.perf_counter() - start:.2f}s ({self.model_size_mb():.1f} MB)")
        return True

    def reinitialize(self) -> bool:
        """Release current resources, reset to Uninitialized, run initialize() again."""
        with self._lifecycle_lock:
            logger.info("Reinitializing inference session")
            self._release_locked()
            self._set_state(SessionState.UNINITIALIZED)
            return self._initialize_locked()

    def release(self) -> None:
        """
        Free the model through the engine. Safe to call any number of times.

        Waits for an initialize() in progress, and for generations already
        queued on the worker, before the handle is freed.
        """
        with self._lifecycle_lock:
            self._release_locked()

    def _release_locked(self) -> None:
        with self._state_lock:
            handle, self._handle = self._handle, None
            if self._state is SessionState.READY:
                self._set_state(SessionState.UNINITIALIZED)

        if handle is None:
            return

        try:
            self._submit(self._engine.release, handle).result()
        except Exception as e:
            # Worker gone (closed session): free on the calling thread instead
            logger.warning(f"Releasing model outside the worker: {e}")
            try:
                self._engine.release(handle)
            except Exception as release_error:
                logger.error(f"Error releasing model: {release_error}")

    def close(self) -> None:
        """Teardown: release the model and stop accepting work."""
        self.release()
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
        # A detached generation may still be running; let it finish on its own
        self._executor.shutdown(wait=False)
        logger.info("Inference session closed")

    def __enter__(self) -> "InferenceSessionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Generation ────────────────────────────────────────────────────────

    def _generate_on_worker(self, prompt: str, max_tokens: int) -> str:
        # Read the handle at execution time: a release queued ahead of this
        # call leaves it None and the engine reports failure.
        with self._state_lock:
            handle = self._handle
        return self._engine.generate(handle, prompt, max_tokens)

    def run(self, request: GenerationRequest) -> GenerationResult:
        """Run one GenerationRequest under its timeout. Never raises."""
        if not self.is_ready:
            logger.warning(f"generate() called while session is {self._state.value}")
            return GenerationResult(status=GenerationStatus.NOT_READY, error=f"session {self._state.value}")

        prompt = format_chat_prompt(request.prompt_text, request.system_preamble)
        timeout_s = request.timeout_s if request.timeout_s is not None else self.default_timeout_s
        start = time.perf_counter()

        try:
            future = self._submit(self._generate_on_worker, prompt, request.max_tokens)
        except Exception as e:
            return GenerationResult(status=GenerationStatus.FAILURE, error=str(e))

        try:
            text = future.result(timeout=timeout_s)
        except FuturesTimeoutError:
            elapsed = time.perf_counter() - start
            if not future.cancel():
                future.add_done_callback(_discard_result)
            logger.warning(f"Generation timed out after {elapsed:.1f}s (limit {timeout_s}s); result will be discarded")
            return GenerationResult(status=GenerationStatus.TIMED_OUT, error="timeout", elapsed_s=elapsed)
        except Exception as e:
            logger.warning(f"Generation failed: {e}")
            return GenerationResult(
                status=GenerationStatus.FAILURE,
                error=str(e),
                elapsed_s=time.perf_counter() - start,
            )

        elapsed = time.perf_counter() - start
        if elapsed > 10:
            logger.warning(f"Generation took {elapsed:.1f}s")

        if not text:
            return GenerationResult(status=GenerationStatus.FAILURE, error="engine returned no text", elapsed_s=elapsed)

        return GenerationResult(status=GenerationStatus.SUCCESS, text=text, elapsed_s=elapsed)

    def generate(
        self,
        prompt: str,
        max_tokens: int,
        timeout_s: Optional[float] = None,
        system_preamble: Optional[str] = None,
    ) -> Optional[str]:
        """
        Generate text or None.

        None means not ready, failed, or timed out. After a timeout the
        outcome is unknown, not cleanly cancelled.
        """
        result = self.run(
            GenerationRequest(
                prompt_text=prompt,
                max_tokens=max_tokens,
                system_preamble=system_preamble,
                timeout_s=timeout_s,
            )
        )
        return result.text if result.ok else None

    def respond(
        self,
        prompt: str,
        max_tokens: int,
        fallback_message: str,
        timeout_s: Optional[float] = None,
        system_preamble: Optional[str] = None,
    ) -> str:
        """Model reply, or the canned reply for fallback_message when the model gives none."""
        text = self.generate(prompt, max_tokens, timeout_s=timeout_s, system_preamble=system_preamble)
        if text and text.strip():
            return text.strip()
        return self._canned.respond(fallback_message)


def _discard_result(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug(f"Detached generation finished with error: {error}")
    else:
        logger.debug("Detached generation finished; result discarded")


def create_default_session() -> InferenceSessionManager:
    """Return the configured session based on INFERENCE_BACKEND env var."""
    from config import Config
    from .types import EngineConfig

    engine_config = EngineConfig.from_config()
    if Config.INFERENCE_BACKEND == "stub":
        from .stub import StubInferenceEngine

        engine: InferenceEngine = StubInferenceEngine(config=engine_config)
    else:
        from .llama_cpp_engine import LlamaCppEngine

        engine = LlamaCppEngine(config=engine_config)

    return InferenceSessionManager(
        engine=engine,
        model_path=Config.MODEL_PATH,
        default_timeout_s=Config.ANSWER_TIMEOUT_S,
    )
