import threading
import time
from typing import Callable, Dict, List, Optional, Union

from .base import InferenceEngine, clamp_max_tokens
from .handle import ModelHandle, is_live
from .types import EngineConfig

Responder = Union[str, Dict[str, str], Callable[[str], str]]


class StubInferenceEngine(InferenceEngine):
    """
    Deterministic fake engine for testing and CI.

    This engine is fast, deterministic, and never touches native code.
    Tokens are whitespace-separated words, so clamping behaves like the
    real engine on a predictable scale.

    Knobs:
    - responses: fixed string, {substring: reply} table, or callable(prompt)
    - latency_s: artificial delay per generate() (for timeout tests)
    - fail_load / fail_generate / raise_on_generate: failure modes
    """

    DEFAULT_RESPONSE = "This is a stubbed response."

    def __init__(
        self,
        responses: Optional[Responder] = None,
        config: Optional[EngineConfig] = None,
        latency_s: float = 0.0,
        fail_load: bool = False,
        fail_generate: bool = False,
        raise_on_generate: bool = False,
    ):
        self.config = config or EngineConfig()
        self.responses = responses
        self.latency_s = latency_s
        self.fail_load = fail_load
        self.fail_generate = fail_generate
        self.raise_on_generate = raise_on_generate

        self.load_calls = 0
        self.generate_calls = 0
        self.release_calls = 0
        self.prompts: List[str] = []
        self.budgets: List[int] = []
        self._lock = threading.Lock()
        self._in_flight = 0
        self.max_concurrency = 0

    def load(self, model_path: str) -> Optional[ModelHandle]:
        self.load_calls += 1
        if self.fail_load:
            return None
        return ModelHandle(model=object(), context=object(), sampler=object(), path=model_path)

    def generate(self, handle: Optional[ModelHandle], prompt: str, max_tokens: int) -> str:
        with self._lock:
            self.generate_calls += 1
            self._in_flight += 1
            self.max_concurrency = max(self.max_concurrency, self._in_flight)
            self.prompts.append(prompt)
        try:
            if self.latency_s:
                time.sleep(self.latency_s)
            if self.raise_on_generate:
                raise RuntimeError("stub engine failure")
            if not is_live(handle) or self.fail_generate:
                return ""

            n_prompt = len(prompt.split())
            budget = clamp_max_tokens(n_prompt, max_tokens, self.config.n_ctx, self.config.context_margin)
            self.budgets.append(budget)
            if budget <= 0:
                return ""

            words = self._respond(prompt).split(" ")
            return " ".join(words[:budget])
        finally:
            with self._lock:
                self._in_flight -= 1

    def release(self, handle: Optional[ModelHandle]) -> None:
        if handle is None or not handle.invalidate():
            return
        self.release_calls += 1
        handle.sampler = None
        handle.context = None
        handle.model = None

    def _respond(self, prompt: str) -> str:
        if self.responses is None:
            return self.DEFAULT_RESPONSE
        if isinstance(self.responses, str):
            return self.responses
        if callable(self.responses):
            return self.responses(prompt)

        for needle, reply in self.responses.items():
            if needle in prompt:
                return reply
        return self.DEFAULT_RESPONSE
