from abc import ABC, abstractmethod
from typing import Optional

from .handle import ModelHandle
from .types import EngineConfig


def clamp_max_tokens(prompt_tokens: int, max_tokens: int, n_ctx: int, margin: int) -> int:
    """
    Clamp the generation budget so prompt + output fits the context window.

    prompt_tokens + result <= n_ctx - margin always holds.
    Returns 0 when the prompt alone fills the usable window.
    """
    available = n_ctx - margin - prompt_tokens
    if available <= 0:
        return 0
    return max(0, min(max_tokens, available))


class InferenceEngine(ABC):
    """
    Abstract engine binding.

    The native runtime is an opaque single-threaded resource; the session
    manager is the only caller and serializes every call. Session code must
    depend ONLY on this interface.
    """

    config: EngineConfig

    @abstractmethod
    def load(self, model_path: str) -> Optional[ModelHandle]:
        """Open the model and allocate context + sampler. None on any failure."""
        raise NotImplementedError

    @abstractmethod
    def generate(self, handle: Optional[ModelHandle], prompt: str, max_tokens: int) -> str:
        """Run the full decode/sample loop. Empty string on any irrecoverable failure."""
        raise NotImplementedError

    @abstractmethod
    def release(self, handle: Optional[ModelHandle]) -> None:
        """Free sampler, context, model in that order. No-op on a released or None handle."""
        raise NotImplementedError
