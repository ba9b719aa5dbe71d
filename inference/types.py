from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """
    Lifecycle of the single inference session.

    Uninitialized -> Checking -> Loading -> Ready | Error | NotFound.
    Only reinitialize() moves Ready/Error/NotFound back to Uninitialized.
    """

    UNINITIALIZED = "uninitialized"
    CHECKING = "checking"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    NOT_FOUND = "not_found"


class Availability(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class GenerationStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"        # engine returned nothing or raised
    TIMED_OUT = "timed_out"    # outcome unknown, native call may still be running
    NOT_READY = "not_ready"    # session not in READY state


@dataclass(frozen=True)
class GenerationRequest:
    prompt_text: str
    max_tokens: int
    system_preamble: Optional[str] = None
    timeout_s: Optional[float] = 20.0


@dataclass(frozen=True)
class GenerationResult:
    status: GenerationStatus
    text: str = ""
    error: Optional[str] = None
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is GenerationStatus.SUCCESS


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine load configuration. Fixed at load time, never negotiated per call.

    Invariants:
    - CPU only (n_gpu_layers is always 0)
    - memory-mapped loading on, mlock off
    - context_margin < n_ctx
    """

    n_ctx: int = 2048
    n_batch: int = 512
    n_threads: int = 4
    context_margin: int = 10
    temperature: float = 0.8
    top_k: int = 40
    top_p: float = 0.95
    seed: int = 42
    use_mmap: bool = True
    use_mlock: bool = False
    n_gpu_layers: int = 0

    def __post_init__(self):
        if self.n_ctx <= 0:
            raise ValueError("n_ctx must be positive")
        if not 0 <= self.context_margin < self.n_ctx:
            raise ValueError("context_margin must be in [0, n_ctx)")

    @property
    def generation_window(self) -> int:
        """Tokens usable by prompt + generated output."""
        return self.n_ctx - self.context_margin

    @classmethod
    def from_config(cls) -> "EngineConfig":
        from config import Config

        return cls(
            n_ctx=Config.MODEL_N_CTX,
            n_batch=Config.MODEL_N_BATCH,
            n_threads=Config.MODEL_N_THREADS,
            context_margin=Config.MODEL_CONTEXT_MARGIN,
            temperature=Config.MODEL_TEMPERATURE,
            top_k=Config.MODEL_TOP_K,
            top_p=Config.MODEL_TOP_P,
            seed=Config.MODEL_SEED,
        )
