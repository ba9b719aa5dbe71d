"""
Model boundary layer for on-device inference.

This package owns the local model: loading, the per-request decode loop,
timeouts, and teardown. Consumers depend on InferenceSessionManager only.

Supported engines:
- StubInferenceEngine: Deterministic fake engine (default for CI/tests)
- LlamaCppEngine: llama.cpp via llama-cpp-python (CPU only)

Example usage:
    from inference import InferenceSessionManager, StubInferenceEngine

    session = InferenceSessionManager(StubInferenceEngine(), "./models/model.gguf")
    session.initialize()
    text = session.generate("Hello, world!", max_tokens=30, timeout_s=15)
"""

from .types import (
    Availability,
    EngineConfig,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    SessionState,
)
from .handle import ModelHandle
from .base import InferenceEngine, clamp_max_tokens
from .stub import StubInferenceEngine
from .llama_cpp_engine import LlamaCppEngine
from .canned import CannedResponder
from .session import InferenceSessionManager, create_default_session, format_chat_prompt

__all__ = [
    "Availability",
    "EngineConfig",
    "GenerationRequest",
    "GenerationResult",
    "GenerationStatus",
    "SessionState",
    "ModelHandle",
    "InferenceEngine",
    "clamp_max_tokens",
    "StubInferenceEngine",
    "LlamaCppEngine",
    "CannedResponder",
    "InferenceSessionManager",
    "create_default_session",
    "format_chat_prompt",
]
