"""
Configuration management for the LifeQuest assistant.

Loads environment variables from .env file and provides typed access to configuration.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)


class Config:
    """Configuration class for the LifeQuest assistant."""

    # Inference backend: "llama_cpp" (native engine) or "stub" (deterministic fake)
    INFERENCE_BACKEND = os.getenv("INFERENCE_BACKEND", "llama_cpp")

    # Model artifact
    MODEL_PATH = os.getenv("MODEL_PATH", "./models/model.gguf")

    # Engine load configuration (fixed for the lifetime of a session)
    MODEL_N_CTX = int(os.getenv("MODEL_N_CTX", "2048"))
    MODEL_N_BATCH = int(os.getenv("MODEL_N_BATCH", "512"))
    MODEL_N_THREADS = int(os.getenv("MODEL_N_THREADS", "4"))
    MODEL_CONTEXT_MARGIN = int(os.getenv("MODEL_CONTEXT_MARGIN", "10"))

    # Sampler chain
    MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", "0.8"))
    MODEL_TOP_K = int(os.getenv("MODEL_TOP_K", "40"))
    MODEL_TOP_P = float(os.getenv("MODEL_TOP_P", "0.95"))
    MODEL_SEED = int(os.getenv("MODEL_SEED", "42"))

    # Per-call timeouts (seconds)
    CONFIRM_TIMEOUT_S = float(os.getenv("CONFIRM_TIMEOUT_S", "15"))
    ANSWER_TIMEOUT_S = float(os.getenv("ANSWER_TIMEOUT_S", "20"))
    NLU_TIMEOUT_S = float(os.getenv("NLU_TIMEOUT_S", "15"))

    # Task store (empty path -> in-memory store)
    SQLITE_DB_PATH = os.getenv("SQLITE_DB_PATH", "")

    # Chat
    MAX_CHAT_HISTORY = int(os.getenv("MAX_CHAT_HISTORY", "100"))

    # Agent API Configuration
    AGENT_PORT = int(os.getenv("AGENT_PORT", "8000"))

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

    @classmethod
    def validate(cls) -> bool:
        """Validate that the configuration is usable."""
        problems = []

        if cls.INFERENCE_BACKEND not in ("llama_cpp", "stub"):
            problems.append(f"unknown INFERENCE_BACKEND '{cls.INFERENCE_BACKEND}'")
        if cls.MODEL_N_CTX <= 0:
            problems.append("MODEL_N_CTX must be positive")
        if cls.MODEL_CONTEXT_MARGIN < 0 or cls.MODEL_CONTEXT_MARGIN >= cls.MODEL_N_CTX:
            problems.append("MODEL_CONTEXT_MARGIN must be in [0, MODEL_N_CTX)")
        if cls.MAX_CHAT_HISTORY <= 0:
            problems.append("MAX_CHAT_HISTORY must be positive")

        if problems:
            print(f"⚠️  Invalid configuration: {'; '.join(problems)}")
            print(f"   Please fix them in .env file")
            return False

        return True


if __name__ == "__main__":
    # Test configuration loading
    print("Configuration loaded:")
    print(f"  Inference Backend: {Config.INFERENCE_BACKEND}")
    print(f"  Model Path: {Config.MODEL_PATH}")
    print(f"  Context Window: {Config.MODEL_N_CTX} (margin {Config.MODEL_CONTEXT_MARGIN})")
    print(f"  Task Store: {Config.SQLITE_DB_PATH or 'in-memory'}")
    print(f"  Agent Port: {Config.AGENT_PORT}")
    print(f"  Environment: {Config.ENVIRONMENT}")
    print(f"\n  Validation: {'✓ PASSED' if Config.validate() else '✗ FAILED'}")
