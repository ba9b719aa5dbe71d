"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from inference import InferenceSessionManager, StubInferenceEngine  # noqa: E402


@pytest.fixture
def model_file(tmp_path):
    """A small file with a GGUF header standing in for a model artifact."""
    path = tmp_path / "model.gguf"
    path.write_bytes(b"GGUF" + b"\x00" * 1024)
    return path


@pytest.fixture
def missing_model_file(tmp_path):
    return tmp_path / "missing.gguf"


@pytest.fixture
def stub_engine():
    return StubInferenceEngine()


@pytest.fixture
def ready_session(stub_engine, model_file):
    """Initialized session over the stub engine; closed after the test."""
    session = InferenceSessionManager(stub_engine, str(model_file))
    assert session.initialize()
    yield session
    session.close()
