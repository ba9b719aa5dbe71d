"""
Health checks for deployment readiness.

Provides:
- /health/live: Liveness probe (process is running)
- /health/ready: Readiness probe (orchestrator is serving)

A missing or failed model does NOT make the service unready: the assistant
keeps serving with rules and canned replies, so it reports "degraded".
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import Config
from inference import SessionState


@dataclass
class HealthStatus:
    """Health status response."""

    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: str
    agent_ready: bool
    uptime_seconds: float
    backend: str  # "llama_cpp", "stub"
    model_state: str
    message: str
    metadata: Dict[str, Any]


class HealthChecker:
    """
    Health checker over the orchestrator and its inference session.

    Invariant: health checks never touch the model; they read session state only.
    """

    def __init__(self, start_time: Optional[float] = None, orchestrator=None):
        self.start_time = start_time if start_time is not None else time.time()
        self.orchestrator = orchestrator

    def _model_state(self) -> SessionState:
        if self.orchestrator is None:
            return SessionState.UNINITIALIZED
        return self.orchestrator.model_state

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def check_live(self) -> HealthStatus:
        """Always healthy if this endpoint responds."""
        return HealthStatus(
            status="healthy",
            timestamp=self._now(),
            agent_ready=self.orchestrator is not None,
            uptime_seconds=time.time() - self.start_time,
            backend=Config.INFERENCE_BACKEND,
            model_state=self._model_state().value,
            message="Agent process is running",
            metadata={"environment": Config.ENVIRONMENT},
        )

    def check_ready(self) -> HealthStatus:
        """
        healthy   -> orchestrator up, model READY
        degraded  -> orchestrator up, model absent/failed/loading (rule mode)
        unhealthy -> no orchestrator
        """
        state = self._model_state()
        if self.orchestrator is None:
            status, message = "unhealthy", "Orchestrator not initialized"
        elif state is SessionState.READY:
            status, message = "healthy", "Model ready"
        else:
            status, message = "degraded", f"Model {state.value}; serving with rule-based fallbacks"

        metadata: Dict[str, Any] = {"environment": Config.ENVIRONMENT}
        if self.orchestrator is not None:
            metadata["model"] = self.orchestrator.model_status()

        return HealthStatus(
            status=status,
            timestamp=self._now(),
            agent_ready=self.orchestrator is not None,
            uptime_seconds=time.time() - self.start_time,
            backend=Config.INFERENCE_BACKEND,
            model_state=state.value,
            message=message,
            metadata=metadata,
        )

    def to_dict(self, status: HealthStatus) -> Dict[str, Any]:
        """Convert HealthStatus to dict for JSON serialization."""
        return {
            "status": status.status,
            "timestamp": status.timestamp,
            "agent_ready": status.agent_ready,
            "uptime_seconds": status.uptime_seconds,
            "backend": status.backend,
            "model_state": status.model_state,
            "message": status.message,
            "metadata": status.metadata,
        }
