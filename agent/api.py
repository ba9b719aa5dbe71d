"""
Agent API.

Serves:
- /health/live, /health/ready: probes
- /model/status, /model/reinitialize: inference session control
- /chat, /chat/history: conversation
- /tasks: tasks created so far

The session is initialized at startup on a worker thread and released at
shutdown.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agent.health import HealthChecker
from agent.orchestrator import ConversationOrchestrator
from agent.store import create_task_store
from config import Config
from inference import create_default_session

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: str


def create_default_orchestrator() -> ConversationOrchestrator:
    """Orchestrator wired from Config: configured engine and task store."""
    return ConversationOrchestrator(
        session=create_default_session(),
        store=create_task_store(Config.SQLITE_DB_PATH),
    )


def create_app(orchestrator: Optional[ConversationOrchestrator] = None) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests); built from Config by default
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        orch = orchestrator or create_default_orchestrator()
        app.state.orchestrator = orch
        app.state.health = HealthChecker(start_time=time.time(), orchestrator=orch)

        logger.info("=" * 60)
        logger.info("LifeQuest assistant starting up...")
        logger.info(f"Environment: {Config.ENVIRONMENT}")
        logger.info(f"Inference Backend: {Config.INFERENCE_BACKEND}")
        logger.info("=" * 60)

        notice = await orch.start()
        logger.info(f"Model state after startup: {orch.model_state.value}")
        logger.debug(f"Startup notice: {notice.text!r}")

        yield

        # Shutdown
        logger.info("LifeQuest assistant shutting down...")
        orch.close()

    app = FastAPI(
        title="LifeQuest Assistant API",
        description="Task-tracking chat assistant backed by a local language model",
        version="1.0.0",
        lifespan=lifespan,
    )

    def _orchestrator(request: Request) -> ConversationOrchestrator:
        return request.app.state.orchestrator

    # Health endpoints
    @app.get("/health/live")
    async def live(request: Request):
        """Liveness probe."""
        checker: HealthChecker = request.app.state.health
        return checker.to_dict(checker.check_live())

    @app.get("/health/ready")
    async def ready(request: Request):
        """Readiness probe."""
        checker: HealthChecker = request.app.state.health
        result = checker.to_dict(checker.check_ready())
        status_code = 503 if result["status"] == "unhealthy" else 200
        return JSONResponse(content=result, status_code=status_code)

    # Model endpoints
    @app.get("/model/status")
    async def model_status(request: Request):
        return _orchestrator(request).model_status()

    @app.post("/model/reinitialize")
    async def model_reinitialize(request: Request):
        orch = _orchestrator(request)
        loop = asyncio.get_running_loop()
        notice = await loop.run_in_executor(None, orch.reinitialize_model)
        return {"status": orch.model_status(), "notice": notice.to_dict()}

    # Chat endpoints
    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request):
        if not body.message.strip():
            raise HTTPException(status_code=400, detail="Missing 'message' field")

        messages = await _orchestrator(request).handle_message(body.message.strip())
        return {
            "messages": [m.to_dict() for m in messages],
            "reply": messages[-1].text if len(messages) > 1 else "",
        }

    @app.get("/chat/history")
    async def chat_history(request: Request):
        return {"messages": [m.to_dict() for m in _orchestrator(request).history()]}

    @app.get("/tasks")
    async def tasks(request: Request):
        return {"tasks": [t.to_dict() for t in _orchestrator(request).list_tasks()]}

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "LifeQuest Assistant API",
            "version": "1.0.0",
            "endpoints": [
                "GET /health/live",
                "GET /health/ready",
                "GET /model/status",
                "POST /model/reinitialize",
                "POST /chat",
                "GET /chat/history",
                "GET /tasks",
            ],
        }

    return app
