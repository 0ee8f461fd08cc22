"""
Autoflow HTTP API.

A FastAPI server exposing plan generation and execution.

Usage:
    autoflow web                  # Start server on localhost:8000
    autoflow web -p 3000          # Custom port
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from autoflow.actions import DEFAULT_REGISTRY
from autoflow.runtime import MAX_REQUEST_LENGTH, RuntimeConfig, get_runtime_config
from autoflow.samples import SAMPLE_WORKFLOWS, WORKFLOW_TEMPLATES
from autoflow.storage import NotFoundError, SQLiteStore
from autoflow.workflow import (
    GenerationError,
    PlanCache,
    PlanGenerator,
    StepExecutionError,
    StructuralError,
    ValidationError,
    WorkflowExecutor,
    get_llm_client,
    run_task,
)
from autoflow.workflow.llm import ReasoningBackend

logger = structlog.get_logger()


# =============================================================================
# Request Models
# =============================================================================


class GenerateOptions(BaseModel):
    """Plan generation options."""

    use_cache: bool = True
    cache_ttl: int | None = Field(default=None, gt=0)


class GenerateRequest(BaseModel):
    """Generate a plan for a request."""

    prompt: str
    options: GenerateOptions = Field(default_factory=GenerateOptions)


class RunRequest(BaseModel):
    """Plan and execute a request, or execute a supplied plan."""

    prompt: str
    workflow: dict[str, Any] | None = None
    options: GenerateOptions = Field(default_factory=GenerateOptions)


def _options(options: GenerateOptions, config: RuntimeConfig) -> dict[str, Any]:
    return {
        "use_cache": options.use_cache and config.cache_enabled,
        "cache_ttl": options.cache_ttl or config.cache_ttl,
    }


# =============================================================================
# FastAPI App
# =============================================================================


def create_app(
    config: RuntimeConfig | None = None,
    *,
    backend: ReasoningBackend | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Runtime configuration (default: from environment)
        backend: Reasoning backend override (default: chosen from config)
    """
    config = config or get_runtime_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the services on startup and close the store on shutdown."""
        store = SQLiteStore(config.db_path)
        cache = PlanCache(store, default_ttl=config.cache_ttl) if config.cache_enabled else None
        app.state.config = config
        app.state.store = store
        app.state.generator = PlanGenerator(
            backend or get_llm_client(config),
            cache=cache,
            model=config.model,
        )
        app.state.executor = WorkflowExecutor(store, step_timeout=config.step_timeout)
        logger.info("server_started", db_path=config.db_path, model=app.state.generator.model)
        yield
        store.close()

    app = FastAPI(
        title="Autoflow",
        description="Natural language requests in, executed workflows out",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # API Routes
    # =========================================================================

    @app.get("/api/workflow/test")
    async def test_endpoint(request: Request):
        """Health check."""
        return {
            "success": True,
            "message": "Workflow API is working!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "generator": request.app.state.generator.status(),
        }

    @app.post("/api/workflow/generate")
    async def generate(body: GenerateRequest, request: Request):
        """Generate a plan without executing it."""
        state = request.app.state
        try:
            plan = await state.generator.generate(body.prompt, _options(body.options, state.config))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except GenerationError as e:
            raise HTTPException(status_code=502, detail=str(e))

        return {"success": True, "source": plan.source, **plan.to_dict()}

    @app.post("/api/workflow/run")
    async def run(body: RunRequest, request: Request):
        """
        Plan and execute a request.

        When ``workflow`` is supplied it is executed as given and the
        generator is not consulted. A failing step still answers 200 with
        ``success: false`` and the partial results.
        """
        state = request.app.state
        if not body.prompt.strip():
            raise HTTPException(status_code=400, detail="Prompt is required and must be a non-empty string")
        if len(body.prompt) > MAX_REQUEST_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Prompt is too long. Maximum {MAX_REQUEST_LENGTH} characters allowed.",
            )

        try:
            if body.workflow is not None:
                result = await state.executor.execute_workflow(body.workflow, body.prompt)
            else:
                result = await run_task(
                    body.prompt,
                    generator=state.generator,
                    executor=state.executor,
                    options=_options(body.options, state.config),
                )
        except (ValidationError, StructuralError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        except GenerationError as e:
            raise HTTPException(status_code=502, detail=str(e))
        except StepExecutionError as e:
            if e.execution is None:
                raise HTTPException(status_code=500, detail=str(e))
            return {**e.execution.to_dict(), "error": str(e)}

        return result.to_dict()

    @app.get("/api/workflow/status/{execution_id}")
    async def status(execution_id: str, request: Request):
        """Read back a recorded execution."""
        try:
            execution = await request.app.state.executor.get_execution_status(execution_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"success": True, **execution}

    @app.get("/api/workflow/history")
    async def history(request: Request, limit: int = 10):
        """Most recent executions first."""
        if limit < 1:
            raise HTTPException(status_code=400, detail="limit must be positive")
        executions = await request.app.state.executor.get_execution_history(limit=limit)
        return {"success": True, "executions": executions}

    @app.get("/api/workflow/actions")
    async def actions():
        """The action vocabulary."""
        return {"success": True, "actions": DEFAULT_REGISTRY.describe()}

    @app.get("/api/workflow/samples")
    async def samples():
        """Sample workflows and templates."""
        return {
            "success": True,
            "samples": [s.to_dict() for s in SAMPLE_WORKFLOWS.values()],
            "templates": WORKFLOW_TEMPLATES,
        }

    return app


def run_server(config: RuntimeConfig | None = None, host: str = "127.0.0.1", port: int = 8000):
    """
    Run the Autoflow API server.

    Args:
        config: Runtime configuration (default: from environment)
        host: Host to bind to
        port: Port to bind to
    """
    import uvicorn

    app = create_app(config)

    print(f"Autoflow server running at http://{host}:{port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(app, host=host, port=port, log_level="warning")
