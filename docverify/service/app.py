"""FastAPI application entrypoint for docverify service mode."""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import ConfigError, VerifyConfig, apply_environment, apply_overrides, load_config
from ..orchestrator import Orchestrator, VerificationPlan
from ..report import JsonReportRenderer
from ..sources import SourceDiscoveryError
from ..toolchain import ToolchainLaunchError


class VerifyRequest(BaseModel):
    paths: List[str] = Field(min_length=1)
    config: Optional[str] = None
    target_tag: Optional[str] = None
    tag_aliases: List[str] = Field(default_factory=list)
    toolchain: Optional[List[str]] = None
    timeout_ms: Optional[int] = None
    concurrency: Optional[int] = None
    timings: bool = True


class VerifyResponse(BaseModel):
    exit_code: int
    report: Dict[str, Any]


class PlannedSnippetModel(BaseModel):
    source: str
    ordinal: int
    line: int
    language: str
    headings: List[str]
    expectation: str
    runnable: bool


class PlanResponse(BaseModel):
    snippets: List[PlannedSnippetModel]
    warnings: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator(config: VerifyConfig) -> Orchestrator:
    return Orchestrator(config)


def _build_config(payload: VerifyRequest) -> VerifyConfig:
    config_path = Path(payload.config) if payload.config else Path.cwd()
    if payload.config and not config_path.exists():
        raise ConfigError(f"Configuration file not found: {payload.config}")
    config = apply_environment(load_config(config_path))
    config = apply_overrides(
        config,
        target_tag=payload.target_tag,
        tag_aliases=payload.tag_aliases,
        toolchain=payload.toolchain,
        timeout_ms=payload.timeout_ms,
        concurrency=payload.concurrency,
        report_format="json",
        timings=payload.timings,
    )
    # The service answers with the report; it never writes report files.
    config.report.output = None
    config.require_target_tag()
    return config


def _plan_response(plan: VerificationPlan) -> PlanResponse:
    return PlanResponse(
        snippets=[
            PlannedSnippetModel(
                source=item.snippet.source,
                ordinal=item.snippet.ordinal,
                line=item.snippet.line,
                language=item.snippet.language,
                headings=list(item.snippet.heading_path),
                expectation=item.expectation.describe(),
                runnable=item.runnable,
            )
            for item in plan.snippets
        ],
        warnings=plan.warnings,
    )


def create_app(
    orchestrator_factory: Callable[[VerifyConfig], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing docverify operations."""

    app = FastAPI(title="docverify", version="0.1.0")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/verify", response_model=VerifyResponse)
    async def verify(payload: VerifyRequest) -> VerifyResponse:
        config = _build_config(payload)
        renderer = JsonReportRenderer(timings=config.report.timings)
        orchestrator = orchestrator_factory(config)

        def _run() -> VerifyResponse:
            outcome = orchestrator.run(payload.paths, stream=io.StringIO())
            return VerifyResponse(exit_code=outcome.exit_code, report=renderer.to_payload(outcome.report))

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _run)

    @app.post("/plan", response_model=PlanResponse)
    async def plan(payload: VerifyRequest) -> PlanResponse:
        config = _build_config(payload)
        orchestrator = orchestrator_factory(config)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, orchestrator.plan, payload.paths)
        return _plan_response(result)

    @app.exception_handler(SourceDiscoveryError)
    async def discovery_error_handler(_: Any, exc: SourceDiscoveryError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ToolchainLaunchError)
    async def toolchain_error_handler(_: Any, exc: ToolchainLaunchError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)
