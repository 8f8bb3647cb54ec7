"""FastAPI application entrypoint for hashseal service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from .. import __version__
from ..config import HashSealConfig
from ..models import RunReport
from ..orchestrator import Orchestrator

T = TypeVar("T")


class RunRequest(BaseModel):
    root: Optional[str] = None
    key_id: Optional[str] = None


class StageModel(BaseModel):
    stage: str
    ok: bool
    detail: str
    error: Optional[str] = None


class RepositoryModel(BaseModel):
    repository: str
    ok: bool
    stages: List[StageModel]


class RunResponse(BaseModel):
    operation: str
    root: Optional[str] = None
    ok: bool
    discovery_error: Optional[str] = None
    repositories: List[RepositoryModel]
    log: List[str]


class ScanResponse(BaseModel):
    root: str
    repositories: List[str]
    error: Optional[str] = None


class LogResponse(BaseModel):
    total: int
    lines: List[str]


class HealthResponse(BaseModel):
    status: str


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create the FastAPI application exposing hashseal operations.

    One orchestrator, and therefore one operation log, lives as long as the
    application.
    """
    session = orchestrator or Orchestrator()
    app = FastAPI(title="hashseal", version=__version__)
    app.state.orchestrator = session

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/repositories", response_model=ScanResponse)
    async def repositories(root: Optional[str] = None) -> ScanResponse:
        scan = await _in_thread(lambda: session.scanner.scan(root or session.config.root))
        return ScanResponse(
            root=str(scan.root),
            repositories=[str(repository.path) for repository in scan.repositories],
            error=str(scan.error) if scan.error is not None else None,
        )

    @app.post("/publish", response_model=RunResponse)
    async def publish(payload: RunRequest) -> RunResponse:
        report = await _in_thread(
            lambda: session.publish_all(payload.root, key_id=payload.key_id)
        )
        return _run_response(report)

    @app.post("/verify", response_model=RunResponse)
    async def verify(payload: RunRequest) -> RunResponse:
        report = await _in_thread(
            lambda: session.verify_all(payload.root, key_id=payload.key_id)
        )
        return _run_response(report)

    @app.get("/log", response_model=LogResponse)
    async def read_log(since: int = 0) -> LogResponse:
        lines = session.log.tail(max(since, 0))
        return LogResponse(total=len(session.log), lines=list(lines))

    return app


async def _in_thread(call: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, call)


def _run_response(report: RunReport) -> RunResponse:
    payload: Dict[str, Any] = report.to_dict()
    payload["log"] = list(report.log)
    return RunResponse(**payload)


def run_service(
    config: HashSealConfig | None = None, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    app = create_app(Orchestrator(config))
    uvicorn.run(app, host=host, port=port)
