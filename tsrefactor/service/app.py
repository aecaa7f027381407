"""FastAPI application entrypoint for tsrefactor service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..models import RefactorAnalysis
from ..orchestrator import Orchestrator, QuickScanResult
from ..report import analysis_to_dict


class AnalyzeRequest(BaseModel):
    path: str
    lib_path: Optional[str] = None
    include_types: Optional[bool] = None


class AnalyzeResponse(BaseModel):
    status: str
    analysis: Dict[str, Any]


class QuickScanRequest(BaseModel):
    path: str


class QuickScanResponse(BaseModel):
    functions: List[str]
    types: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing tsrefactor analysis."""

    app = FastAPI(title="tsrefactor Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> AnalyzeResponse:
        def _run_analysis() -> RefactorAnalysis:
            return orchestrator.run_analysis(
                payload.path,
                lib_path=payload.lib_path,
                include_types=payload.include_types,
            )

        loop = asyncio.get_running_loop()
        analysis = await loop.run_in_executor(None, _run_analysis)
        return AnalyzeResponse(status="ok", analysis=analysis_to_dict(analysis))

    @app.post("/quick-scan", response_model=QuickScanResponse)
    async def quick_scan(
        payload: QuickScanRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> QuickScanResponse:
        def _run_quick_scan() -> QuickScanResult:
            return orchestrator.run_quick_scan(payload.path)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, _run_quick_scan)
        return QuickScanResponse(functions=result.functions, types=result.types)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)
