"""FastAPI HTTP server exposing the tracker to a host UI.

Session control, status and timeline queries, a frame upload route for
browser-side screen sharing, and a server-sent event stream carrying
``sample_captured``, ``state_changed`` and ``error`` notifications.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from worktracker.capture.base import CaptureUnavailableError
from worktracker.capture.stream import StreamCapture
from worktracker.domain.errors import (
    AlreadyRunningError,
    ConflictError,
    InvalidStateError,
    WorktrackerError,
)
from worktracker.domain.models import (
    ActivityShare,
    Session,
    TimelineBucket,
    TrackerStatus,
)
from worktracker.events import encode_event
from worktracker.service import TrackerService
from worktracker.storage.base import StorageError

logger = logging.getLogger(__name__)


class FrameUpload(BaseModel):
    image_base64: str = Field(description="Base64 image, optionally as a data: URL")


class EndpointStatus(BaseModel):
    status: str = "ok"
    source: str = ""
    capturing: bool = False


_ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (ConflictError, 409),
    (InvalidStateError, 409),
    (AlreadyRunningError, 409),
    (CaptureUnavailableError, 503),
    (StorageError, 502),
]


def _status_for(error: Exception) -> int:
    for error_type, status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 400


def create_app(service: TrackerService) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        recovered = await service.open()
        if recovered is not None:
            logger.info("Recovered session %s (%s)", recovered.id, recovered.status.value)
        logger.info("Endpoint started")
        yield
        await service.close()
        logger.info("Endpoint stopped")

    app = FastAPI(
        title="worktracker Endpoint",
        description="Local HTTP control endpoint for the worktracker capture engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(WorktrackerError)
    async def tracker_error(request: Request, exc: WorktrackerError) -> JSONResponse:
        status = _status_for(exc)
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
        return JSONResponse(
            status_code=status,
            content={"success": False, "error": str(exc), "kind": type(exc).__name__},
        )

    @app.get("/health")
    async def health_check() -> EndpointStatus:
        return EndpointStatus(
            source=service.source.name,
            capturing=service.scheduler is not None and service.scheduler.is_running,
        )

    @app.get("/status")
    async def get_status() -> TrackerStatus:
        return service.get_status()

    @app.post("/session/start", status_code=201)
    async def start_session() -> Session:
        return await service.start_session()

    @app.post("/session/pause")
    async def pause_session() -> Session:
        return await service.pause_session()

    @app.post("/session/resume")
    async def resume_session() -> Session:
        return await service.resume_session()

    @app.post("/session/end")
    async def end_session() -> Session:
        return await service.end_session()

    @app.get("/sessions")
    async def list_sessions(limit: int = 10) -> list[Session]:
        return await service.list_sessions(limit=limit)

    async def _require_session(session_id: str) -> None:
        if await service.storage.get_session(session_id) is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    @app.get("/sessions/{session_id}/timeline")
    async def get_timeline(session_id: str) -> list[TimelineBucket]:
        await _require_session(session_id)
        return await service.timeline(session_id)

    @app.get("/sessions/{session_id}/breakdown")
    async def get_breakdown(session_id: str) -> list[ActivityShare]:
        await _require_session(session_id)
        return await service.breakdown(session_id)

    def _stream_source() -> StreamCapture:
        source = service.source
        if not isinstance(source, StreamCapture):
            raise HTTPException(status_code=409, detail="Tracker is not using stream capture")
        return source

    @app.post("/frames", status_code=202)
    async def push_frame(upload: FrameUpload) -> dict[str, str]:
        source = _stream_source()
        try:
            source.push_base64(upload.image_base64)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"status": "accepted"}

    @app.post("/frames/end")
    async def end_stream() -> dict[str, str]:
        _stream_source().end()
        return {"status": "ended"}

    @app.get("/events")
    async def event_stream() -> StreamingResponse:
        async def generate() -> AsyncIterator[str]:
            async for event in service.events.stream():
                yield f"event: {event.event_type}\ndata: {encode_event(event)}\n\n"

        return StreamingResponse(generate(), media_type="text/event-stream")

    return app


def serve(service: TrackerService, host: str = "127.0.0.1", port: int = 8765) -> None:
    """Run the endpoint with uvicorn until interrupted."""
    uvicorn.run(create_app(service), host=host, port=port)
