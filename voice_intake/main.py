"""
FastAPI server for the voice intake relay.

This module initializes and configures the FastAPI application that serves:
- `/ws`: the relay WebSocket audio clients connect to; every connection gets its
  own session with an exclusively owned upstream streaming engine
- The directory and record HTTP API used to maintain the organization directory
  and to review collected records
- `/health` and `/` for monitoring
"""

from pathlib import Path
from typing import Callable, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voice_intake.bot.engines import StreamingEngine
from voice_intake.config.logging_config import configure_logging
from voice_intake.config.settings import Settings, get_settings, load_environment
from voice_intake.models.records import (
    DirectoryEntry,
    DirectoryEntryCreate,
    DirectoryEntryData,
    RecordData,
    RecordStatusUpdate,
    StructuredRecord,
)
from voice_intake.services.directory_store import DirectoryStore, RecordStore
from voice_intake.websocket_manager import WebSocketManager

APP_NAME = "Voice Intake Relay"
APP_DESCRIPTION = "Realtime voice relay that collects sick notes through a streaming AI engine"
APP_VERSION = "1.0.0"

# Load environment variables from .env files if they exist
load_environment(Path("."))

# Configure logging
logger = configure_logging()

router = APIRouter()


def _directory(request: Request) -> DirectoryStore:
    return request.app.state.directory


def _records(request: Request) -> RecordStore:
    return request.app.state.records


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Relay WebSocket for audio clients.

    The client sends `start`, then streams `audio` (and optionally `text` and
    `toolResponse`) until it sends `stop` or disconnects. The relay answers with
    `open`, engine audio, transcriptions, tool calls, interruptions, collected
    records and finally `close`.
    """
    await websocket.app.state.websocket_manager.handle_websocket(websocket)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    settings: Settings = request.app.state.settings
    return {
        "status": "healthy",
        "ok": True,
        "engine": settings.engine,
        "engine_api_key_configured": bool(settings.engine_api_key),
        "active_connections": request.app.state.websocket_manager.active_sessions,
    }


@router.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": APP_NAME,
        "description": APP_DESCRIPTION,
        "version": APP_VERSION,
        "endpoints": {
            "/ws": "Relay WebSocket for audio clients",
            "/directory": "Organization directory",
            "/records": "Collected records",
            "/health": "Health check endpoint",
        },
    }


@router.get("/directory", response_model=List[DirectoryEntry])
async def list_directory(request: Request):
    return await _directory(request).list_entries()


@router.get("/directory/summary")
async def directory_summary(request: Request):
    """Number of records overall and per organization id."""
    entries = await _directory(request).list_entries()
    counts = await _records(request).count_by_organization()
    return {"total": sum(counts.values()), "counts": counts, "entries": len(entries)}


@router.post("/directory", response_model=DirectoryEntry, status_code=201)
async def create_directory_entry(payload: DirectoryEntryCreate, request: Request):
    return await _directory(request).create(payload)


@router.put("/directory/{entry_id}", response_model=DirectoryEntry)
async def update_directory_entry(entry_id: str, payload: DirectoryEntryData, request: Request):
    entry = await _directory(request).update(entry_id, payload)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Directory entry {entry_id} not found")
    return entry


@router.delete("/directory/{entry_id}")
async def delete_directory_entry(entry_id: str, request: Request):
    if not await _directory(request).delete(entry_id):
        raise HTTPException(status_code=404, detail=f"Directory entry {entry_id} not found")
    return {"ok": True}


@router.get("/records", response_model=List[StructuredRecord])
async def list_records(request: Request, organizationId: Optional[str] = None):
    return await _records(request).list_records(organizationId)


@router.post("/records", response_model=StructuredRecord, status_code=201)
async def create_record(payload: RecordData, request: Request):
    """Store a record for an existing directory entry."""
    if await _directory(request).get(payload.organizationId) is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown organizationId {payload.organizationId}",
        )
    return await _records(request).create(payload)


@router.patch("/records/{record_id}", response_model=StructuredRecord)
async def update_record_status(record_id: str, payload: RecordStatusUpdate, request: Request):
    record = await _records(request).update_status(record_id, payload.status)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record {record_id} not found")
    return record


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report missing or invalid request fields as 400."""
    errors = [{"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
              for error in exc.errors()]
    logger.info(f"Rejected {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"error": "Missing fields", "detail": errors})


def create_app(settings: Optional[Settings] = None,
               engine_factory: Optional[Callable[[], StreamingEngine]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime settings; read from the environment when omitted
        engine_factory: Overrides upstream engine creation, mainly for tests
    """
    settings = settings or get_settings()
    application = FastAPI(title=APP_NAME, description=APP_DESCRIPTION, version=APP_VERSION)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(RequestValidationError, validation_exception_handler)

    directory = DirectoryStore.in_dir(settings.data_dir)
    records = RecordStore.in_dir(settings.data_dir)
    application.state.settings = settings
    application.state.directory = directory
    application.state.records = records
    application.state.websocket_manager = WebSocketManager(
        settings, directory, records, engine_factory=engine_factory
    )
    application.include_router(router)
    return application


# Create FastAPI application
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        ws_ping_interval=5,  # More frequent pings to keep connections alive
        ws_max_size=16777216,  # 16MB - large enough for audio chunks
        ws_ping_timeout=20,  # Timeout for pings to detect dead connections
        http="h11",
    )
