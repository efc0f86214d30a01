from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket

from parley_agents.rooms import (
    AlreadyRunning,
    ChatTurnGenerator,
    InvalidRoom,
    NotRunning,
    OrchestratorSettings,
    PersistenceError,
    PersonaCatalog,
    RoomBroadcaster,
    RoomCatalog,
    RoomError,
    RoomRegistry,
    StoreSessionRecorder,
    TurnGenerator,
)
from parley_core.llm import ChatCompletionsClient
from parley_core.session_store import SessionStore
from parley_core.settings import ParleySettings

from .simulation import SimulationAPI
from .ws import RoomSocketHandlers

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=_LOG_FORMAT)


def create_app(
    settings: Optional[ParleySettings] = None,
    *,
    generator: Optional[TurnGenerator] = None,
    personas: Optional[PersonaCatalog] = None,
) -> FastAPI:
    settings = settings or ParleySettings.from_env()
    configure_logging(settings.log_level)
    started_monotonic = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = SessionStore(settings.db_path)
        recorder = StoreSessionRecorder(store)
        broadcaster = RoomBroadcaster()
        registry = RoomRegistry(
            RoomCatalog.from_settings(settings),
            generator=generator or _default_generator(settings),
            recorder=recorder,
            broadcaster=broadcaster,
            personas=personas,
            settings=OrchestratorSettings.from_settings(settings),
        )
        app.state.registry = registry
        app.state.broadcaster = broadcaster
        app.state.api = SimulationAPI(registry, recorder)
        logger.info("Parley API ready (db=%s)", settings.db_path)
        try:
            yield
        finally:
            await registry.shutdown()
            logger.info("Parley API shut down")

    app = FastAPI(title="Parley API", version="0.1.0", lifespan=lifespan)

    def api(request: Request) -> SimulationAPI:
        return request.app.state.api

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": int(time.monotonic() - started_monotonic),
        }

    @app.post("/api/simulation/start/{room_id}", status_code=201)
    async def start_room(room_id: str, request: Request) -> Dict[str, Any]:
        try:
            return {"success": True, "data": await api(request).start(room_id)}
        except RoomError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/simulation/stop/{room_id}")
    def stop_room(room_id: str, request: Request) -> Dict[str, Any]:
        try:
            return {"success": True, "data": api(request).stop(room_id)}
        except RoomError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/simulation/start-all")
    async def start_all(request: Request) -> Dict[str, Any]:
        return {"success": True, "data": await api(request).start_all()}

    @app.post("/api/simulation/stop-all")
    def stop_all(request: Request) -> Dict[str, Any]:
        return {"success": True, "data": api(request).stop_all()}

    # Runs on the event loop: the ack gate resolves asyncio futures and timers.
    @app.post("/api/simulation/ack/{room_id}")
    async def acknowledge(room_id: str, request: Request, sequence: Optional[int] = None) -> Dict[str, Any]:
        try:
            return {"success": True, "data": api(request).acknowledge(room_id, sequence=sequence)}
        except RoomError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/simulation/status")
    def status(request: Request) -> Dict[str, Any]:
        return {"success": True, "data": api(request).status()}

    @app.get("/api/transcripts/{room_id}")
    async def sessions_for_room(room_id: str, request: Request, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        try:
            data = await api(request).sessions_for_room(room_id, page=page, limit=limit)
        except RoomError as exc:
            raise _http_error(exc) from exc
        return {"success": True, "data": data}

    @app.get("/api/transcripts/{session_id}/messages")
    async def messages_for_session(session_id: str, request: Request) -> Dict[str, Any]:
        try:
            data = await api(request).messages_for_session(session_id)
        except RoomError as exc:
            raise _http_error(exc) from exc
        if data is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return {"success": True, "data": data}

    @app.websocket("/ws")
    async def room_socket(websocket: WebSocket) -> None:
        handlers = RoomSocketHandlers(
            websocket,
            websocket.app.state.registry,
            websocket.app.state.broadcaster,
        )
        await handlers.serve()

    return app


def _default_generator(settings: ParleySettings) -> TurnGenerator:
    client: Optional[ChatCompletionsClient] = None
    if settings.api_key:
        client = ChatCompletionsClient(
            api_key=settings.api_key,
            base_url=settings.api_url,
            default_model=settings.model,
            default_max_output_tokens=settings.max_tokens,
        )
    else:
        logger.warning("No chat-completions API key configured; turns will fail until one is set")
    return ChatTurnGenerator(
        client,
        model=settings.model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
    )


def _http_error(exc: RoomError) -> HTTPException:
    if isinstance(exc, InvalidRoom):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (AlreadyRunning, NotRunning)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure: %s", exc)
        return HTTPException(status_code=500, detail="Failed to record session")
    return HTTPException(status_code=500, detail=str(exc))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=5000)
