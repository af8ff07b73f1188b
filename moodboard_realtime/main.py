"""FastAPI application entry point."""

import json
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import settings
from .routers import presence_router
from .services.redis_service import redis_service
from .websocket.hub import RealtimeHub, create_hub
from .websocket.relay import RedisRelay

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


async def start_relay(hub: RealtimeHub) -> None:
    """Connect to Redis and relay broadcasts to the other workers."""
    if not settings.redis_url:
        logger.info("Redis not configured, running in single-worker mode")
        return

    logger.info("Connecting to Redis...")
    relay: Optional[RedisRelay] = None
    try:
        await redis_service.connect()
        relay = RedisRelay(redis_service, hub.broadcaster, gateway=hub.gateway)
        await relay.start()
        hub.relay = relay
        logger.info("Redis pub/sub relay started")
    except Exception as e:
        if relay is not None:
            await relay.stop()
        await redis_service.disconnect()
        hub.relay = None
        if settings.redis_required:
            logger.error(f"Redis connection failed and REDIS_REQUIRED=true: {e}")
            raise RuntimeError(
                f"Redis is required for multi-worker deployment but connection failed: {e}"
            ) from e
        logger.warning(f"Redis connection failed, running in single-worker mode: {e}")


async def stop_relay(hub: RealtimeHub) -> None:
    """Stop relaying and close the Redis connection."""
    if hub.relay is not None:
        await hub.relay.stop()
        hub.relay = None
    if redis_service.is_connected:
        await redis_service.disconnect()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    await start_relay(app.state.hub)
    yield
    await stop_relay(app.state.hub)


# Create FastAPI application
app = FastAPI(
    title="Moodboard Realtime",
    description="Room-based presence and live updates for shared mood-board projects",
    version=__version__,
    lifespan=lifespan,
)
app.state.hub = create_hub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler to log errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url}:")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(presence_router)


@app.get("/")
async def root():
    """Root endpoint - liveness check."""
    return {
        "status": "online",
        "service": "Moodboard Realtime",
        "version": __version__,
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    hub: RealtimeHub = request.app.state.hub
    redis_health = await redis_service.health_check()
    return {
        "status": "healthy",
        "redis": redis_health,
        "websocket": {
            "connections": hub.gateway.total_connections,
            "rooms": hub.registry.total_rooms,
            "relay": hub.relay is not None,
        },
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time collaboration.

    Clients send ``{"kind": ..., ...}`` frames (joinProject, setPresence,
    updatePalette, sendMessage, ...) and receive
    ``{"kind", "payload", "timestamp"}`` events for the rooms they joined.
    Nothing is acknowledged; malformed frames are dropped.

    Usage:
        ws://localhost:8000/ws
    """
    hub: RealtimeHub = websocket.app.state.hub

    await websocket.accept()
    session = hub.gateway.connect()
    hub.transport.open(session.session_id, websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

            raw_message = message.get("text")
            if raw_message is None:
                logger.warning(f"Ignoring binary frame from session {session.session_id}")
                continue

            # Validate message size
            size = len(raw_message.encode("utf-8"))
            if size > settings.ws_max_message_size:
                logger.warning(
                    f"Message too large from session {session.session_id}: "
                    f"{size} bytes (max: {settings.ws_max_message_size})"
                )
                continue

            # Parse JSON
            try:
                data = json.loads(raw_message)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON from session {session.session_id}")
                continue

            hub.gateway.handle_message(session.session_id, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnect for session: {session.session_id}")
    except Exception as e:
        logger.error(f"WebSocket exception for session {session.session_id}: {e}")
        logger.debug(traceback.format_exc())
    finally:
        hub.gateway.disconnect(session.session_id)
        await hub.transport.close(session.session_id)
