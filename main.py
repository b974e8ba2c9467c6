# main.py - Screen share signaling server

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import os
from dotenv import load_dotenv
import logging
import uvicorn

# Import route modules
from routes.room_management import router as room_router
from routes.network_info import router as network_router
from config.server_config import ServerSettings, get_allowed_origins, validate_environment
from connection_manager import ConnectionManager
from room_registry import RoomRegistry
from signaling import SignalingRouter, signaling_endpoint

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle app startup and shutdown"""
    # Startup
    logger.info("Starting up screen share signaling server")
    try:
        validate_environment()
        logger.info("Environment validation passed")
    except Exception as e:
        logger.error(f"Environment validation failed: {e}")
        raise

    settings = ServerSettings()
    registry = RoomRegistry()
    app.state.settings = settings
    app.state.registry = registry
    app.state.signaling_router = SignalingRouter(
        registry,
        ConnectionManager(),
        local_network_policy=settings.local_network_policy,
        allow_room_overwrite=settings.allow_room_overwrite,
    )
    logger.info(
        f"Local network join policy: {'on' if settings.local_network_policy else 'off'}, "
        f"room overwrite: {'on' if settings.allow_room_overwrite else 'off'}"
    )

    yield

    # Shutdown
    logger.info("Shutting down screen share signaling server")
    registry.clear()

def _is_production() -> bool:
    return os.getenv("APP_ENVIRONMENT") == "production"

app = FastAPI(
    title="Screen Share Signaling Server",
    description="WebRTC signaling relay for one-host, many-viewer screen sharing",
    version="1.0.0",
    lifespan=lifespan,
    # PRODUCTION: Disable docs in production
    docs_url=None if _is_production() else "/docs",
    redoc_url=None if _is_production() else "/redoc",
)

ALLOWED_ORIGINS = get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(room_router, prefix="/api", tags=["Rooms"])
app.include_router(network_router, prefix="/api", tags=["Network"])
app.add_api_websocket_route("/ws", signaling_endpoint)

@app.get("/")
async def root():
    return {
        "message": "Screen Share Signaling Server",
        "status": "running",
        "version": "1.0.0",
        "environment": app.state.settings.environment,
        "endpoints": {
            "signaling": "/ws",
            "client_ip": "/api/get-ip",
            "ice_servers": "/api/ice-servers",
            "list_rooms": "/api/rooms",
            "room_info": "/api/room/{room_id}",
            "health": "/health"
        }
    }

@app.get("/health")
async def health_check():
    settings = app.state.settings
    return {
        "status": "healthy",
        "rooms": len(app.state.registry),
        "turn_configured": bool(settings.turn_url),
        "environment": settings.environment,
    }

@app.exception_handler(500)
async def internal_server_error_handler(request, exc):
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred"
        }
    )

@app.exception_handler(404)
async def not_found_handler(request, exc):
    # Route handlers raise 404 with their own detail; unknown paths get the default
    detail = getattr(exc, "detail", None)
    if isinstance(exc, StarletteHTTPException) and detail and detail != "Not Found":
        return JSONResponse(
            status_code=404,
            content={"error": "Not found", "message": detail}
        )
    return JSONResponse(
        status_code=404,
        content={
            "error": "Endpoint not found",
            "message": "The requested endpoint does not exist",
            "available_endpoints": [
                "/ws",
                "/api/get-ip",
                "/api/ice-servers",
                "/api/rooms",
                "/api/room/{room_id}",
                "/health"
            ]
        }
    )

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=False,  # Always False in production
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=True,
    )
