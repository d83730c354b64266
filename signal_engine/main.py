import signal
import asyncio
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# IMPORT ROUTERS
from signal_engine.routers.health import router as health_router
from signal_engine.routers.sessions import router as sessions_router
from signal_engine.routers.sessions import ws_router as sessions_ws_router
from signal_engine.routers.sessions import validation_exception_handler
from signal_engine.routers.scoring import router as scoring_router
load_dotenv()

from signal_engine.config import settings
from signal_engine.core.dependencies import get_analysis_service
from signal_engine.core.logging import configure_logging
from signal_engine.shutdown import clear_shutdown, set_shutdown

logger = logging.getLogger(__name__)


# SWAGGER UI: tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Sessions"},
    {"name": "Scoring"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# REGISTER EXCEPTION HANDLERS
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# REGISTER ROUTERS (order matches _OPENAPI_TAGS / Swagger UI display order)
app.include_router(health_router)           # Health
app.include_router(sessions_router)         # Sessions (REST)
app.include_router(sessions_ws_router)      # Sessions (WebSocket)
app.include_router(scoring_router)          # Scoring


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    configure_logging(settings)
    clear_shutdown()
    logger.info(f"Starting {settings.APP_NAME} ({settings.APP_ENV})...")

    # Register signal handlers for graceful shutdown (Ctrl+C / kill)
    loop = asyncio.get_running_loop()

    def _signal_handler(sig):
        logger.warning(f"Received {sig.name}, refusing new fragments")
        set_shutdown()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler, sig)
    except (NotImplementedError, RuntimeError):
        # Not supported on Windows or outside the main thread
        logger.warning("Signal handlers not supported here; relying on shutdown event")


# SHUTDOWN EVENT
@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}...")
    set_shutdown()  # Ensure flag is set even if signal handler didn't fire
    await get_analysis_service().close()


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "signal_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
