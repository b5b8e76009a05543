"""Imaging Conformance service: FastAPI entry point.

Validates trial imaging measurements against the selected trial criteria
type and publishes grouped nonconformities over HTTP and WebSocket.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imaging_conformance import __version__
from imaging_conformance.api.routes import conformance, measurements, websocket
from imaging_conformance.conformance.service import get_conformance_service
from imaging_conformance.config.settings import get_settings
from imaging_conformance.config.logging_config import setup_logging, get_logger

setup_logging(log_level=get_settings().log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load evaluation definitions and start automatic re-validation."""
    logger.info("Starting Imaging Conformance service")

    settings = get_settings()
    service = get_conformance_service()
    loaded = service.load_definitions(settings.definitions_dir)
    logger.info(
        "Evaluation definitions ready",
        loaded_from_disk=loaded,
        definitions=service.registry.keys(),
    )

    unsubscribe = websocket.get_conformance_notifier().attach(service.criteria)
    service.start()

    yield

    service.stop()
    unsubscribe()
    logger.info("Shutting down Imaging Conformance service")


app = FastAPI(
    title="Imaging Conformance",
    description="Conformance checking of clinical-trial imaging measurements",
    version=__version__,
    lifespan=lifespan,
)

settings = get_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Requested-With"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())[:8]
    logger.error("Unhandled exception", error_id=error_id, error=str(exc), path=request.url.path, exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "error_id": error_id})


# Routes
app.include_router(conformance.router, prefix="/api/v1")
app.include_router(measurements.router, prefix="/api/v1")
app.include_router(websocket.router)


@app.get("/health")
async def health_check():
    service = get_conformance_service()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "platform": "imaging-conformance",
        "environment": settings.app_env,
        "components": {
            "registry": bool(service.registry.keys()),
            "measurements_ready": bool(service.measurements_ready.get()),
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("imaging_conformance.main:app", host="0.0.0.0", port=8001, reload=True)
