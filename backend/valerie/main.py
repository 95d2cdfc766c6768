# backend/valerie/main.py
from datetime import datetime

import uvicorn
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

import valerie.models  # noqa: F401  (registers tables on Base.metadata)
from valerie.api import recordings
from valerie.config import ConfigValidationError, get_config_status, settings, validate_config
from valerie.database import Base, engine, get_db
from valerie.dependencies import close_recording_pipeline
from valerie.utils.logger import logger

app = FastAPI(title="Valerie Audio", version="1.0.0")


@app.on_event("startup")
async def startup_event():
    logger.info("Valerie Audio Starting...")

    # Validate configuration (don't raise in dev mode)
    try:
        result = validate_config(raise_on_error=settings.ENVIRONMENT == "production")
        for warning in result.get("warnings", []):
            logger.warning(f"Config warning: {warning}")
        for error in result.get("errors", []):
            logger.error(f"Config error: {error}")
    except ConfigValidationError as e:
        logger.critical(f"FATAL: {e}")
        raise SystemExit(1)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    logger.info(f"Recording webhook available at /record (port {settings.PORT})")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Valerie Audio Shutting Down...")
    try:
        await close_recording_pipeline()
    except Exception as e:
        logger.error(f"Error closing pipeline clients: {e}")
    logger.info("Valerie Audio Shutdown Complete")


app.include_router(recordings.router)


@app.get("/")
async def root():
    return {"message": "Hello from Valerie-audio!", "status": "running", "version": "1.0.0"}


@app.get("/health")
async def health(db: Session = Depends(get_db)):
    """Database connectivity plus configuration presence."""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "checks": {},
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"error: {str(e)[:100]}"
        health_status["status"] = "degraded"

    config_status = get_config_status()
    health_status["checks"]["config"] = config_status

    if not config_status.get("database_configured"):
        health_status["status"] = "unhealthy"
    elif not all(
        config_status.get(key)
        for key in ("twilio_configured", "openai_configured", "storage_configured")
    ):
        health_status["status"] = "degraded"

    return health_status


@app.get("/health/simple")
async def health_simple():
    """Simple health check for load balancers."""
    return {"status": "ok"}


def run() -> None:
    uvicorn.run("valerie.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
