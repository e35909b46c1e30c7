"""Receipt Reminders - due-date notification engine API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from receipt_reminders.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    from receipt_reminders.database import Base, engine

    # Import all models so they're registered with Base
    from receipt_reminders import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Schedules and dispatches receipt due-date reminders",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from receipt_reminders.api import notifications, preferences  # noqa: E402

app.include_router(notifications.router, prefix="/api")
app.include_router(preferences.router, prefix="/api")
