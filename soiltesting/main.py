import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import requests, schedules, time_slots, date_availability, misc
from .db.session import Base, engine
from .config import get_settings
from .workers.scheduler import get_scheduler

logger = logging.getLogger(__name__)

app = FastAPI(title="Soil Testing Scheduling API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(requests.router, prefix="/api/v1")
app.include_router(schedules.router, prefix="/api/v1")
app.include_router(time_slots.router, prefix="/api/v1")
app.include_router(date_availability.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    settings = get_settings()
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Background scheduler started")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)
