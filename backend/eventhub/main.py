"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from eventhub.config import settings
from eventhub.database import Base, engine
from eventhub.exception_handlers import register_exception_handlers
from eventhub.logging_config import setup_logging

# Import routers
from eventhub.routers import users, events, rsvp

# Import all models so Base.metadata knows about them
from eventhub.models.user import User               # noqa: F401
from eventhub.models.event import Event             # noqa: F401
from eventhub.models.attendee import EventAttendee  # noqa: F401

setup_logging()

app = FastAPI(
    title="EventHub",
    description="Event listings with capacity-limited RSVPs",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(rsvp.router, prefix="/api/rsvp", tags=["RSVP"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
