"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from groupvault.config import settings
from groupvault.database import Base, engine
from groupvault.logging_config import setup_logging

# Import routers
from groupvault.routers import groups, join_requests, messages

# Import all models so Base.metadata knows about them
import groupvault.models  # noqa: F401

setup_logging()

app = FastAPI(
    title="groupvault",
    description="Group messaging backend — per-group keys wrapped under a master key, "
                "open/private membership with bans, cooldowns and join requests",
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

# Register routers
app.include_router(groups.router, prefix="/api/groups", tags=["Groups"])
app.include_router(join_requests.router, prefix="/api/groups", tags=["JoinRequests"])
app.include_router(messages.router, prefix="/api/groups", tags=["Messages"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
