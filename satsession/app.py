"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from satsession import config
from satsession.database import SessionLocal, init_db
from satsession.logging_setup import setup_console_logging
from satsession.routes import results, sessions
from satsession.services.session_manager import SessionManager

setup_console_logging(config.LOG_LEVEL)

app = FastAPI(title="SAT Session API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and the live session registry on startup."""
    init_db()
    app.state.session_manager = SessionManager(SessionLocal)


@app.on_event("shutdown")
def shutdown_events() -> None:
    """Save and stop every live session."""
    manager = getattr(app.state, "session_manager", None)
    if manager is not None:
        manager.shutdown()


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(sessions.router)
app.include_router(results.router)
