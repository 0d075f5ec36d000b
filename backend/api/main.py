"""
Cutover Monitor API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    from cutover.controller import build_controller
    from db.session import AsyncSessionLocal, engine

    app.state.controller = build_controller(settings, AsyncSessionLocal)
    logger.info("Cutover Monitor API starting up", version=settings.app_version)
    yield
    await app.state.controller.locks.aclose()
    await engine.dispose()
    logger.info("Cutover Monitor API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Scheduled v3 -> v4 Logic App cutovers with health monitoring and auto-cutback",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import audit, cutovers, diagnostics
from api.websocket import router as ws_router

app.include_router(cutovers.router)
app.include_router(audit.router)
app.include_router(diagnostics.router)
app.include_router(ws_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
