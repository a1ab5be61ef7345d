# dronefleet/main.py
# ------------------------------------------------------------
# FastAPI entrypoint for the drone fleet backend.
#
# Responsibilities:
# - App initialization & middleware
# - Route registration
# - Logging setup
# - Starting / stopping the simulation timers
# ------------------------------------------------------------

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .engine import get_engine
from .routes import admin, drones, events, flights, health, risk, stations, stream, telemetry, weather

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("dronefleet")


# ------------------------------------------------------------
# FastAPI application instance
# ------------------------------------------------------------
app = FastAPI(
    title="Drone Fleet API",
    version="0.1.0",
    description="Simulated drone fleet with telemetry, flight ledger and risk scoring",
)


# ------------------------------------------------------------
# CORS configuration
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("unhandled exception on %s %s", request.method, request.url)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": str(exc), "path": str(request.url)},
    )


# ------------------------------------------------------------
# API routes
# ------------------------------------------------------------
app.include_router(drones.router)
app.include_router(stations.router)
app.include_router(telemetry.router)
app.include_router(flights.router)
app.include_router(events.router)
app.include_router(risk.router)
app.include_router(weather.router)
app.include_router(stream.router)
app.include_router(health.router)
app.include_router(admin.router)


# ------------------------------------------------------------
# Application lifecycle hooks
# ------------------------------------------------------------
@app.on_event("startup")
async def startup():
    """
    Build the engine and, if enabled, start the tick and weather loops.
    """
    engine = get_engine()

    if not settings.simulation_enabled:
        # static demo mode: commands still work, nothing moves
        log.info("simulation disabled, timers not started")
        return

    engine.start()


@app.on_event("shutdown")
async def shutdown():
    await get_engine().stop()
