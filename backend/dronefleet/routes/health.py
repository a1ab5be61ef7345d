# dronefleet/routes/health.py
# ------------------------------------------------------------
# Health & metrics endpoint
#
# Purpose:
# - quick liveness check
# - counts for UI chips
# - simulation timer visibility
# ------------------------------------------------------------

from fastapi import APIRouter
from datetime import datetime, timezone
import time

from ..engine import get_engine

router = APIRouter(tags=["health"])


def _iso(dt):
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/api/health")
def health():
    """
    Health status for the dashboard.

    Returns:
    - ok, utc
    - started_at, uptime_seconds
    - counts
    - simulation (tick counter, timers, subscribers)
    - weather (last level or null)
    - latency_ms (server-measured for this handler)
    """
    t0 = time.perf_counter()
    engine = get_engine()

    vehicles = engine.vehicles()
    counts = {
        "drones": len(vehicles),
        "drones_active": sum(1 for v in vehicles if v.status in ("on_mission", "returning")),
        "stations": len(engine.stations()),
        "flights": len(engine.ledger),
        "flights_active": len(engine.ledger.active_flights()),
        "events": len(engine.bus),
    }

    sim = engine.simulator
    simulation = {
        "tick_running": sim.running,
        "tick_count": sim.tick_count,
        "last_tick_at": _iso(sim.last_tick_at),
        "telemetry_subscribers": sim.subscriber_count,
        "event_subscribers": engine.bus.subscriber_count,
        "weather_polling": engine.weather_polling,
        "scenario_running": engine.scenario.running,
    }

    weather = engine.current_weather
    now = datetime.now(timezone.utc)

    return {
        "ok": True,
        "utc": _iso(now),
        "started_at": _iso(engine.started_at),
        "uptime_seconds": int((now - engine.started_at).total_seconds()),
        "counts": counts,
        "simulation": simulation,
        "weather": weather.risk_level if weather else None,
        "latency_ms": round((time.perf_counter() - t0) * 1000, 2),
    }
