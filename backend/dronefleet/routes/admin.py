# dronefleet/routes/admin.py
# ------------------------------------------------------------
# Admin controls (demo mode)
#
# - start the scripted demo scenario (one at a time)
# - inspect simulation state
# ------------------------------------------------------------

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..engine import get_engine

router = APIRouter(tags=["admin"])


class ScenarioStartRequest(BaseModel):
    actor: str = "admin"


@router.get("/api/admin/state")
def admin_state():
    engine = get_engine()
    return {
        "scenario_running": engine.scenario.running,
        "weather_simulation": engine.weather.forced_level,
        "tick_interval_sec": engine.simulator.tick_interval_sec,
        "command_latency_sec": engine.registry.command_latency_sec,
    }


@router.post("/api/admin/scenario")
async def start_scenario(body: ScenarioStartRequest):
    engine = get_engine()
    if not engine.scenario.start(actor=body.actor, source="admin"):
        raise HTTPException(status_code=409, detail="Demo scenario is already running.")
    return {"ok": True, "scenario_running": True}
