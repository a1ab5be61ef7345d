# dronefleet/routes/weather.py
# ------------------------------------------------------------
# Weather API
#
# GET returns the last polled classification (null when the
# weather service is unavailable). POST /simulation forces a
# level for demos, or clears the override with null.
# ------------------------------------------------------------

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ..engine import get_engine
from ..models import WeatherRiskLevel

router = APIRouter(tags=["weather"])


class WeatherSimulationRequest(BaseModel):
    mode: Optional[WeatherRiskLevel] = None


@router.get("/api/weather")
async def current_weather(refresh: bool = Query(False)):
    engine = get_engine()
    info = await engine.refresh_weather() if refresh else engine.current_weather
    return {
        "weather": info.model_dump(mode="json") if info else None,
        "simulation_mode": engine.weather.forced_level,
    }


@router.post("/api/weather/simulation")
async def set_simulation(body: WeatherSimulationRequest):
    engine = get_engine()
    info = await engine.set_weather_simulation(body.mode)
    return {
        "ok": True,
        "simulation_mode": body.mode,
        "weather": info.model_dump(mode="json") if info else None,
    }
