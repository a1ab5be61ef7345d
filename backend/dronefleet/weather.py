# dronefleet/weather.py
# ------------------------------------------------------------
# Weather gateway.
#
# - current conditions from Open-Meteo (no API key)
# - "flyability" classification: ok / warning / no_fly
# - admin simulation override (forces the level)
# - audit events when the classified level changes
#
# The HTTP call is blocking (requests) and runs in a worker
# thread so the event loop keeps ticking.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, Optional

import requests

from .errors import WeatherUnavailableError
from .events import EventBus
from .models import WeatherInfo, WeatherRiskLevel, utcnow

log = logging.getLogger("dronefleet.weather")

CURRENT_FIELDS = [
    "temperature_2m",
    "wind_speed_10m",
    "wind_gusts_10m",
    "visibility",
    "precipitation",
    "weather_code",
]

Fetcher = Callable[[], Dict[str, Any]]


# -------------------------------
# Classification
# -------------------------------
def describe_weather_code(code: Optional[int]) -> str:
    """
    Short description for an Open-Meteo WMO weather code.
    """
    if code is None:
        return "No data"
    if code == 0:
        return "Clear"
    if code in (1, 2, 3):
        return "Cloudy"
    if code in (45, 48):
        return "Fog / haze"
    if code in (51, 53, 55):
        return "Drizzle"
    if code in (56, 57):
        return "Freezing drizzle"
    if code in (61, 63, 65):
        return "Rain"
    if code in (66, 67):
        return "Freezing rain"
    if code in (71, 73, 75, 77):
        return "Snow"
    if code in (80, 81, 82):
        return "Rain showers"
    if code in (85, 86):
        return "Snow showers"
    if code in (95, 96, 99):
        return "Thunderstorm"
    return "Difficult conditions"


def classify_conditions(
    wind_ms: float,
    gust_ms: Optional[float] = None,
    visibility_km: Optional[float] = None,
    precipitation_mm: Optional[float] = None,
) -> WeatherRiskLevel:
    gust = gust_ms or 0.0

    no_fly = (
        wind_ms > 15
        or gust > 20
        or (visibility_km is not None and visibility_km < 1)
        or (precipitation_mm is not None and precipitation_mm > 1)
    )
    if no_fly:
        return "no_fly"

    warning = (
        wind_ms > 10
        or gust > 15
        or (visibility_km is not None and visibility_km < 2)
        or (precipitation_mm is not None and precipitation_mm > 0.2)
    )
    if warning:
        return "warning"

    return "ok"


def parse_current(payload: Dict[str, Any]) -> WeatherInfo:
    """
    Build a WeatherInfo from an Open-Meteo forecast response ("current" block).
    """
    if not isinstance(payload, dict):
        raise WeatherUnavailableError(f"unexpected response type {type(payload).__name__}")

    current = payload.get("current")
    if not isinstance(current, dict):
        raise WeatherUnavailableError("response has no 'current' block")

    try:
        wind = float(current["wind_speed_10m"])
    except (KeyError, TypeError, ValueError) as exc:
        raise WeatherUnavailableError(f"bad wind speed: {exc}") from exc

    gust = current.get("wind_gusts_10m")
    visibility = current.get("visibility")        # metres
    precipitation = current.get("precipitation")  # mm

    visibility_km = round(visibility / 1000, 1) if isinstance(visibility, (int, float)) else None
    precipitation_mm = round(precipitation, 1) if isinstance(precipitation, (int, float)) else None
    gust_ms = float(gust) if isinstance(gust, (int, float)) else None

    updated_at = utcnow()
    raw_time = current.get("time")
    if raw_time:
        try:
            updated_at = datetime.fromisoformat(str(raw_time))
            if updated_at.tzinfo is None:
                updated_at = updated_at.replace(tzinfo=timezone.utc)
        except ValueError:
            pass

    temp = current.get("temperature_2m")
    return WeatherInfo(
        temp_c=float(temp) if isinstance(temp, (int, float)) else None,
        wind_speed_ms=wind,
        wind_gust_ms=gust_ms,
        visibility_km=visibility_km,
        precipitation_mm=precipitation_mm,
        description=describe_weather_code(current.get("weather_code")),
        risk_level=classify_conditions(wind, gust_ms, visibility_km, precipitation_mm),
        updated_at=updated_at,
    )


# -------------------------------
# Gateway
# -------------------------------
class WeatherGateway:
    def __init__(
        self,
        bus: EventBus,
        url: str = "https://api.open-meteo.com/v1/forecast",
        lat: float = 55.03,
        lon: float = 82.92,
        timeout_sec: float = 5.0,
        enabled: bool = True,
        fetcher: Optional[Fetcher] = None,
    ):
        self.bus = bus
        self.url = url
        self.lat = lat
        self.lon = lon
        self.timeout_sec = timeout_sec
        self.enabled = enabled
        self._fetcher = fetcher or self._http_fetch

        self.forced_level: Optional[WeatherRiskLevel] = None
        self.latest: Optional[WeatherInfo] = None
        self._last_level: Optional[WeatherRiskLevel] = None

    def _http_fetch(self) -> Dict[str, Any]:
        params = {
            "latitude": self.lat,
            "longitude": self.lon,
            "current": ",".join(CURRENT_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "auto",
        }
        r = requests.get(self.url, params=params, timeout=self.timeout_sec)
        r.raise_for_status()
        return r.json()

    # -------------------------------
    # Simulation override
    # -------------------------------
    def set_simulation_mode(self, mode: Optional[WeatherRiskLevel]) -> None:
        """
        Force the classified level ("ok" / "warning" / "no_fly"), or None
        to go back to real conditions.
        """
        self.forced_level = mode

        if mode == "no_fly":
            self.bus.publish("Administrator enabled no-fly weather simulation.", level="warning", source="admin")
        elif mode is None:
            self.bus.publish("Administrator disabled weather simulation (using real data).", level="info", source="admin")
        else:
            self.bus.publish(f"Administrator set simulated weather risk level: {mode}.", level="info", source="admin")

        if self.latest is not None:
            if mode is not None:
                self.latest = self.latest.model_copy(update={"risk_level": mode, "simulated": True})
            else:
                self.latest = None

    # -------------------------------
    # Classification
    # -------------------------------
    async def classify(self) -> WeatherInfo:
        """
        Fetch and classify current conditions. Raises WeatherUnavailableError;
        with a simulation override a failed fetch still yields a reading.
        """
        info: Optional[WeatherInfo] = None
        error: Optional[Exception] = None

        if self.enabled:
            try:
                payload = await asyncio.to_thread(self._fetcher)
                info = parse_current(payload)
            except (requests.RequestException, OSError, ValueError, WeatherUnavailableError) as exc:
                error = exc
        else:
            error = WeatherUnavailableError("weather gateway disabled")

        if info is None:
            if self.forced_level is None:
                raise WeatherUnavailableError(str(error)) from error
            info = WeatherInfo(description="Simulated conditions", risk_level=self.forced_level, simulated=True)
        elif self.forced_level is not None:
            info = info.model_copy(update={"risk_level": self.forced_level, "simulated": True})

        self._log_level_change(info.risk_level, info.description)
        return info

    async def refresh(self) -> Optional[WeatherInfo]:
        """
        classify() with failures absorbed: on error the cached reading is
        dropped so weather rules stop firing.
        """
        try:
            self.latest = await self.classify()
        except WeatherUnavailableError as exc:
            log.warning("weather unavailable: %s", exc)
            self.latest = None
        except Exception:
            log.exception("weather refresh failed")
            self.latest = None
        return self.latest

    def _log_level_change(self, level: WeatherRiskLevel, description: str) -> None:
        previous = self._last_level
        if level == previous:
            return

        if level == "warning":
            self.bus.publish(f"Weather conditions are difficult: {description}", level="warning", source="system")
        elif level == "no_fly":
            self.bus.publish(f"No-fly weather over the station cluster: {description}", level="warning", source="system")
        elif previous in ("warning", "no_fly"):
            self.bus.publish("Weather conditions back to normal (flyable).", level="info", source="system")

        self._last_level = level
