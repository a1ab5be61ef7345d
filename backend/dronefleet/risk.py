# dronefleet/risk.py
# ------------------------------------------------------------
# Rule-based flight risk model.
#
# evaluate_risk() is pure: it looks at battery, link quality,
# weather classification, vehicle status and altitude, and
# returns a weighted score plus the factors that fired, in
# rule order, so the score can be explained.
#
# RiskChangeNotifier remembers the last level per vehicle and
# logs an audit event only when the risk gets worse.
# ------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from .events import EventBus
from .models import (
    EventLevel,
    RiskFactor,
    RiskLevel,
    RiskSummary,
    Telemetry,
    Vehicle,
    WeatherInfo,
    WeatherRiskLevel,
)

log = logging.getLogger("dronefleet.risk")

# score -> level thresholds
SCORE_MEDIUM = 30
SCORE_HIGH = 70

_RANK = {"low": 0, "medium": 1, "high": 2}

WeatherInput = Union[WeatherInfo, str, None]


def _weather_level(weather: WeatherInput) -> Optional[WeatherRiskLevel]:
    if weather is None:
        return None
    if isinstance(weather, WeatherInfo):
        return weather.risk_level
    return weather


def score_to_level(score: int) -> RiskLevel:
    if score >= SCORE_HIGH:
        return "high"
    if score >= SCORE_MEDIUM:
        return "medium"
    return "low"


def _fmt(v: float) -> str:
    return f"{v:.0f}"


def evaluate_risk(
    vehicle: Vehicle,
    telemetry: Optional[Telemetry] = None,
    weather: WeatherInput = None,
) -> RiskSummary:
    """
    Missing telemetry or weather simply means those rules do not fire.
    """
    battery = telemetry.battery if telemetry is not None else vehicle.battery
    signal = telemetry.signal if telemetry is not None else 100.0
    altitude = telemetry.altitude if telemetry is not None else 0.0
    weather_risk = _weather_level(weather)

    factors: List[RiskFactor] = []
    code = vehicle.code

    # --- Battery ---
    if battery <= 15:
        factors.append(RiskFactor(
            id="battery_critical",
            label="Critically low battery",
            level="high",
            weight=40,
            description=f"Battery of drone {code} dropped to {_fmt(battery)}%.",
        ))
    elif battery <= 30:
        factors.append(RiskFactor(
            id="battery_low",
            label="Low battery",
            level="medium",
            weight=25,
            description=f"Battery of drone {code} is below the safety threshold ({_fmt(battery)}%).",
        ))

    # --- Link quality ---
    if signal <= 30:
        factors.append(RiskFactor(
            id="signal_critical",
            label="Critical signal",
            level="high",
            weight=35,
            description=f"Link quality with drone {code} is critically low ({_fmt(signal)}%).",
        ))
    elif signal <= 60:
        factors.append(RiskFactor(
            id="signal_unstable",
            label="Unstable link",
            level="medium",
            weight=20,
            description=f"Link quality with drone {code} is unstable ({_fmt(signal)}%).",
        ))

    # --- Weather ---
    if weather_risk == "no_fly":
        factors.append(RiskFactor(
            id="weather_no_fly",
            label="No-fly weather",
            level="high",
            weight=45,
            description="Weather service classifies conditions over the station cluster as no-fly.",
        ))
    elif weather_risk == "warning":
        factors.append(RiskFactor(
            id="weather_warning",
            label="Difficult conditions",
            level="medium",
            weight=25,
            description="Weather service reports difficult conditions (strong wind, precipitation or low visibility).",
        ))

    # --- Vehicle status ---
    if vehicle.status == "error":
        factors.append(RiskFactor(
            id="status_error",
            label="Status: error",
            level="high",
            weight=50,
            description=f"Drone {code} is in error state.",
        ))

    if vehicle.status == "returning" and battery <= 25:
        factors.append(RiskFactor(
            id="status_returning_low_battery",
            label="Returning with low battery",
            level="medium",
            weight=20,
            description=f"Drone {code} is returning to station with low battery ({_fmt(battery)}%).",
        ))

    # --- Altitude ---
    if altitude > 120:
        factors.append(RiskFactor(
            id="high_altitude",
            label="High altitude",
            level="medium",
            weight=10,
            description=f"Altitude of drone {code} is above the usual corridor ({_fmt(altitude)} m).",
        ))

    score = max(0, min(100, sum(f.weight for f in factors)))
    level = score_to_level(score)

    # weather overrides the computed level, never lowers it
    if weather_risk == "no_fly":
        level = "high"
    elif weather_risk == "warning" and level == "low":
        level = "medium"

    return RiskSummary(
        vehicle_id=vehicle.id,
        vehicle_code=vehicle.code,
        station_id=vehicle.station_id,
        level=level,
        score=score,
        weather_risk=weather_risk,
        factors=factors,
    )


def risk_to_event_level(level: RiskLevel) -> EventLevel:
    if level == "high":
        return "error"
    if level == "medium":
        return "warning"
    return "info"


def is_escalation(previous: RiskLevel, current: RiskLevel) -> bool:
    return _RANK[current] > _RANK[previous]


class RiskChangeNotifier:
    """
    Remembers the last risk level per vehicle for the process lifetime
    and publishes one event per escalation.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self._last: Dict[str, RiskLevel] = {}

    def last_level(self, vehicle_id: str) -> Optional[RiskLevel]:
        return self._last.get(vehicle_id)

    def observe(self, summary: RiskSummary) -> bool:
        """
        Record a fresh evaluation. Returns True when an event was published.
        """
        previous = self._last.get(summary.vehicle_id)
        self._last[summary.vehicle_id] = summary.level

        # first evaluation only sets the baseline
        if previous is None:
            return False
        if not is_escalation(previous, summary.level):
            return False

        critical = next((f for f in summary.factors if f.level == "high"), None)
        if critical is None and summary.factors:
            critical = summary.factors[0]

        if summary.level == "high":
            title = f"High predicted risk for drone {summary.vehicle_code}."
        else:
            title = f"Predicted risk for drone {summary.vehicle_code} rose to medium."
        if critical is not None:
            title = f"{title} {critical.label}."

        log.info("risk escalation %s: %s -> %s", summary.vehicle_id, previous, summary.level)
        self.bus.publish(title, level=risk_to_event_level(summary.level), source="monitoring")
        return True

    def evaluate(
        self,
        vehicle: Vehicle,
        telemetry: Optional[Telemetry] = None,
        weather: WeatherInput = None,
    ) -> RiskSummary:
        summary = evaluate_risk(vehicle, telemetry, weather)
        self.observe(summary)
        return summary
