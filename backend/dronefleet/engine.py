# dronefleet/engine.py
# ------------------------------------------------------------
# Composition root.
#
# Owns one instance of each service (event bus, flight ledger,
# fleet registry, telemetry simulator, weather gateway, risk
# notifier) plus the two independent periodic tasks:
# - telemetry tick
# - weather poll
#
# The HTTP layer only talks to this object.
# ------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
import logging
import random
from typing import Callable, Dict, Iterable, List, Optional

from .config import Settings, settings as default_settings
from .events import EventBus, Subscription
from .flights import FlightLedger
from .models import (
    CommandResult,
    Flight,
    GeoPoint,
    RiskSummary,
    Station,
    SystemEvent,
    Telemetry,
    Vehicle,
    WeatherInfo,
    WeatherRiskLevel,
    utcnow,
)
from .periodic import PeriodicTask
from .registry import FleetRegistry
from .risk import RiskChangeNotifier
from .scenario import DemoScenario
from .seed import default_flights, default_mission_targets, default_stations, default_vehicles
from .telemetry import TelemetrySimulator
from .weather import Fetcher, WeatherGateway

log = logging.getLogger("dronefleet.engine")


class FleetEngine:
    def __init__(
        self,
        vehicles: Iterable[Vehicle],
        stations: Iterable[Station],
        flights: Iterable[Flight] = (),
        mission_targets: Optional[Dict[str, GeoPoint]] = None,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        weather_fetcher: Optional[Fetcher] = None,
    ):
        cfg = config or default_settings
        rng = rng or random.Random()
        self.config = cfg
        self.started_at: datetime = utcnow()

        self.bus = EventBus(capacity=cfg.event_log_capacity)
        self.ledger = FlightLedger(capacity=cfg.flight_ledger_capacity, rng=rng)
        self.ledger.extend(flights)

        self.registry = FleetRegistry(
            vehicles,
            stations,
            ledger=self.ledger,
            bus=self.bus,
            command_latency_sec=cfg.command_latency_sec,
        )
        self.simulator = TelemetrySimulator(
            self.registry,
            mission_targets=mission_targets,
            rng=rng,
            tick_interval_sec=cfg.tick_interval_sec,
        )
        self.weather = WeatherGateway(
            self.bus,
            url=cfg.weather_url,
            lat=cfg.weather_lat,
            lon=cfg.weather_lon,
            timeout_sec=cfg.weather_timeout_sec,
            enabled=cfg.weather_enabled,
            fetcher=weather_fetcher,
        )
        self.notifier = RiskChangeNotifier(self.bus)
        self.scenario = DemoScenario(self.registry, step_scale=cfg.scenario_step_scale)

        self._weather_timer = PeriodicTask("weather-poll", cfg.weather_poll_sec, self.weather.refresh)

    # -------------------------------
    # Lifecycle
    # -------------------------------
    def start(self) -> None:
        """
        Start the tick and weather timers (needs a running event loop).
        """
        self.simulator.start()
        self._weather_timer.start()
        log.info("fleet engine started with %d vehicles", len(self.registry.vehicle_ids()))

    async def stop(self) -> None:
        self.scenario.cancel()
        await self.simulator.aclose()
        await self._weather_timer.wait_stopped()
        log.info("fleet engine stopped")

    @property
    def weather_polling(self) -> bool:
        return self._weather_timer.running

    # -------------------------------
    # Read accessors (copies)
    # -------------------------------
    def vehicles(self) -> List[Vehicle]:
        return self.registry.list_vehicles()

    def vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return self.registry.get_vehicle(vehicle_id)

    def stations(self) -> List[Station]:
        return self.registry.list_stations()

    def station(self, station_id: str) -> Optional[Station]:
        return self.registry.get_station(station_id)

    def telemetry(self) -> List[Telemetry]:
        return self.simulator.snapshot()

    def telemetry_for(self, vehicle_id: str) -> Optional[Telemetry]:
        return self.simulator.get(vehicle_id)

    def flights(self) -> List[Flight]:
        return self.ledger.list_flights()

    def flight(self, flight_id: str) -> Optional[Flight]:
        return self.ledger.get(flight_id)

    def recent_events(self, limit: int = 50) -> List[SystemEvent]:
        return self.bus.recent(limit)

    def mission_target(self, vehicle_id: str) -> Optional[GeoPoint]:
        v = self.registry.get_vehicle(vehicle_id)
        station = self.registry.get_station(v.station_id) if v else None
        if v is None or station is None:
            return None
        return self.simulator.mission_target_for(v, station)

    # -------------------------------
    # Commands
    # -------------------------------
    async def send_command(self, vehicle_id: str, command: str, actor: str = "operator") -> CommandResult:
        return await self.registry.send_command(vehicle_id, command, actor=actor)

    async def dispatch(self, vehicle_id: str, actor: str = "operator") -> CommandResult:
        return await self.registry.dispatch(vehicle_id, actor=actor)

    async def recall(self, vehicle_id: str, actor: str = "operator") -> CommandResult:
        return await self.registry.recall(vehicle_id, actor=actor)

    async def emergency_land(self, vehicle_id: str, actor: str = "operator") -> CommandResult:
        return await self.registry.emergency_land(vehicle_id, actor=actor)

    async def abort_flight(self, flight_id: str, actor: str = "operator") -> CommandResult:
        return await self.registry.abort_flight(flight_id, actor=actor)

    # -------------------------------
    # Subscriptions
    # -------------------------------
    def subscribe_telemetry(self, listener: Callable[[List[Telemetry]], None]) -> Subscription:
        return self.simulator.subscribe(listener)

    def subscribe_events(self, listener: Callable[[SystemEvent], None]) -> Subscription:
        return self.bus.subscribe(listener)

    # -------------------------------
    # Weather & risk
    # -------------------------------
    @property
    def current_weather(self) -> Optional[WeatherInfo]:
        return self.weather.latest

    async def refresh_weather(self) -> Optional[WeatherInfo]:
        return await self.weather.refresh()

    async def set_weather_simulation(self, mode: Optional[WeatherRiskLevel]) -> Optional[WeatherInfo]:
        self.weather.set_simulation_mode(mode)
        return await self.weather.refresh()

    def risk_for(self, vehicle_id: str) -> Optional[RiskSummary]:
        """
        Recomputed on every call from the latest vehicle, telemetry and
        weather; escalations are reported through the notifier.
        """
        v = self.registry.get_vehicle(vehicle_id)
        if v is None:
            return None
        return self.notifier.evaluate(v, self.simulator.get(vehicle_id), self.weather.latest)

    def risk_for_all(self) -> List[RiskSummary]:
        out: List[RiskSummary] = []
        for vehicle_id in self.registry.vehicle_ids():
            summary = self.risk_for(vehicle_id)
            if summary is not None:
                out.append(summary)
        return out


def build_default_engine(
    config: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
    weather_fetcher: Optional[Fetcher] = None,
) -> FleetEngine:
    """
    Engine loaded with the boot-time fleet and flight history.
    """
    return FleetEngine(
        vehicles=default_vehicles(),
        stations=default_stations(),
        flights=default_flights(),
        mission_targets=default_mission_targets(),
        config=config,
        rng=rng,
        weather_fetcher=weather_fetcher,
    )


# ------------------------------------------------------------
# Process-wide engine used by the HTTP layer
# ------------------------------------------------------------
_engine: Optional[FleetEngine] = None


def get_engine() -> FleetEngine:
    """
    Returns the shared engine, building the default one on first use.
    """
    global _engine
    if _engine is None:
        _engine = build_default_engine()
    return _engine


def set_engine(engine: Optional[FleetEngine]) -> None:
    global _engine
    _engine = engine
