# dronefleet/telemetry.py
# ------------------------------------------------------------
# Telemetry simulator.
#
# Per-vehicle state machine advanced on a fixed-period tick:
# - idle / offline / error: frozen, only the contact label ages
#   (idle vehicles are on the ground: altitude and speed 0)
# - on_mission: pulled 2%/tick toward the mission target
# - returning:  pulled 3%/tick toward the home station, lands
#               once inside ARRIVAL_THRESHOLD_DEG
#
# Not a flight model: speed comes from a per-status band, not
# from the displacement between ticks. on_mission vehicles never
# auto-complete; a recall brings them home.
#
# One snapshot is published per tick, after every vehicle has
# been advanced.
# ------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
import logging
import math
import random
from typing import Callable, Dict, List, Optional, Set

from .events import ListenerRegistry, Subscription
from .models import GeoPoint, Station, Telemetry, Vehicle, clamp, utcnow
from .periodic import PeriodicTask
from .registry import CONTACT_FRESH, FleetRegistry

log = logging.getLogger("dronefleet.telemetry")

# -------------------------------
# Simulation constants
# -------------------------------
INIT_OFFSET_DEG = 0.01          # total span of the initial marker offset
JITTER_DEG = 0.002              # total span of the per-tick random walk
MISSION_GAIN = 0.02             # fraction of remaining distance per tick
RETURN_GAIN = 0.03
ARRIVAL_THRESHOLD_DEG = 0.002   # ~150-200 m at the simulated latitude

ALTITUDE_MAX = 120.0
ALTITUDE_STEP = 2.0
SIGNAL_STEP = 5.0
CRITICAL_BATTERY = 10.0

MISSION_DRAIN = (1.0, 2.0)
RETURN_DRAIN = (0.5, 1.0)

SPEED_BANDS = {
    "on_mission": (40.0, 50.0),
    "returning": (30.0, 40.0),
}

CONTACT_STALE = "1 minute ago"

SnapshotListener = Callable[[List[Telemetry]], None]


def planar_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance in degrees, treating lat/lon as a plane.
    """
    return math.hypot(lat1 - lat2, lon1 - lon2)


class TelemetrySimulator:
    def __init__(
        self,
        registry: FleetRegistry,
        mission_targets: Optional[Dict[str, GeoPoint]] = None,
        rng: Optional[random.Random] = None,
        tick_interval_sec: float = 3.0,
    ):
        self.registry = registry
        self.mission_targets = dict(mission_targets or {})
        self._rng = rng or random.Random()

        self._telemetry: Dict[str, Telemetry] = {}
        self._faulted: Set[str] = set()
        self._listeners: ListenerRegistry[List[Telemetry]] = ListenerRegistry("telemetry")

        self._timer = PeriodicTask("telemetry-tick", tick_interval_sec, self.tick)
        self._pinned = False

        self.tick_count = 0
        self.last_tick_at: Optional[datetime] = None

    # -------------------------------
    # Targets
    # -------------------------------
    def mission_target_for(self, vehicle: Vehicle, station: Station) -> GeoPoint:
        """
        Open flight target first, then the configured per-vehicle target,
        then the home station.
        """
        flight = self.registry.ledger.open_flight_for(vehicle.id)
        if flight is not None:
            return flight.target
        return self.mission_targets.get(vehicle.id) or station.point()

    def attractor_for(self, vehicle: Vehicle, station: Station) -> GeoPoint:
        if vehicle.status == "on_mission":
            return self.mission_target_for(vehicle, station)
        return station.point()

    # -------------------------------
    # State machine
    # -------------------------------
    def _speed_for(self, status: str) -> float:
        band = SPEED_BANDS.get(status)
        if band is None:
            return 0.0
        return self._rng.uniform(*band)

    def _initial_telemetry(self, vehicle: Vehicle, station: Station, now: datetime) -> Telemetry:
        base = self.attractor_for(vehicle, station)
        active = vehicle.status in SPEED_BANDS

        # small offset only so markers do not overlap
        half = INIT_OFFSET_DEG / 2
        return Telemetry(
            vehicle_id=vehicle.id,
            lat=base.lat + self._rng.uniform(-half, half),
            lon=base.lon + self._rng.uniform(-half, half),
            altitude=self._rng.uniform(80.0, 100.0) if active else 0.0,
            speed=self._speed_for(vehicle.status),
            battery=vehicle.battery,
            signal=self._rng.uniform(70.0, 100.0),
            last_update=now,
        )

    def _step(self, vehicle_id: str, now: datetime) -> None:
        vehicle = self.registry.get_vehicle(vehicle_id)
        if vehicle is None:
            raise KeyError(vehicle_id)
        station = self.registry.station_for(vehicle)

        t = self._telemetry.get(vehicle_id)
        if t is None:
            t = self._initial_telemetry(vehicle, station, now)
            self._telemetry[vehicle_id] = t

        if vehicle.status not in SPEED_BANDS:
            # commands (emergency landing) may have changed the battery
            t.battery = vehicle.battery
            if vehicle.status == "idle":
                t.altitude = 0.0
                t.speed = 0.0
            self.registry.touch_contact(vehicle_id, CONTACT_STALE)
            return

        if vehicle.status == "on_mission":
            target = self.mission_target_for(vehicle, station)
            gain = MISSION_GAIN
            drain = MISSION_DRAIN
        else:
            target = station.point()
            gain = RETURN_GAIN
            drain = RETURN_DRAIN

        half = JITTER_DEG / 2
        t.lat += self._rng.uniform(-half, half)
        t.lon += self._rng.uniform(-half, half)
        t.lat += (target.lat - t.lat) * gain
        t.lon += (target.lon - t.lon) * gain

        t.speed = self._speed_for(vehicle.status)
        t.altitude = clamp(t.altitude + self._rng.uniform(-ALTITUDE_STEP / 2, ALTITUDE_STEP / 2), 0.0, ALTITUDE_MAX)
        t.signal = clamp(t.signal + self._rng.uniform(-SIGNAL_STEP / 2, SIGNAL_STEP / 2), 0.0, 100.0)

        battery = round(clamp(vehicle.battery - self._rng.uniform(*drain), 0.0, 100.0), 1)
        t.battery = battery
        t.last_update = now
        self.registry.record_telemetry(vehicle_id, battery, CONTACT_FRESH)

        if vehicle.status == "returning":
            dist = planar_distance(t.lat, t.lon, station.lat, station.lon)
            if dist < ARRIVAL_THRESHOLD_DEG:
                t.lat = station.lat
                t.lon = station.lon
                t.altitude = 0.0
                t.speed = 0.0
                self.registry.mark_arrived(vehicle_id)
                return

        if battery <= CRITICAL_BATTERY:
            self.registry.mark_critical_battery(vehicle_id)

    def tick(self) -> List[Telemetry]:
        """
        Advance every vehicle once, then publish one snapshot.
        A vehicle that fails is skipped; the rest of the fleet still advances.
        """
        now = utcnow()
        with self.registry.lock:
            for vehicle_id in self.registry.vehicle_ids():
                try:
                    self._step(vehicle_id, now)
                except Exception as exc:
                    log.exception("tick skipped vehicle %s", vehicle_id)
                    if vehicle_id not in self._faulted:
                        self._faulted.add(vehicle_id)
                        self.registry.bus.publish(
                            f"Telemetry update failed for drone {vehicle_id}: {exc}",
                            level="error",
                            source="service",
                        )

        self.tick_count += 1
        self.last_tick_at = now
        snapshot = self.snapshot()
        log.debug("tick #%d: %d telemetry records", self.tick_count, len(snapshot))
        self._listeners.notify(snapshot)
        return snapshot

    # -------------------------------
    # Reads
    # -------------------------------
    def snapshot(self) -> List[Telemetry]:
        with self.registry.lock:
            return [t.model_copy() for t in self._telemetry.values()]

    def get(self, vehicle_id: str) -> Optional[Telemetry]:
        with self.registry.lock:
            t = self._telemetry.get(vehicle_id)
            return t.model_copy() if t else None

    # -------------------------------
    # Timer & subscriptions
    # -------------------------------
    @property
    def running(self) -> bool:
        return self._timer.running

    @property
    def tick_interval_sec(self) -> float:
        return self._timer.interval_sec

    def start(self) -> None:
        """
        Start ticking and keep ticking until stop(), whatever the subscriber count.
        """
        self._pinned = True
        self._timer.start()

    def stop(self) -> None:
        self._pinned = False
        self._timer.stop()

    async def aclose(self) -> None:
        self._pinned = False
        await self._timer.wait_stopped()

    def subscribe(self, listener: SnapshotListener) -> Subscription:
        """
        Deliver the current snapshot now and one per tick afterwards.
        Starts the tick timer when called from a running event loop; the last
        unsubscribe stops it again unless start() pinned it.
        """
        sub = self._listeners.add(listener, on_remove=self._maybe_stop)
        listener(self.snapshot())

        try:
            self._timer.start()
        except RuntimeError:
            log.debug("no running event loop, telemetry timer not started")
        return sub

    def _maybe_stop(self) -> None:
        if len(self._listeners) == 0 and not self._pinned:
            self._timer.stop()

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
