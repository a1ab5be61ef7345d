# dronefleet/flights.py
# ------------------------------------------------------------
# Flight ledger: one record per dispatch-to-resolution attempt.
#
# Storage model:
# - bounded deque, oldest appended entry evicted first
# - eviction ignores status, so a still-open flight can drop
#   out of the ledger once enough newer flights are opened
# ------------------------------------------------------------

from __future__ import annotations

from collections import deque
import logging
import random
import threading
from typing import Deque, Iterable, List, Literal, Optional

from .models import Flight, GeoPoint, utcnow

log = logging.getLogger("dronefleet.flights")

DEFAULT_CAPACITY = 200

# Planned distance range for new flights (km)
DISTANCE_MIN_KM = 4.0
DISTANCE_MAX_KM = 7.0

# Max per-axis offset of a mission target from its station (degrees)
TARGET_SPREAD_DEG = 0.025

CloseOutcome = Literal["completed", "aborted"]


def random_target_near(origin: GeoPoint, rng: random.Random, spread: float = TARGET_SPREAD_DEG) -> GeoPoint:
    """
    Pick a mission target within +/- spread degrees of the origin on each axis.
    """
    return GeoPoint(
        lat=origin.lat + rng.uniform(-spread, spread),
        lon=origin.lon + rng.uniform(-spread, spread),
    )


class FlightLedger:
    def __init__(self, capacity: int = DEFAULT_CAPACITY, rng: Optional[random.Random] = None):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._rng = rng or random.Random()
        self._flights: Deque[Flight] = deque(maxlen=capacity)
        self._lock = threading.RLock()

    # -------------------------------
    # Writes
    # -------------------------------
    def add(self, flight: Flight) -> Flight:
        """
        Append an existing record (used for seed history).
        """
        with self._lock:
            if len(self._flights) == self.capacity:
                evicted = self._flights[0]
                if evicted.status == "in_progress":
                    log.warning("ledger full, evicting open flight %s of %s", evicted.id, evicted.vehicle_id)
            self._flights.append(flight)
        return flight

    def extend(self, flights: Iterable[Flight]) -> None:
        for f in flights:
            self.add(f)

    def open(
        self,
        vehicle_id: str,
        station_id: str,
        station_name: str,
        origin: GeoPoint,
        vehicle_name: str = "",
        distance_km: Optional[float] = None,
    ) -> Flight:
        """
        Create a new in_progress flight starting now.
        """
        if distance_km is None:
            distance_km = self._rng.uniform(DISTANCE_MIN_KM, DISTANCE_MAX_KM)

        flight = Flight(
            vehicle_id=vehicle_id,
            vehicle_name=vehicle_name,
            station_id=station_id,
            station_name=station_name,
            status="in_progress",
            distance_km=round(distance_km, 2),
            origin=origin.model_copy(),
            target=random_target_near(origin, self._rng),
        )
        self.add(flight)
        log.info("flight %s opened for %s from %s", flight.id, vehicle_id, station_id)
        return flight.model_copy(deep=True)

    def close(self, vehicle_id: str, outcome: CloseOutcome) -> Optional[Flight]:
        """
        Close the most recent in_progress flight of a vehicle.
        Returns the closed flight, or None when nothing was open.
        """
        with self._lock:
            flight = self._latest_open(vehicle_id)
            if flight is None:
                return None
            self._finish(flight, outcome)
            return flight.model_copy(deep=True)

    def abort(self, flight_id: str) -> Optional[Flight]:
        """
        Abort one specific in_progress flight. None if unknown or already closed.
        """
        with self._lock:
            flight = self._find(flight_id)
            if flight is None or flight.status != "in_progress":
                return None
            self._finish(flight, "aborted")
            return flight.model_copy(deep=True)

    def _finish(self, flight: Flight, outcome: CloseOutcome) -> None:
        flight.status = outcome
        flight.end_time = utcnow()
        log.info("flight %s of %s %s", flight.id, flight.vehicle_id, outcome)

    # -------------------------------
    # Reads (copies only)
    # -------------------------------
    def _find(self, flight_id: str) -> Optional[Flight]:
        for f in self._flights:
            if f.id == flight_id:
                return f
        return None

    def _latest_open(self, vehicle_id: str) -> Optional[Flight]:
        for f in reversed(self._flights):
            if f.vehicle_id == vehicle_id and f.status == "in_progress":
                return f
        return None

    def get(self, flight_id: str) -> Optional[Flight]:
        with self._lock:
            f = self._find(flight_id)
            return f.model_copy(deep=True) if f else None

    def open_flight_for(self, vehicle_id: str) -> Optional[Flight]:
        with self._lock:
            f = self._latest_open(vehicle_id)
            return f.model_copy(deep=True) if f else None

    def list_flights(self) -> List[Flight]:
        """
        All flights, newest start first.
        """
        with self._lock:
            items = [f.model_copy(deep=True) for f in self._flights]
        return sorted(items, key=lambda f: f.start_time, reverse=True)

    def list_for_vehicle(self, vehicle_id: str) -> List[Flight]:
        return [f for f in self.list_flights() if f.vehicle_id == vehicle_id]

    def active_flights(self) -> List[Flight]:
        return [f for f in self.list_flights() if f.status == "in_progress"]

    def __len__(self) -> int:
        return len(self._flights)
