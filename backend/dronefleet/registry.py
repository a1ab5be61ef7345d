# dronefleet/registry.py
# ------------------------------------------------------------
# Fleet registry: the single owner of vehicle/station records
# and the only place vehicle status transitions happen.
#
# Concurrency:
# - every mutation runs under one re-entrant lock
# - commands are async with artificial latency, but the state
#   change is applied before the delay, at call time
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Dict, Iterable, List, Optional, Set

from .errors import UnknownStationError
from .events import EventBus
from .flights import FlightLedger
from .models import (
    CommandResult,
    EventSource,
    Station,
    StationStatus,
    Vehicle,
    VehicleCommand,
)

log = logging.getLogger("dronefleet.registry")

EMERGENCY_BATTERY_PENALTY = 5.0

# Free-text labels shown by the dashboards
MISSION_IDLE = "Awaiting assignment"
MISSION_ACTIVE = "Mission in progress"
MISSION_RETURNING = "Returning to station"
MISSION_EMERGENCY = "Emergency landing completed"
MISSION_CRITICAL_BATTERY = "Critical battery level"
CONTACT_FRESH = "a few seconds ago"

COMMANDS = ("send_on_mission", "return_to_station", "emergency_landing")


class FleetRegistry:
    def __init__(
        self,
        vehicles: Iterable[Vehicle],
        stations: Iterable[Station],
        ledger: FlightLedger,
        bus: EventBus,
        command_latency_sec: float = 0.0,
    ):
        self._vehicles: Dict[str, Vehicle] = {v.id: v.model_copy() for v in vehicles}
        self._stations: Dict[str, Station] = {s.id: s.model_copy() for s in stations}
        self.ledger = ledger
        self.bus = bus
        self.command_latency_sec = command_latency_sec

        # vehicles already reported for critical battery; cleared when a command
        # takes the vehicle out of error or lands it
        self._battery_latched: Set[str] = set()

        self.lock = threading.RLock()

    # -------------------------------
    # Reads (copies only)
    # -------------------------------
    def vehicle_ids(self) -> List[str]:
        with self.lock:
            return list(self._vehicles)

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        with self.lock:
            v = self._vehicles.get(vehicle_id)
            return v.model_copy() if v else None

    def list_vehicles(self) -> List[Vehicle]:
        with self.lock:
            return [v.model_copy() for v in self._vehicles.values()]

    def list_by_station(self, station_id: str) -> List[Vehicle]:
        return [v for v in self.list_vehicles() if v.station_id == station_id]

    def get_station(self, station_id: str) -> Optional[Station]:
        with self.lock:
            s = self._stations.get(station_id)
            return s.model_copy() if s else None

    def list_stations(self) -> List[Station]:
        with self.lock:
            return [s.model_copy() for s in self._stations.values()]

    def station_for(self, vehicle: Vehicle) -> Station:
        station = self.get_station(vehicle.station_id)
        if station is None:
            raise UnknownStationError(vehicle.station_id)
        return station

    def is_battery_latched(self, vehicle_id: str) -> bool:
        return vehicle_id in self._battery_latched

    # -------------------------------
    # Commands (async, latency after mutation)
    # -------------------------------
    async def _respond(self, result: CommandResult) -> CommandResult:
        if self.command_latency_sec > 0:
            await asyncio.sleep(self.command_latency_sec)
        return result

    async def dispatch(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        return await self._respond(self.apply_dispatch(vehicle_id, actor, source))

    async def recall(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        return await self._respond(self.apply_recall(vehicle_id, actor, source))

    async def emergency_land(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        return await self._respond(self.apply_emergency_land(vehicle_id, actor, source))

    async def abort_flight(self, flight_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        return await self._respond(self.apply_abort_flight(flight_id, actor, source))

    async def send_command(
        self,
        vehicle_id: str,
        command: str,
        actor: str = "operator",
        source: EventSource = "operator",
    ) -> CommandResult:
        """
        Generic entry point used by the HTTP layer and the demo scenario.
        """
        if command == "send_on_mission":
            return await self.dispatch(vehicle_id, actor, source)
        if command == "return_to_station":
            return await self.recall(vehicle_id, actor, source)
        if command == "emergency_landing":
            return await self.emergency_land(vehicle_id, actor, source)

        self.bus.publish(
            f"Command {command!r} for drone {vehicle_id} rejected: unknown command.",
            level="error",
            source="system",
        )
        return await self._respond(
            CommandResult(success=False, message=f"Drone {vehicle_id}: unknown command {command!r}.")
        )

    # -------------------------------
    # Synchronous state transitions
    # -------------------------------
    def _reject_unknown_vehicle(self, command: VehicleCommand, vehicle_id: str) -> CommandResult:
        log.warning("%s rejected: unknown vehicle %s", command, vehicle_id)
        self.bus.publish(
            f"Command {command} rejected: unknown drone {vehicle_id}.",
            level="error",
            source="system",
        )
        return CommandResult(success=False, message=f"Drone {vehicle_id} not found.")

    def apply_dispatch(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        with self.lock:
            v = self._vehicles.get(vehicle_id)
            if v is None:
                return self._reject_unknown_vehicle("send_on_mission", vehicle_id)

            station = self._stations.get(v.station_id)
            if station is None:
                log.warning("dispatch of %s rejected: unknown station %s", vehicle_id, v.station_id)
                self.bus.publish(
                    f"Command send_on_mission rejected: drone {v.code} has unknown station {v.station_id}.",
                    level="error",
                    source="system",
                )
                return CommandResult(success=False, message=f"Drone {vehicle_id}: home station not found.")

            if v.status != "idle":
                log.info("dispatching %s from status %s", vehicle_id, v.status)
            if v.status == "error":
                self._battery_latched.discard(v.id)

            v.status = "on_mission"
            v.mission = MISSION_ACTIVE
            v.last_contact = CONTACT_FRESH

            flight = self.ledger.open(
                vehicle_id=v.id,
                station_id=station.id,
                station_name=station.name,
                origin=station.point(),
                vehicle_name=v.name,
            )

            self.bus.publish(
                f"Operator {actor} sent drone {v.code} on a mission (flight {flight.id}).",
                level="info",
                source=source,
            )
            return CommandResult(success=True, message=f"Drone {vehicle_id}: sent on a mission.")

    def apply_recall(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        with self.lock:
            v = self._vehicles.get(vehicle_id)
            if v is None:
                return self._reject_unknown_vehicle("return_to_station", vehicle_id)

            if v.status == "error":
                self._battery_latched.discard(v.id)

            v.status = "returning"
            v.mission = MISSION_RETURNING
            v.last_contact = CONTACT_FRESH

            self.bus.publish(
                f"Operator {actor} recalled drone {v.code} to station {v.station_id}.",
                level="info",
                source=source,
            )
            return CommandResult(success=True, message=f"Drone {vehicle_id}: returning to station.")

    def apply_emergency_land(self, vehicle_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        with self.lock:
            v = self._vehicles.get(vehicle_id)
            if v is None:
                return self._reject_unknown_vehicle("emergency_landing", vehicle_id)

            v.status = "idle"
            v.mission = MISSION_EMERGENCY
            v.last_contact = CONTACT_FRESH
            v.battery = max(0.0, v.battery - EMERGENCY_BATTERY_PENALTY)
            self._battery_latched.discard(v.id)

            aborted = self.ledger.close(v.id, "aborted")
            suffix = f" Flight {aborted.id} aborted." if aborted else ""

            self.bus.publish(
                f"Operator {actor} ordered an emergency landing of drone {v.code}.{suffix}",
                level="warning",
                source=source,
            )
            return CommandResult(success=True, message=f"Drone {vehicle_id}: emergency landing completed.")

    def apply_abort_flight(self, flight_id: str, actor: str = "operator", source: EventSource = "operator") -> CommandResult:
        with self.lock:
            existing = self.ledger.get(flight_id)
            if existing is None:
                self.bus.publish(
                    f"Abort rejected: unknown flight {flight_id}.",
                    level="error",
                    source="system",
                )
                return CommandResult(success=False, message=f"Flight {flight_id} not found.")

            if existing.status != "in_progress":
                self.bus.publish(
                    f"Abort rejected: flight {flight_id} is already {existing.status}.",
                    level="warning",
                    source="system",
                )
                return CommandResult(success=False, message=f"Flight {flight_id} is not in progress.")

            self.ledger.abort(flight_id)
            self.bus.publish(
                f"Operator {actor} aborted flight {flight_id} of drone {existing.vehicle_id}.",
                level="warning",
                source=source,
            )
            return CommandResult(success=True, message=f"Flight {flight_id}: aborted.")

    def set_station_status(self, station_id: str, status: StationStatus, source: EventSource = "system") -> CommandResult:
        with self.lock:
            s = self._stations.get(station_id)
            if s is None:
                self.bus.publish(
                    f"Station status update rejected: unknown station {station_id}.",
                    level="error",
                    source="system",
                )
                return CommandResult(success=False, message=f"Station {station_id} not found.")

            previous = s.status
            s.status = status

        if previous != status:
            self.bus.publish(
                f"Station {s.name} changed status: {previous} -> {status}.",
                level="warning" if status == "error" else "info",
                source=source,
            )
        return CommandResult(success=True, message=f"Station {station_id}: status {status}.")

    # -------------------------------
    # Simulator hooks
    # -------------------------------
    def record_telemetry(self, vehicle_id: str, battery: float, last_contact: Optional[str] = None) -> None:
        with self.lock:
            v = self._vehicles[vehicle_id]
            v.battery = battery
            if last_contact is not None:
                v.last_contact = last_contact

    def touch_contact(self, vehicle_id: str, label: str) -> None:
        with self.lock:
            self._vehicles[vehicle_id].last_contact = label

    def mark_arrived(self, vehicle_id: str) -> None:
        """
        Returning vehicle reached its station: ground it and close the open flight.
        """
        with self.lock:
            v = self._vehicles[vehicle_id]
            v.status = "idle"
            v.mission = MISSION_IDLE
            v.last_contact = CONTACT_FRESH
            self.ledger.close(v.id, "completed")

            self.bus.publish(
                f"Drone {v.code} completed its flight and returned to station {v.station_id}.",
                level="info",
                source="monitoring",
            )

    def mark_critical_battery(self, vehicle_id: str) -> bool:
        """
        Force an active vehicle into error. Fires once per vehicle until the
        latch is cleared by an emergency landing. Returns True when it fired.
        """
        with self.lock:
            if vehicle_id in self._battery_latched:
                return False
            v = self._vehicles[vehicle_id]
            self._battery_latched.add(vehicle_id)
            v.status = "error"
            v.mission = MISSION_CRITICAL_BATTERY

            self.bus.publish(
                f"Drone {v.code}: critical battery level ({v.battery:.0f}%), switched to error state.",
                level="error",
                source="monitoring",
            )
            return True
