# dronefleet/seed.py
# ------------------------------------------------------------
# Boot-time fleet: stations, vehicles, fixed mission targets
# and a short flight history for the dashboards.
#
# Everything here is returned as fresh objects so each engine
# instance (and each test) owns its own copies.
# ------------------------------------------------------------

from datetime import datetime, timezone
from typing import Dict, List

from .models import Flight, GeoPoint, Station, Vehicle


def default_stations() -> List[Station]:
    return [
        Station(id="st-1", name="Station #1 - North", location="55.030, 82.920 (Novosibirsk)",
                status="online", lat=55.03, lon=82.92),
        Station(id="st-2", name="Station #2 - East", location="54.980, 83.050",
                status="offline", lat=54.98, lon=83.05),
        Station(id="st-3", name="Station #3 - South", location="54.900, 82.950",
                status="error", lat=54.90, lon=82.95),
    ]


def default_vehicles() -> List[Vehicle]:
    return [
        Vehicle(id="dr-101", code="DR-101", name="Drone DR-101", station_id="st-1",
                status="idle", battery=86, last_contact="1 minute ago", mission="Awaiting assignment"),
        Vehicle(id="dr-102", code="DR-102", name="Drone DR-102", station_id="st-1",
                status="on_mission", battery=63, last_contact="30 seconds ago", mission="Processing field #12"),
        Vehicle(id="dr-103", code="DR-103", name="Drone DR-103", station_id="st-1",
                status="returning", battery=47, last_contact="2 minutes ago", mission="Returning to station"),
        Vehicle(id="dr-201", code="DR-201", name="Drone DR-201", station_id="st-2",
                status="offline", battery=30, last_contact="15 minutes ago", mission="Waiting for connection"),
        Vehicle(id="dr-301", code="DR-301", name="Drone DR-301", station_id="st-3",
                status="error", battery=12, last_contact="5 minutes ago", mission="Telemetry fault"),
    ]


def default_mission_targets() -> Dict[str, GeoPoint]:
    # used when a vehicle is on a mission without an open flight
    return {
        "dr-102": GeoPoint(lat=54.98, lon=82.93),   # field south of st-1
        "dr-103": GeoPoint(lat=55.05, lon=82.99),   # plot east of st-1
    }


def _t(day: int, hour: int, minute: int) -> datetime:
    return datetime(2025, 11, day, hour, minute, tzinfo=timezone.utc)


def _flight(fid, vehicle, station, start, end, status, km, origin, target) -> Flight:
    return Flight(
        id=fid,
        vehicle_id=vehicle.id,
        vehicle_name=vehicle.name,
        station_id=station.id,
        station_name=station.name,
        start_time=start,
        end_time=end,
        status=status,
        distance_km=km,
        origin=GeoPoint(lat=origin[0], lon=origin[1]),
        target=GeoPoint(lat=target[0], lon=target[1]),
    )


def default_flights() -> List[Flight]:
    """
    Historical flights, oldest first (ledger append order).
    """
    st = {s.id: s for s in default_stations()}
    dr = {v.id: v for v in default_vehicles()}

    return [
        _flight("fl-3002", dr["dr-301"], st["st-3"], _t(16, 16, 30), _t(16, 16, 55),
                "completed", 3.8, (54.90, 82.95), (54.92, 82.92)),
        _flight("fl-2002", dr["dr-201"], st["st-2"], _t(16, 17, 20), _t(16, 17, 45),
                "completed", 6.0, (54.98, 83.05), (54.96, 83.02)),
        _flight("fl-2001", dr["dr-201"], st["st-2"], _t(16, 18, 10), _t(16, 18, 32),
                "aborted", 4.4, (54.98, 83.05), (54.99, 83.09)),
        _flight("fl-3001", dr["dr-301"], st["st-3"], _t(16, 19, 0), None,
                "in_progress", 2.7, (54.90, 82.95), (54.91, 82.99)),
        _flight("fl-1003", dr["dr-102"], st["st-1"], _t(16, 20, 40), None,
                "in_progress", 5.1, (55.03, 82.92), (55.02, 82.97)),
        _flight("fl-1001", dr["dr-103"], st["st-1"], _t(16, 20, 55), _t(16, 21, 5),
                "completed", 3.2, (55.03, 82.92), (55.035, 82.95)),
        _flight("fl-1002", dr["dr-101"], st["st-1"], _t(16, 20, 55), _t(16, 21, 5),
                "completed", 3.2, (55.03, 82.92), (55.035, 82.95)),
    ]
