# dronefleet/models.py
# ------------------------------------------------------------
# Core domain models for the drone fleet simulation backend
# ------------------------------------------------------------

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, List
from datetime import datetime, timezone
import uuid


# -------------------------------
# Shared helpers & enums
# -------------------------------
VehicleStatus = Literal["idle", "on_mission", "returning", "error", "offline"]
StationStatus = Literal["online", "offline", "error"]
FlightStatus = Literal["planned", "in_progress", "completed", "aborted"]
RiskLevel = Literal["low", "medium", "high"]
WeatherRiskLevel = Literal["ok", "warning", "no_fly"]
EventLevel = Literal["info", "warning", "error"]
EventSource = Literal["operator", "admin", "system", "monitoring", "security", "service"]
VehicleCommand = Literal["send_on_mission", "return_to_station", "emergency_landing"]

ACTIVE_STATUSES = ("on_mission", "returning")


def uid(prefix: str) -> str:
    """
    Short, readable IDs for UI/debugging.
    Example: fl_a3f91c2b1e
    """
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


def utcnow() -> datetime:
    """
    Always return timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


class GeoPoint(BaseModel):
    lat: float
    lon: float


# -------------------------------
# Station
# -------------------------------
class Station(BaseModel):
    """
    A fixed base point. Home target for returning vehicles.
    """

    id: str
    name: str
    location: str = ""
    status: StationStatus = "online"

    lat: float
    lon: float

    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)


# -------------------------------
# Vehicle
# -------------------------------
class Vehicle(BaseModel):
    """
    A simulated drone with its status state machine.
    Mutated only through the fleet registry and the telemetry simulator.
    """

    id: str
    code: str
    name: str
    station_id: str

    status: VehicleStatus = "idle"
    battery: float = Field(default=100.0, ge=0.0, le=100.0)

    mission: str = "Awaiting assignment"
    last_contact: str = "just now"


# -------------------------------
# Telemetry
# -------------------------------
class Telemetry(BaseModel):
    """
    Latest simulated telemetry for one vehicle (overwritten in place every tick).
    """

    vehicle_id: str

    lat: float
    lon: float

    altitude: float = 0.0    # m, [0, 120]
    speed: float = 0.0       # km/h
    battery: float = 100.0   # %, mirrors Vehicle.battery
    signal: float = 100.0    # link quality, [0, 100]

    last_update: datetime = Field(default_factory=utcnow)


# -------------------------------
# Flight
# -------------------------------
class Flight(BaseModel):
    """
    One dispatch-to-resolution attempt for a vehicle.
    """

    id: str = Field(default_factory=lambda: uid("fl"))

    vehicle_id: str
    vehicle_name: str = ""
    station_id: str
    station_name: str = ""

    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None

    status: FlightStatus = "in_progress"
    distance_km: float

    origin: GeoPoint
    target: GeoPoint


# -------------------------------
# Risk
# -------------------------------
class RiskFactor(BaseModel):
    id: str
    label: str
    level: RiskLevel
    weight: int
    description: str


class RiskSummary(BaseModel):
    """
    Aggregate risk for one vehicle. Factors are kept in rule order
    so the UI can explain the score.
    """

    vehicle_id: str
    vehicle_code: str
    station_id: str

    level: RiskLevel
    score: int = Field(ge=0, le=100)

    weather_risk: Optional[WeatherRiskLevel] = None
    factors: List[RiskFactor] = Field(default_factory=list)


# -------------------------------
# Weather
# -------------------------------
class WeatherInfo(BaseModel):
    temp_c: Optional[float] = None
    wind_speed_ms: float = 0.0
    wind_gust_ms: Optional[float] = None
    visibility_km: Optional[float] = None
    precipitation_mm: Optional[float] = None

    description: str = "No data"
    risk_level: WeatherRiskLevel = "ok"
    updated_at: datetime = Field(default_factory=utcnow)

    # True when the level comes from the admin simulation override
    simulated: bool = False


# -------------------------------
# Audit events
# -------------------------------
class SystemEvent(BaseModel):
    """
    Immutable audit log entry.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    timestamp: datetime
    time: str            # display form, "2025-11-16 21:05"
    title: str
    level: EventLevel = "info"
    source: EventSource = "system"


# -------------------------------
# Command results
# -------------------------------
class CommandResult(BaseModel):
    success: bool
    message: str
