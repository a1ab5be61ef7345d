# dronefleet/routes/stations.py
# ------------------------------------------------------------
# Stations API
# ------------------------------------------------------------

from fastapi import APIRouter
from pydantic import BaseModel

from ..engine import get_engine
from ..models import CommandResult, StationStatus
from ._common import dump_items, not_found

router = APIRouter(tags=["stations"])


class StationStatusRequest(BaseModel):
    status: StationStatus


@router.get("/api/stations")
def list_stations():
    return dump_items(get_engine().stations())


@router.get("/api/stations/{station_id}")
def get_station(station_id: str):
    """
    One station with its drones.
    """
    engine = get_engine()
    station = engine.station(station_id)
    if station is None:
        raise not_found("station", station_id)

    out = station.model_dump(mode="json")
    out["drones"] = [v.model_dump(mode="json") for v in engine.registry.list_by_station(station_id)]
    return out


@router.post("/api/stations/{station_id}/status", response_model=CommandResult)
def set_station_status(station_id: str, body: StationStatusRequest):
    return get_engine().registry.set_station_status(station_id, body.status, source="admin")
