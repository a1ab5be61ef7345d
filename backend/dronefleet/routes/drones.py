# dronefleet/routes/drones.py
# ------------------------------------------------------------
# Drones API
#
# Read access to the fleet registry plus the operator command
# endpoint. Commands answer {success, message}; an unknown
# drone is a failed command (and an audit event), not a 404.
# ------------------------------------------------------------

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ..engine import get_engine
from ..models import CommandResult
from ._common import dump_items, not_found

router = APIRouter(tags=["drones"])


class CommandRequest(BaseModel):
    command: str
    actor: str = "operator"


@router.get("/api/drones")
def list_drones(station_id: Optional[str] = Query(None)):
    """
    All drones, or only those of one station.
    """
    engine = get_engine()
    if station_id:
        return dump_items(engine.registry.list_by_station(station_id))
    return dump_items(engine.vehicles())


@router.get("/api/drones/{drone_id}")
def get_drone(drone_id: str):
    engine = get_engine()
    drone = engine.vehicle(drone_id)
    if drone is None:
        raise not_found("drone", drone_id)

    telemetry = engine.telemetry_for(drone_id)
    target = engine.mission_target(drone_id)
    return {
        "drone": drone.model_dump(mode="json"),
        "telemetry": telemetry.model_dump(mode="json") if telemetry else None,
        "mission_target": target.model_dump() if target else None,
    }


@router.post("/api/drones/{drone_id}/commands", response_model=CommandResult)
async def send_command(drone_id: str, body: CommandRequest):
    return await get_engine().send_command(drone_id, body.command, actor=body.actor)
