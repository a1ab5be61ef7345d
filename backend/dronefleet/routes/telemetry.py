# dronefleet/routes/telemetry.py
# ------------------------------------------------------------
# Telemetry API (latest snapshot; live updates go via /api/stream)
# ------------------------------------------------------------

from fastapi import APIRouter

from ..engine import get_engine
from ._common import dump_items, not_found

router = APIRouter(tags=["telemetry"])


@router.get("/api/telemetry")
def list_telemetry():
    return dump_items(get_engine().telemetry())


@router.get("/api/telemetry/{drone_id}")
def get_telemetry(drone_id: str):
    t = get_engine().telemetry_for(drone_id)
    if t is None:
        raise not_found("telemetry for drone", drone_id)
    return t.model_dump(mode="json")
