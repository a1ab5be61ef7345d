# dronefleet/routes/risk.py
# ------------------------------------------------------------
# Risk API
#
# Not cached: every request re-evaluates from the latest
# vehicle state, telemetry and weather, and escalations are
# written to the audit log.
# ------------------------------------------------------------

from fastapi import APIRouter

from ..engine import get_engine
from ._common import dump_items, not_found

router = APIRouter(tags=["risk"])


@router.get("/api/risk")
def fleet_risk():
    return dump_items(get_engine().risk_for_all())


@router.get("/api/risk/{drone_id}")
def drone_risk(drone_id: str):
    summary = get_engine().risk_for(drone_id)
    if summary is None:
        raise not_found("drone", drone_id)
    return summary.model_dump(mode="json")
