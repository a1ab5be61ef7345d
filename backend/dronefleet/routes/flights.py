# dronefleet/routes/flights.py
# ------------------------------------------------------------
# Flights API
#
# Flights live in a bounded ledger (oldest evicted first).
# Lists are returned newest start first.
# ------------------------------------------------------------

from typing import Optional

from fastapi import APIRouter, Query

from ..engine import get_engine
from ..models import CommandResult
from ._common import dump_items, not_found

router = APIRouter(tags=["flights"])


@router.get("/api/flights")
def list_flights(drone_id: Optional[str] = Query(None)):
    ledger = get_engine().ledger
    if drone_id:
        return dump_items(ledger.list_for_vehicle(drone_id))
    return dump_items(ledger.list_flights())


@router.get("/api/flights/active")
def active_flights():
    return dump_items(get_engine().ledger.active_flights())


@router.get("/api/flights/{flight_id}")
def get_flight(flight_id: str):
    flight = get_engine().flight(flight_id)
    if flight is None:
        raise not_found("flight", flight_id)
    return flight.model_dump(mode="json")


@router.post("/api/flights/{flight_id}/abort", response_model=CommandResult)
async def abort_flight(flight_id: str, actor: str = Query("operator")):
    return await get_engine().abort_flight(flight_id, actor=actor)
