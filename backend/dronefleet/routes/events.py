# dronefleet/routes/events.py
# ------------------------------------------------------------
# Audit events API
#
# The bus keeps the last N events in memory; this returns the
# newest slice so the UI sees newest at top.
# ------------------------------------------------------------

from fastapi import APIRouter, Query

from ..engine import get_engine
from ._common import dump_items

router = APIRouter(tags=["events"])


@router.get("/api/events")
def list_events(limit: int = Query(50, ge=1, le=300)):
    """
    List recent events (newest first).
    """
    return dump_items(get_engine().recent_events(limit))
