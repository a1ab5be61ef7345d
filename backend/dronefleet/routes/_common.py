# dronefleet/routes/_common.py
# ------------------------------------------------------------
# Shared helpers for the route modules.
# Keeps route files small and consistent.
# ------------------------------------------------------------

from typing import Any, Dict, Iterable, List

from fastapi import HTTPException
from pydantic import BaseModel


def dump_items(items: Iterable[BaseModel]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Wrap models as {"items": [...]} with JSON-ready values,
    the envelope every list endpoint returns.
    """
    return {"items": [x.model_dump(mode="json") for x in items]}


def not_found(kind: str, item_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} {item_id} not found")
