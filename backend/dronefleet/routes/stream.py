# dronefleet/routes/stream.py
# ------------------------------------------------------------
# Server-Sent Events (SSE) stream
#
# Each connected client subscribes to the event bus and to the
# telemetry simulator, and receives:
# - event: telemetry   data: [ ... snapshot ... ]
# - event: system_event data: { ... audit event ... }
# - event: heartbeat   data: {"t": ...}
#
# Subscriptions are dropped when the client disconnects; the
# last telemetry subscriber going away stops an unpinned tick.
# ------------------------------------------------------------

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
import asyncio
import json
import time
from typing import Any, AsyncGenerator, Dict, List, Tuple

from ..engine import get_engine
from ..models import SystemEvent, Telemetry

router = APIRouter(tags=["stream"])

HEARTBEAT_SEC = 10.0
QUEUE_MAX = 256


def sse(event: str, data_obj) -> str:
    """
    Build an SSE message.

    Format:
        event: name
        data: json
    """
    return f"event: {event}\ndata: {json.dumps(data_obj)}\n\n"


@router.get("/api/stream")
async def stream(request: Request):
    """
    Live updates stream.

    - Starts from "now" (no history replay); the first telemetry
      message is the current snapshot.
    - Heartbeat keeps idle connections open.
    """
    engine = get_engine()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Tuple[str, Any]]" = asyncio.Queue(maxsize=QUEUE_MAX)

    def _offer(kind: str, payload: Any) -> None:
        # listeners may fire from worker threads (sync routes)
        def _put() -> None:
            if queue.full():
                queue.get_nowait()  # drop oldest, keep the stream live
            queue.put_nowait((kind, payload))
        loop.call_soon_threadsafe(_put)

    def on_telemetry(snapshot: List[Telemetry]) -> None:
        _offer("telemetry", [t.model_dump(mode="json") for t in snapshot])

    def on_event(event: SystemEvent) -> None:
        _offer("system_event", event.model_dump(mode="json"))

    async def gen() -> AsyncGenerator[str, None]:
        subs = [engine.subscribe_events(on_event), engine.subscribe_telemetry(on_telemetry)]
        try:
            # initial hello + retry hint (client reconnect delay)
            yield "retry: 2000\n\n"
            yield sse("hello", {"ok": True, "ts": time.time()})

            while True:
                if await request.is_disconnected():
                    break
                try:
                    kind, payload = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SEC)
                except asyncio.TimeoutError:
                    yield sse("heartbeat", {"t": time.time()})
                    continue
                yield sse(kind, payload)
        finally:
            for sub in subs:
                sub.unsubscribe()

    headers: Dict[str, str] = {
        # SSE must not be cached
        "Cache-Control": "no-cache",
        # keep TCP connection open
        "Connection": "keep-alive",
        # if behind nginx, prevents response buffering
        "X-Accel-Buffering": "no",
    }

    return StreamingResponse(gen(), media_type="text/event-stream", headers=headers)
