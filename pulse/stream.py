# pulse/stream.py
from __future__ import annotations
import json
import logging
from typing import Any, AsyncIterator

from pulse.subscribers import Subscriber

log = logging.getLogger("pulse.stream")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

def format_event(kind: str, data: Any) -> str:
    return f"event: {kind}\ndata: {json.dumps(data, allow_nan=False)}\n\n"

async def event_stream(engine, tenant_id: str, sink: Subscriber) -> AsyncIterator[str]:
    """
    Bootstrap frame first, then live frames until the sink closes or the
    consumer goes away (generator closed or task cancelled on disconnect).
    """
    engine.join(tenant_id, sink)
    log.info("subscriber connected tenant=%s live=%d", tenant_id, engine.subscribers.count(tenant_id))
    try:
        while True:
            frame = await sink.receive()
            if frame is None:
                return
            yield frame
    finally:
        engine.leave(tenant_id, sink)
        log.info("subscriber disconnected tenant=%s", tenant_id)
