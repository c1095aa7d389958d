# pulse/broadcast.py
from __future__ import annotations
import logging
from threading import Lock
from typing import Any, List, Mapping

from pulse.history import HistoryStore
from pulse.stream import format_event
from pulse.subscribers import Subscriber, SubscriberRegistry
from pulse.tenants import TenantMap
from pulse.transactions import TxEvent, build_event

log = logging.getLogger("pulse.broadcast")

class BroadcastEngine:
    """
    Routes ingested transactions into a tenant's history and to its live
    subscribers. A per-tenant gate serializes ingest against join, so every
    event reaches a new subscriber exactly once: in the bootstrap or live.
    """

    def __init__(self, history: HistoryStore, subscribers: SubscriberRegistry):
        self.history = history
        self.subscribers = subscribers
        self._gates: TenantMap[Lock] = TenantMap(Lock)

    def ingest(self, tenant_id: str, payload: Mapping[str, Any]) -> TxEvent:
        event = build_event(payload)
        frame = format_event("tx", event.to_dict())
        with self._gates.get_or_create(tenant_id):
            self.history.append(tenant_id, event)
            delivered = self.subscribers.broadcast(tenant_id, frame)
        log.debug("tx tenant=%s amount=%s delivered=%d", tenant_id, event.amount, delivered)
        return event

    def join(self, tenant_id: str, sink: Subscriber) -> List[TxEvent]:
        with self._gates.get_or_create(tenant_id):
            recent = self.history.snapshot(tenant_id)
            sink.send(format_event("bootstrap", {"ok": True, "recent": [e.to_dict() for e in recent]}))
            self.subscribers.register(tenant_id, sink)
        return recent

    def leave(self, tenant_id: str, sink: Subscriber) -> None:
        self.subscribers.unregister(tenant_id, sink)
        sink.close()
