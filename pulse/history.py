# pulse/history.py
from __future__ import annotations
from collections import deque
from threading import Lock
from typing import Deque, List

from pulse.tenants import TenantMap
from pulse.transactions import TxEvent

HISTORY_SIZE = 200

class _Ring:
    __slots__ = ("events", "lock")

    def __init__(self, maxlen: int):
        self.events: Deque[TxEvent] = deque(maxlen=maxlen)
        self.lock = Lock()

class HistoryStore:
    """Bounded, arrival-ordered history of recent events per tenant."""

    def __init__(self, maxlen: int = HISTORY_SIZE):
        self.maxlen = maxlen
        self._rings: TenantMap[_Ring] = TenantMap(lambda: _Ring(maxlen))

    def append(self, tenant_id: str, event: TxEvent) -> None:
        ring = self._rings.get_or_create(tenant_id)
        # deque(maxlen) drops from the left once full
        with ring.lock:
            ring.events.append(event)

    def snapshot(self, tenant_id: str) -> List[TxEvent]:
        ring = self._rings.get(tenant_id)
        if ring is None:
            return []
        with ring.lock:
            return list(ring.events)

    def tenant_count(self) -> int:
        return len(self._rings.tenants())
