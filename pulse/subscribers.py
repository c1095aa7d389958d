# pulse/subscribers.py
from __future__ import annotations
import asyncio
import enum
import logging
from threading import Lock
from typing import List, Optional, Set

from pulse.tenants import TenantMap

log = logging.getLogger("pulse.subscribers")

class SinkClosed(Exception):
    pass

class ConnectionState(str, enum.Enum):
    BOOTSTRAPPED = "bootstrapped"
    LIVE = "live"
    CLOSED = "closed"

class Subscriber:
    """
    Output sink for one streaming connection: a bounded queue of framed text.
    Holds only the tenant id; the registry owns the reference while live.
    """

    def __init__(self, tenant_id: str, maxsize: int = 1000):
        self.tenant_id = tenant_id
        self.state = ConnectionState.BOOTSTRAPPED
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def send(self, message: str) -> None:
        if self.closed:
            raise SinkClosed(self.tenant_id)
        self._queue.put_nowait(message)

    async def receive(self) -> Optional[str]:
        """Next frame, or None once the sink is closed."""
        if self.closed:
            return None
        message = await self._queue.get()
        if message is None or self.closed:
            return None
        return message

    def close(self) -> bool:
        """Mark closed and wake a pending receive. Returns False if already closed."""
        if self.closed:
            return False
        self.state = ConnectionState.CLOSED
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # a full queue already has a getter's next item; receive re-checks state
            pass
        return True

class _Group:
    __slots__ = ("sinks", "lock")

    def __init__(self):
        self.sinks: Set[Subscriber] = set()
        self.lock = Lock()

class SubscriberRegistry:

    def __init__(self):
        self._groups: TenantMap[_Group] = TenantMap(_Group)
        self._failed = 0
        self._failed_lock = Lock()

    def register(self, tenant_id: str, sink: Subscriber) -> None:
        group = self._groups.get_or_create(tenant_id)
        with group.lock:
            group.sinks.add(sink)
        if not sink.closed:
            sink.state = ConnectionState.LIVE

    def unregister(self, tenant_id: str, sink: Subscriber) -> None:
        group = self._groups.get(tenant_id)
        if group is None:
            return
        with group.lock:
            group.sinks.discard(sink)

    def broadcast(self, tenant_id: str, message: str) -> int:
        group = self._groups.get(tenant_id)
        if group is None:
            return 0
        with group.lock:
            sinks = list(group.sinks)

        delivered = 0
        for sink in sinks:
            try:
                sink.send(message)
                delivered += 1
            except (SinkClosed, asyncio.QueueFull) as exc:
                self._count_failure()
                log.warning("delivery to %s subscriber failed: %s", tenant_id, type(exc).__name__)
            except Exception:
                self._count_failure()
                log.exception("delivery to %s subscriber failed", tenant_id)
        return delivered

    def _count_failure(self) -> None:
        with self._failed_lock:
            self._failed += 1

    @property
    def failed_deliveries(self) -> int:
        return self._failed

    def count(self, tenant_id: Optional[str] = None) -> int:
        if tenant_id is not None:
            group = self._groups.get(tenant_id)
            return len(group.sinks) if group is not None else 0
        return sum(len(g.sinks) for g in self._groups.values())

    def close_all(self) -> int:
        """Close every live sink; their streams unregister themselves on exit."""
        closed = 0
        for group in self._groups.values():
            with group.lock:
                sinks: List[Subscriber] = list(group.sinks)
            for sink in sinks:
                if sink.close():
                    closed += 1
        return closed
