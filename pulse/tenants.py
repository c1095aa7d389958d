# pulse/tenants.py
from __future__ import annotations
from threading import Lock
from typing import Callable, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

class TenantMap(Generic[T]):
    """
    Per-tenant values created on first use and kept for the process lifetime.
    The map lock only guards creation; each value carries its own locking.
    """

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._items: Dict[str, T] = {}
        self._lock = Lock()

    def get(self, tenant_id: str) -> Optional[T]:
        return self._items.get(tenant_id)

    def get_or_create(self, tenant_id: str) -> T:
        item = self._items.get(tenant_id)
        if item is not None:
            return item
        with self._lock:
            item = self._items.get(tenant_id)
            if item is None:
                item = self._factory()
                self._items[tenant_id] = item
            return item

    def tenants(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def values(self) -> List[T]:
        with self._lock:
            return list(self._items.values())
