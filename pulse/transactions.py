# pulse/transactions.py
from __future__ import annotations
import copy, json, math, time
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

DEFAULT_CURRENCY = "EUR"

class ValidationError(Exception):
    """Raised when an ingested payload lacks a usable amount or method, or carries malformed fields."""

    def __init__(self, error: str = "missing_fields"):
        super().__init__(error)
        self.error = error

@dataclass(frozen=True)
class TxEvent:
    amount: Union[int, float]
    method: str
    currency: str = DEFAULT_CURRENCY
    item: Optional[str] = None
    meta: Mapping[str, Any] = field(default_factory=dict)
    ts: int = 0                 # epoch millis
    type: str = "tx"

    def to_dict(self) -> dict:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["meta"] = copy.deepcopy(dict(self.meta))
        return d

def now_ms() -> int:
    return int(time.time() * 1000)

def _coerce_amount(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = value
    else:
        try:
            amount = float(str(value).strip())
        except ValueError:
            return None
    try:
        if not math.isfinite(amount):
            return None
    except OverflowError:
        # int beyond float range
        return None
    return amount

def _optional_str(value: Any) -> Optional[str]:
    if not value:
        return None
    if not isinstance(value, str):
        raise ValidationError("invalid_fields")
    return value

def _frozen_meta(value: Any) -> Mapping[str, Any]:
    if not value:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise ValidationError("invalid_fields")
    try:
        # strict JSON round trip: deep copy, and no NaN/Infinity reaches a frame
        data = json.loads(json.dumps(dict(value), allow_nan=False))
    except (TypeError, ValueError) as exc:
        raise ValidationError("invalid_fields") from exc
    return MappingProxyType(data)

def build_event(payload: Mapping[str, Any], ts: Optional[int] = None) -> TxEvent:
    """
    payload keys accepted: amount, method, currency?, item?, meta?
    """
    amount = _coerce_amount(payload.get("amount"))
    method = payload.get("method")
    if amount is None or not isinstance(method, str) or not method:
        raise ValidationError("missing_fields")

    return TxEvent(
        amount=amount,
        method=method,
        currency=_optional_str(payload.get("currency")) or DEFAULT_CURRENCY,
        item=_optional_str(payload.get("item")),
        meta=_frozen_meta(payload.get("meta")),
        ts=now_ms() if ts is None else ts,
    )
