# pulse/stats.py
from __future__ import annotations
from typing import Dict, Iterable, Union

from pulse.transactions import TxEvent

def summarize(events: Iterable[TxEvent]) -> Dict[str, Union[int, float]]:
    """
    ca/tx/aov over whatever the history buffer holds (at most the last 200
    events), not a calendar-day total.
    """
    txs = [e for e in events if e.type == "tx"]
    ca = sum(e.amount for e in txs)
    tx = len(txs)
    aov = ca / tx if tx else 0
    return {"ca": ca, "tx": tx, "aov": aov}
