# pulse/client.py
from __future__ import annotations
from typing import Any, Dict, Optional
import httpx

DEFAULT_BASE_URL = "http://localhost:3000"

def _request(method: str, url: str, timeout: float,
             client: Optional[httpx.Client], **kwargs: Any) -> Dict[str, Any]:
    close_client = False
    if client is None:
        client = httpx.Client(timeout=timeout)
        close_client = True

    try:
        resp = client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp.json()
    finally:
        if close_client:
            client.close()

def post_transaction(token: str,
                     amount: float,
                     method: str,
                     currency: Optional[str] = None,
                     item: Optional[str] = None,
                     meta: Optional[Dict[str, Any]] = None,
                     base_url: str = DEFAULT_BASE_URL,
                     timeout: float = 10.0,
                     client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"amount": amount, "method": method}
    if currency:
        body["currency"] = currency
    if item:
        body["item"] = item
    if meta:
        body["meta"] = meta
    return _request(
        "POST", f"{base_url.rstrip('/')}/ingest/tx", timeout, client,
        json=body, headers={"Authorization": f"Bearer {token}"},
    )

def fetch_stats(token: str,
                base_url: str = DEFAULT_BASE_URL,
                timeout: float = 10.0,
                client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    return _request("GET", f"{base_url.rstrip('/')}/stats/today", timeout, client,
                    params={"token": token})

def mint_token(admin_secret: str,
               merchant_id: Optional[str] = None,
               base_url: str = DEFAULT_BASE_URL,
               timeout: float = 10.0,
               client: Optional[httpx.Client] = None) -> str:
    params = {"merchantId": merchant_id} if merchant_id else {}
    data = _request("GET", f"{base_url.rstrip('/')}/mint", timeout, client,
                    params=params, headers={"x-admin-secret": admin_secret})
    return data["token"]
