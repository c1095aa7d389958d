# pulse/main.py
from __future__ import annotations
import json, logging, time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

from pulse.auth import ConfigurationError, Forbidden, Unauthorized, authenticate, bearer_token, check_admin_secret, sign_token
from pulse.broadcast import BroadcastEngine
from pulse.config import configure_logging, get_settings
from pulse.history import HistoryStore
from pulse.stats import summarize
from pulse.stream import SSE_HEADERS, event_stream
from pulse.subscribers import Subscriber, SubscriberRegistry
from pulse.transactions import ValidationError

log = logging.getLogger("pulse.main")

history = HistoryStore()
subscribers = SubscriberRegistry()
engine = BroadcastEngine(history, subscribers)

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    log.info("Pulse API starting")
    if not get_settings().jwt_secret.get_secret_value():
        log.warning("JWT_SECRET is empty: every token will be rejected and /mint will fail")
    yield
    closed = subscribers.close_all()
    log.info("Pulse API stopping, closed %d streams", closed)

app = FastAPI(title="Pulse", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# ---------- metrics ----------
TX_INGESTED    = Counter("transactions_ingested_total", "Total transactions ingested")
TX_REJECTED    = Counter("transactions_rejected_total", "Transactions rejected", ["reason"])
LAST_INGEST_TS = Gauge(  "last_ingest_timestamp",        "Last ingest epoch millis")
INGEST_LATENCY = Histogram("ingest_duration_seconds",   "Ingest duration")
LIVE_STREAMS   = Gauge(  "live_subscribers",             "Connected stream subscribers")
FAILED_SENDS   = Gauge(  "failed_deliveries",            "Frames that could not be queued for a subscriber")
HISTORY_TENANTS = Gauge( "history_tenants",             "Tenants with a history buffer")
LIVE_STREAMS.set_function(lambda: subscribers.count())
FAILED_SENDS.set_function(lambda: subscribers.failed_deliveries)
HISTORY_TENANTS.set_function(history.tenant_count)

# ---------- errors ----------
@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized):
    return JSONResponse({"error": exc.error}, status_code=401)

@app.exception_handler(Forbidden)
async def forbidden_handler(request: Request, exc: Forbidden):
    return JSONResponse({"error": exc.error}, status_code=403)

@app.exception_handler(ConfigurationError)
async def configuration_handler(request: Request, exc: ConfigurationError):
    log.error("cannot serve %s: %s", request.url.path, exc)
    return JSONResponse({"error": "server_misconfigured"}, status_code=500)

@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    TX_REJECTED.labels(reason=exc.error).inc()
    return JSONResponse({"error": exc.error}, status_code=400)

# ---------- stream ----------
@app.get("/events")
async def events(token: Optional[str] = Query(None)):
    merchant_id = authenticate(token, error="invalid_token")
    sink = Subscriber(merchant_id, maxsize=get_settings().subscriber_queue_size)
    return StreamingResponse(
        event_stream(engine, merchant_id, sink),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )

# ---------- ingest ----------
@app.post("/ingest/tx")
async def ingest_tx(request: Request, authorization: Optional[str] = Header(None)):
    merchant_id = authenticate(bearer_token(authorization))
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    if not isinstance(body, dict):
        body = {}

    start = time.time()
    engine.ingest(merchant_id, body)
    TX_INGESTED.inc()
    LAST_INGEST_TS.set(int(time.time() * 1000))
    INGEST_LATENCY.observe(time.time() - start)
    return {"ok": True}

# ---------- stats ----------
@app.get("/stats/today")
def stats_today(token: Optional[str] = Query(None)):
    merchant_id = authenticate(token, error="invalid_token")
    return {"ok": True, **summarize(history.snapshot(merchant_id))}

# ---------- admin ----------
@app.get("/mint")
def mint(merchantId: Optional[str] = Query(None), x_admin_secret: Optional[str] = Header(None)):
    check_admin_secret(x_admin_secret)
    merchant_id = merchantId or get_settings().default_merchant
    log.info("minted token for %s", merchant_id)
    return {"ok": True, "token": sign_token(merchant_id)}

@app.get("/", response_class=PlainTextResponse)
def ping():
    return "Pulse API OK"

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

def main():
    import uvicorn

    settings = get_settings()
    configure_logging()
    log.info("Pulse listening on port %d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())

if __name__ == "__main__":
    main()
