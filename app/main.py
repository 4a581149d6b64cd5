import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from app.logging_config import configure_logging
from app.offline.client import get_offline_client
from app.offline.exceptions import (
    InvalidCredential,
    InvalidRemoteData,
    NetworkUnreachable,
    OfflineError,
    RemoteRejected,
    ResolutionUnavailable,
    StorageUnavailable,
)

configure_logging()
log = logging.getLogger("offline")

_ERROR_STATUS = {
    StorageUnavailable: 503,
    NetworkUnreachable: 503,
    ResolutionUnavailable: 503,
    RemoteRejected: 502,
    InvalidRemoteData: 422,
    InvalidCredential: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting offline verification-log client...")
    client = get_offline_client()
    await client.start()
    try:
        yield
    finally:
        await client.stop()
        log.info("Offline verification-log client stopped")


app = FastAPI(title="Offline Verification Log", version="0.1.0", lifespan=lifespan)


@app.exception_handler(OfflineError)
async def offline_error_handler(request: Request, exc: OfflineError):
    status = _ERROR_STATUS.get(type(exc), 500)
    log.warning(f"{exc.code}: {exc.message}",
                extra={"route": request.url.path, "error_code": exc.code})
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"route": route, "remote_addr": remote})
    return resp


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/status")
def status():
    client = get_offline_client()
    stats = client.events.stats()
    return {
        "online": client.connectivity.online,
        "sync_in_progress": client.sync_engine.in_progress,
        "logs": {"total": stats.total, "synced": stats.synced, "pending": stats.pending},
        "revocations": client.revocations.size,
        "did_cache": {
            "size": client.did_cache.size,
            "capacity": client.did_cache.capacity,
            "metrics": client.did_cache.metrics.to_dict(),
        },
    }


class ConnectivityRequest(BaseModel):
    online: bool


@app.post("/connectivity")
async def connectivity(req: ConnectivityRequest):
    """Platform connectivity signal. Going online triggers sync + refresh."""
    client = get_offline_client()
    changed = client.set_online(req.online)
    return {"online": client.connectivity.online, "changed": changed}


# -----------------------------------------------------------------------------
# Verification
# -----------------------------------------------------------------------------

@app.post("/verify")
async def verify(request: Request):
    """Verify uploaded content (JSON body, or JWT / base64url / JSON text)."""
    raw = await request.body()
    content_type = request.headers.get("content-type", "")
    body = raw.decode("utf-8", errors="replace")
    if "json" in content_type:
        try:
            body = json.loads(body)
        except ValueError:
            pass  # Falls through to text parsing
    result = await get_offline_client().verifier.verify_text(body)
    return JSONResponse(result)


@app.post("/scan")
async def scan(data: dict):
    """Record a result already verified by the scanner SDK."""
    result = get_offline_client().verifier.record_scan(data)
    return JSONResponse(result)


# -----------------------------------------------------------------------------
# Logs
# -----------------------------------------------------------------------------

@app.get("/logs")
def list_logs(q: Optional[str] = None):
    """Logs newest first, optionally filtered."""
    records = get_offline_client().events.list_for_display(q)
    return [
        {
            "id": r.id,
            "timestamp": r.timestamp,
            "synced": r.synced,
            "data": r.payload_data(),
        }
        for r in records
    ]


@app.post("/logs/sync")
async def sync_logs():
    report = await get_offline_client().sync_now()
    return report.to_dict()


@app.delete("/logs")
def clear_logs():
    removed = get_offline_client().events.clear_all()
    return {"cleared": removed}


@app.get("/logs/export.json")
def export_logs_json():
    return Response(
        content=get_offline_client().events.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="verification-logs.json"'},
    )


@app.get("/logs/export.csv")
def export_logs_csv():
    return PlainTextResponse(
        content=get_offline_client().events.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="verification-logs.csv"'},
    )


# -----------------------------------------------------------------------------
# Revocations / remote
# -----------------------------------------------------------------------------

@app.post("/revocations/refresh")
async def refresh_revocations():
    count = await get_offline_client().refresh_revocations()
    return {"success": True, "entries": count}


@app.get("/revocations/{credential_id}")
def revocation_status(credential_id: str):
    client = get_offline_client()
    status, reason = client.verifier.revocation_status(credential_id)
    return {"id": credential_id, "status": status, "reason": reason}


@app.get("/capabilities")
async def capabilities():
    return await get_offline_client().remote.capabilities()


class LogLevelRequest(BaseModel):
    level: str


@app.post("/admin/log-level")
def set_log_level(req: LogLevelRequest):
    """Change log level at runtime (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Gated by ADMIN_ENDPOINT_ENABLED.
    """
    from app.core.config import ADMIN_ENDPOINT_ENABLED

    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = req.level.upper()

    if level_upper not in valid_levels:
        return JSONResponse(
            status_code=400,
            content={"detail": f"Invalid log level. Must be one of: {valid_levels}"}
        )

    logging.getLogger().setLevel(getattr(logging, level_upper))
    log.info(f"Log level changed to {level_upper}")

    return {
        "success": True,
        "log_level": level_upper,
        "message": f"Log level set to {level_upper}"
    }
