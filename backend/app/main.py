from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException

from ingestion.felt import format_address

from . import schemas
from .core.config import settings
from .db import get_db, init_db
from .services.status_service import StatusService

app = FastAPI(title="Trunks Status API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Make sure the checkpoint table exists before the first probe."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _status_service(db=Depends(get_db)) -> StatusService:
    return StatusService(db)


@app.get("/status", response_model=schemas.SyncStatus, tags=["system"])
def sync_status(service: StatusService = Depends(_status_service)):
    """Report the checkpoint and how many contracts are being watched."""

    return service.sync_status()


@app.get("/events/{address}", response_model=schemas.EventRecord, tags=["events"])
def get_event(address: str, service: StatusService = Depends(_status_service)):
    """Return an event's resolution state together with its bets."""

    try:
        canonical = format_address(address)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="Invalid contract address") from exc

    record = service.get_event(canonical)
    if record is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return record
