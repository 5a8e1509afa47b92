"""
REST endpoints for the dashboard and the CLI
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from news_digest.core.exceptions import ScheduleError
from news_digest.scheduler.digest_scheduler import DigestScheduler
from news_digest.services.sanitizer import is_valid_email, mask_email
from news_digest.storage.base import SCHEDULE_ENABLED, SCHEDULE_INTERVAL, Storage

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100


class IntervalRequest(BaseModel):
    interval: int


class RecipientsRequest(BaseModel):
    recipients: List[str]


def _storage(request: Request) -> Storage:
    return request.app.state.storage


def _scheduler(request: Request) -> DigestScheduler:
    return request.app.state.scheduler


def _schedule_state(request: Request) -> dict:
    storage = _storage(request)
    scheduler = _scheduler(request)
    next_run = scheduler.get_next_run_time()
    return {
        "enabled": storage.get_setting_value(SCHEDULE_ENABLED, "false") == "true",
        "interval": int(storage.get_setting_value(SCHEDULE_INTERVAL, "3")),
        "recipients": storage.get_recipients(),
        "is_active": scheduler.is_schedule_active(),
        "is_running": scheduler.is_running,
        "next_run": next_run.isoformat() if next_run else None,
    }


@router.get("/health")
async def health_check(request: Request):
    """Liveness plus the state of the scheduler and the model provider"""
    scheduler = _scheduler(request)
    llm_service = request.app.state.llm_service
    return {
        "status": "healthy",
        "services": {
            "llm": llm_service.get_provider_info(),
            "storage": type(_storage(request)).__name__,
            "scheduler": "active" if scheduler.is_schedule_active() else "inactive",
        },
    }


@router.get("/api/dashboard/stats")
async def dashboard_stats(request: Request):
    scheduler = _scheduler(request)
    stats = _storage(request).get_digest_stats()
    stats.schedule_active = scheduler.is_schedule_active()
    next_run = scheduler.get_next_run_time()
    if next_run:
        stats.next_digest_time = next_run.isoformat()
    return stats


@router.get("/api/digests")
async def list_digests(request: Request, limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
                       offset: int = Query(0, ge=0)):
    return _storage(request).list_digests(limit=limit, offset=offset)


@router.get("/api/digests/{digest_id}")
async def get_digest(request: Request, digest_id: str):
    digest = _storage(request).get_digest(digest_id)
    if digest is None:
        raise HTTPException(status_code=404, detail="Digest not found")
    return digest


@router.get("/api/digests/{digest_id}/email-logs")
async def digest_email_logs(request: Request, digest_id: str):
    storage = _storage(request)
    if storage.get_digest(digest_id) is None:
        raise HTTPException(status_code=404, detail="Digest not found")
    return storage.list_email_logs_for_digest(digest_id)


@router.get("/api/logs")
async def system_logs(request: Request, limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
                      offset: int = Query(0, ge=0)):
    return _storage(request).list_system_logs(limit=limit, offset=offset)


@router.get("/api/email-logs")
async def email_logs(request: Request, limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
                     offset: int = Query(0, ge=0)):
    return _storage(request).list_email_logs(limit=limit, offset=offset)


@router.post("/api/digest/trigger")
async def trigger_digest(request: Request):
    """Run the pipeline now; failures come back in the body, not as HTTP errors"""
    return await _scheduler(request).manual_trigger()


@router.get("/api/schedule")
async def get_schedule(request: Request):
    return _schedule_state(request)


@router.post("/api/schedule/toggle")
async def toggle_schedule(request: Request):
    storage = _storage(request)
    scheduler = _scheduler(request)

    if scheduler.is_schedule_active():
        scheduler.stop_schedule(disable=True)
    else:
        interval = int(storage.get_setting_value(SCHEDULE_INTERVAL, "3"))
        try:
            scheduler.start_schedule(interval)
        except ScheduleError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return _schedule_state(request)


@router.post("/api/schedule/interval")
async def set_interval(request: Request, body: IntervalRequest):
    storage = _storage(request)
    scheduler = _scheduler(request)

    if not 1 <= body.interval <= 24:
        raise HTTPException(status_code=400, detail="Interval must be between 1 and 24 hours")

    storage.set_setting(SCHEDULE_INTERVAL, str(body.interval))
    if storage.get_setting_value(SCHEDULE_ENABLED, "false") == "true":
        try:
            scheduler.start_schedule(body.interval)
        except ScheduleError as e:
            raise HTTPException(status_code=400, detail=str(e))
    storage.create_system_log("info", f"Digest interval set to {body.interval} hour(s)")
    return _schedule_state(request)


@router.get("/api/recipients")
async def get_recipients(request: Request):
    return {"recipients": _storage(request).get_recipients()}


@router.post("/api/recipients")
async def set_recipients(request: Request, body: RecipientsRequest):
    recipients = [r.strip() for r in body.recipients if r.strip()]
    invalid = [r for r in recipients if not is_valid_email(r)]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid email address: {mask_email(invalid[0])}")

    # Keep first occurrence order, drop duplicates
    unique = list(dict.fromkeys(recipients))
    storage = _storage(request)
    storage.set_recipients(unique)
    storage.create_system_log("info", f"Recipient list updated ({len(unique)} addresses)")
    logger.info(f"Recipients updated: {', '.join(mask_email(r) for r in unique)}")
    return {"recipients": unique}


@router.get("/api/settings")
async def list_settings(request: Request):
    return _storage(request).list_settings()
