import logging
from fastapi import APIRouter, HTTPException
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from typing import Optional, Dict, Any
from contentbot.config import settings
from contentbot.services.scheduler import run_once

log = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"])

scheduler: Optional[BackgroundScheduler] = None


@router.post("/run")
def run_now() -> Dict[str, Any]:
    return run_once()


@router.post("/start")
def start(cron: Optional[str] = None) -> Dict[str, Any]:
    # standard 5-field cron: m h dom mon dow, UTC
    global scheduler
    if scheduler and scheduler.running:
        return {"status": "already-running"}

    cron = cron or settings.scheduler_cron
    try:
        trigger = CronTrigger.from_crontab(cron, timezone="UTC")
    except ValueError as e:
        raise HTTPException(400, f"Invalid cron expression: {e}")
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(run_once, trigger, id="generation_sweep", replace_existing=True, max_instances=1, coalesce=True)
    scheduler.start()
    log.info("[scheduler] started with cron %s", cron)
    return {"status": "started", "cron": cron}


@router.post("/stop")
def stop() -> Dict[str, Any]:
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        log.info("[scheduler] stopped")
        return {"status": "stopped"}
    return {"status": "not-running"}


@router.get("/status")
def status() -> Dict[str, Any]:
    global scheduler
    return {"running": bool(scheduler and scheduler.running)}
