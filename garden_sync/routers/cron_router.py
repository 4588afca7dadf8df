# garden_sync/routers/cron_router.py
import os
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
import structlog

from garden_sync.dependencies.sync import get_orchestrator
from garden_sync.schemas.sync_schema import BatchSyncRead
from garden_sync.services.sync_service import SyncOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/cron", tags=["cron"])

CRON_SECRET = os.getenv("CRON_SECRET")

def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    # an unset secret locks the endpoint instead of opening it
    if not CRON_SECRET or not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not secrets.compare_digest(authorization, f"Bearer {CRON_SECRET}"):
        logger.warning("cron_unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

@router.get("/daily-metrics", response_model=BatchSyncRead, dependencies=[Depends(verify_cron_secret)])
async def daily_metrics(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    try:
        result = await orchestrator.run_daily()
    except Exception as e:
        # only enumerating the users can fail the whole run
        logger.exception("daily_sync_critical_failure", error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Daily sync failed: {e}")
    return BatchSyncRead.from_result(result)
