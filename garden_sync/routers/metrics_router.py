# garden_sync/routers/metrics_router.py
from fastapi import APIRouter, Depends
import structlog

from garden_sync.dependencies.auth import get_current_user
from garden_sync.dependencies.sync import get_orchestrator
from garden_sync.routers.error_mapping import to_http_exception
from garden_sync.schemas.sync_schema import SyncRead
from garden_sync.services.errors import GardenSyncError
from garden_sync.services.sync_service import SyncOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/metrics", tags=["metrics"])

@router.post("/sync", response_model=SyncRead)
async def sync_metrics(orchestrator: SyncOrchestrator = Depends(get_orchestrator), current_user = Depends(get_current_user)):
    """Sync yesterday's metrics for the calling user right away."""
    try:
        result = await orchestrator.sync_user(current_user.id)
    except GardenSyncError as exc:
        logger.info("manual_sync_failed", user_id=str(current_user.id), error=str(exc))
        raise to_http_exception(exc)
    return SyncRead.from_result(result)
