# forexhub/routers/health.py
"""
Health and storage status endpoints.

GET  /health                        - Public: which store is active
GET  /v1/admin/storage              - Admin: full selector status
POST /v1/admin/storage/reconcile    - Admin: probe now and switch if warranted
"""

from fastapi import APIRouter, Depends

from forexhub.auth import require_admin_key
from forexhub.routers.deps import get_selector
from forexhub.schemas.health import HealthResponse, StorageStatus
from forexhub.storage.selector import StorageSelector

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(selector: StorageSelector = Depends(get_selector)) -> HealthResponse:
    """
    Report the active storage mode.

    Never probes: the refresh middleware already reconciled (if due)
    before this handler ran.
    """
    status = selector.status()
    return HealthResponse(
        status="ok" if status.connected else "degraded",
        connected=status.connected,
        storage_type=status.storage_type,
        can_persist=status.can_persist,
    )


@router.get("/v1/admin/storage", response_model=StorageStatus, dependencies=[Depends(require_admin_key)])
def storage_status(selector: StorageSelector = Depends(get_selector)) -> StorageStatus:
    return selector.status()


@router.post(
    "/v1/admin/storage/reconcile",
    response_model=StorageStatus,
    dependencies=[Depends(require_admin_key)],
)
async def force_reconcile(selector: StorageSelector = Depends(get_selector)) -> StorageStatus:
    await selector.reconcile()
    return selector.status()
