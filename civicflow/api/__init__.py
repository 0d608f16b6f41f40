"""API routes."""

from fastapi import APIRouter

from .admin import router as admin_router
from .bids import router as bids_router
from .directory import router as directory_router
from .documents import router as documents_router
from .health import router as health_router
from .issues import router as issues_router
from .notifications import router as notifications_router
from .tenders import router as tenders_router
from .work_progress import router as work_progress_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(directory_router, prefix="/directory", tags=["Directory"])
api_router.include_router(issues_router, tags=["Issues"])
api_router.include_router(tenders_router, tags=["Tenders"])
api_router.include_router(bids_router, tags=["Bids"])
api_router.include_router(work_progress_router, tags=["Work Progress"])
api_router.include_router(documents_router, tags=["Documents"])
api_router.include_router(notifications_router, tags=["Notifications"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])

__all__ = ["api_router"]
