"""
Dashboard API endpoints.

Operations counters for agents and admins.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from shiptrack.app.core import clock
from shiptrack.app.core.access_policy import Operation, require_operation
from shiptrack.app.db.session import get_db
from shiptrack.app.models.user import User
from shiptrack.app.schemas.shipment import DashboardResponse
from shiptrack.app.services.dashboard import DashboardService

router = APIRouter(prefix="/shipments/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardResponse)
async def get_dashboard_stats(
    current_user: User = Depends(require_operation(Operation.VIEW_DASHBOARD)),
    db: AsyncSession = Depends(get_db)
):
    """Point-in-time shipment counters over active shipments."""
    stats = await DashboardService.get_stats(db, clock.utcnow())
    return DashboardResponse(statistics=stats)
