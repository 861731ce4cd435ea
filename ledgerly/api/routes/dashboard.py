"""
Dashboard endpoints.

Provides:
- GET /api/dashboard/stats — Debt, collections, outstanding balance, counts
- GET /api/dashboard/activity — Most recent transactions
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.database import get_db
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.services.report_service import ReportService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", summary="Dashboard statistics")
async def dashboard_stats(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).dashboard_stats(user_id)


@router.get("/activity", summary="Recent activity")
async def dashboard_activity(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    limit: int = Query(default=10, ge=1, le=50),
):
    return {"activity": await ReportService(db).recent_activity(user_id, limit=limit)}
