"""
Data export endpoints (Pro feature).

Provides:
- GET /api/export — Whether export is available on the caller's plan
- POST /api/export — Export transactions, customers, or a summary as CSV or JSON
"""

import logging
import uuid
from datetime import UTC, date, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.api.dependencies import get_feature_gate, require_feature
from ledgerly.core.exceptions import ValidationError
from ledgerly.db.database import get_db
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.services.feature_gate import FeatureGate
from ledgerly.services.report_service import ExportFormat, ExportType, ReportService, rows_to_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["Export"])


class DateRange(BaseModel):
    start: date | None = None
    end: date | None = None


class ExportRequest(BaseModel):
    format: str | None = None
    type: str | None = None
    date_range: DateRange | None = Field(default=None, alias="dateRange")

    model_config = {"populate_by_name": True}


@router.get("", summary="Check export availability")
async def export_availability(
    user_id: uuid.UUID = Depends(get_current_user_id),
    gate: FeatureGate = Depends(get_feature_gate),
):
    check = await gate.require_feature(user_id, "data_export")
    return {
        "available": check.allowed,
        "plan": check.subscription.plan.value,
        "upgradeRequired": None if check.allowed else check.upgrade_required.value,
    }


@router.post("", summary="Export ledger data")
async def export_data(
    body: ExportRequest,
    user_id: uuid.UUID = Depends(require_feature("data_export")),
    db: AsyncSession = Depends(get_db),
):
    """
    Export the caller's data.

    ``csv`` returns a file download; ``json`` returns the rows in an envelope.
    """
    try:
        export_format = ExportFormat(body.format)
    except ValueError:
        raise ValidationError("Invalid format. Must be 'csv' or 'json'.")
    try:
        export_type = ExportType(body.type)
    except ValueError:
        raise ValidationError(
            "Invalid type. Must be 'transactions', 'customers', or 'summary'."
        )

    start = body.date_range.start if body.date_range else None
    end = body.date_range.end if body.date_range else None
    if start and end and start > end:
        raise ValidationError("Date range start must not be after its end.")

    rows = await ReportService(db).export_rows(user_id, export_type, start=start, end=end)
    generated_at = datetime.now(UTC)
    logger.info(f"Exported {len(rows)} {export_type.value} rows as {export_format.value}")

    if export_format == ExportFormat.CSV:
        filename = f"ledgerly-{export_type.value}-{generated_at:%Y%m%d}.csv"
        return Response(
            content=rows_to_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return {
        "success": True,
        "format": export_format.value,
        "type": export_type.value,
        "data": rows,
        "generatedAt": generated_at.isoformat(),
    }
