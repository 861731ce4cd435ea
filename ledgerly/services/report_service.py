"""
Dashboard statistics, recent activity, and data export.

Read-only aggregation over a single user's ledger. Every query is scoped
by ``user_id`` through the repositories.
"""

import csv
import io
import uuid
from datetime import date
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.repositories.customer_repo import CustomerRepository
from ledgerly.db.repositories.transaction_repo import TransactionRepository

# Upper bound on rows in a single export
MAX_EXPORT_ROWS = 10_000


class ExportType(StrEnum):
    TRANSACTIONS = "transactions"
    CUSTOMERS = "customers"
    SUMMARY = "summary"


class ExportFormat(StrEnum):
    CSV = "csv"
    JSON = "json"


class ReportService:
    def __init__(self, session: AsyncSession):
        self._customers = CustomerRepository(session)
        self._transactions = TransactionRepository(session)

    async def dashboard_stats(self, user_id: uuid.UUID) -> dict:
        """Headline numbers for the dashboard."""
        totals = await self._transactions.totals(user_id)
        return {
            "totalDebt": round(totals["debt"], 2),
            "totalCollected": round(totals["payment"], 2),
            "outstandingBalance": round(totals["debt"] - totals["payment"], 2),
            "activeCustomers": await self._customers.count_active(user_id),
            "totalTransactions": await self._transactions.count(user_id),
        }

    async def recent_activity(self, user_id: uuid.UUID, limit: int = 10) -> list[dict]:
        transactions = await self._transactions.find_by_user(user_id, limit=limit)
        return [
            {
                "id": str(t.id),
                "customer_id": str(t.customer_id),
                "customer_name": t.customer.name if t.customer else None,
                "type": t.type,
                "amount": t.amount,
                "description": t.description,
                "transaction_date": t.transaction_date.isoformat(),
                "created_at": t.created_at.isoformat() if t.created_at else None,
            }
            for t in transactions
        ]

    async def export_rows(
        self,
        user_id: uuid.UUID,
        export_type: ExportType,
        start: date | None = None,
        end: date | None = None,
    ) -> list[dict]:
        """
        Flat rows for an export. The date range applies to transactions only.
        """
        match export_type:
            case ExportType.TRANSACTIONS:
                transactions = await self._transactions.find_by_user(
                    user_id, start=start, end=end, limit=MAX_EXPORT_ROWS
                )
                return [
                    {
                        "id": str(t.id),
                        "date": t.transaction_date.isoformat(),
                        "customer": t.customer.name if t.customer else "",
                        "type": t.type,
                        "amount": t.amount,
                        "description": t.description or "",
                    }
                    for t in transactions
                ]
            case ExportType.CUSTOMERS:
                rows = await self._customers.list_with_balances(user_id)
                return [
                    {
                        "id": str(c.id),
                        "name": c.name,
                        "phone": c.phone or "",
                        "address": c.address or "",
                        "balance": round(balance, 2),
                    }
                    for c, balance in rows
                ]
            case ExportType.SUMMARY:
                return [await self.dashboard_stats(user_id)]


def rows_to_csv(rows: list[dict]) -> str:
    """Render rows as CSV with a header taken from the first row's keys."""
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()
