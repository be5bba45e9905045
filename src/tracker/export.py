"""
CSV exports of position P&L and cash deposits.

Each export is a table of rows followed by a blank line and a summary
section. Money is written to cents.
"""

import csv
import io
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .deposits import summarize_deposits
from .exceptions import ValidationError
from .models import ZERO, Deposit, round_money
from .pnl import PositionPL

PL_HEADER = [
    "Date Opened",
    "Date Closed",
    "Ticker",
    "Status",
    "Contracts",
    "Premium Collected",
    "Premium P&L",
    "Realized P&L",
    "Unrealized P&L",
    "Total P&L",
    "Stale",
]

DEPOSIT_HEADER = ["Date", "Type", "Amount", "Notes"]


def _money(value: Optional[Decimal]) -> str:
    rounded = round_money(value)
    return "" if rounded is None else f"{rounded:.2f}"


def _date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def export_filename(prefix: str, today: date) -> str:
    """e.g. ``pl-report-2026-03-01.csv``."""
    return f"{prefix}-{today.isoformat()}.csv"


def select_opened_between(
    results: Iterable[PositionPL],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[PositionPL]:
    """
    Results for positions opened within ``[start, end]``, oldest first.

    Raises:
        ValidationError: If start is after end
    """
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate", field="startDate")
    selected = [
        r for r in results
        if (start is None or r.position.opened_at >= start)
        and (end is None or r.position.opened_at <= end)
    ]
    return sorted(selected, key=lambda r: (r.position.opened_at, r.ticker, r.position.id))


def pl_report_csv(
    results: Iterable[PositionPL],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> str:
    """
    Per-position P&L as CSV, with a summary section.

    Args:
        results: Per-position P&L
        start: Only positions opened on or after this date
        end: Only positions opened on or before this date

    Returns:
        CSV text
    """
    rows = select_opened_between(results, start, end)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(PL_HEADER)

    for r in rows:
        position = r.position
        writer.writerow([
            _date(position.opened_at),
            _date(position.closed_at),
            position.ticker,
            position.reporting_status.value,
            position.open_contracts,
            _money(position.premium_collected),
            _money(r.premium_pl),
            _money(r.realized_pl),
            _money(r.unrealized_pl),
            _money(r.total_pl),
            "yes" if r.stale else "",
        ])

    closed = [r for r in rows if r.is_closed]
    premium_collected = sum((r.position.premium_collected for r in rows), ZERO)

    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerow(["Total Positions", len(rows)])
    writer.writerow(["Closed Positions", len(closed)])
    writer.writerow(["Open Positions", len(rows) - len(closed)])
    writer.writerow(["Total Premium Collected", _money(premium_collected)])
    writer.writerow(["Total Premium P&L", _money(sum((r.premium_pl for r in rows), ZERO))])
    writer.writerow(["Total Realized P&L", _money(sum((r.realized_pl for r in rows), ZERO))])
    writer.writerow(["Total P&L", _money(sum((r.total_pl for r in rows), ZERO))])
    if rows:
        writer.writerow(
            ["Average Premium per Position", _money(premium_collected / len(rows))]
        )

    if start or end:
        writer.writerow([])
        writer.writerow(["Date Range"])
        if start:
            writer.writerow(["Start Date", _date(start)])
        if end:
            writer.writerow(["End Date", _date(end)])

    return output.getvalue()


def deposits_csv(deposits: Iterable[Deposit]) -> str:
    """Deposits and withdrawals as CSV, oldest first, with totals."""
    records = sorted(deposits, key=lambda d: d.deposit_date)
    summary = summarize_deposits(records)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(DEPOSIT_HEADER)
    for record in records:
        writer.writerow([
            _date(record.deposit_date),
            record.deposit_type.value,
            _money(record.amount),
            record.notes or "",
        ])

    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerow(["Total Deposits", _money(summary.total_deposits)])
    writer.writerow(["Deposit Count", summary.deposit_count])
    writer.writerow(["Total Withdrawals", _money(summary.total_withdrawals)])
    writer.writerow(["Withdrawal Count", summary.withdrawal_count])
    writer.writerow(["Net Invested", _money(summary.net_invested)])
    writer.writerow(["Total Transactions", len(records)])

    if records:
        writer.writerow([])
        writer.writerow(["Date Range"])
        writer.writerow(["First Transaction", _date(summary.first_deposit_date)])
        writer.writerow(["Last Transaction", _date(summary.last_deposit_date)])

    return output.getvalue()
