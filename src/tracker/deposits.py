"""Cash deposit summaries. Deposits never feed into position P&L."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .models import ZERO, Deposit, DepositType, present_money


@dataclass(frozen=True)
class DepositSummary:
    """Totals over a set of deposits and withdrawals."""

    total_deposits: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    deposit_count: int = 0
    withdrawal_count: int = 0
    first_deposit_date: Optional[date] = None
    last_deposit_date: Optional[date] = None

    @property
    def net_invested(self) -> Decimal:
        return self.total_deposits - self.total_withdrawals

    def to_dict(self) -> dict:
        return {
            "totalDeposits": present_money(self.total_deposits),
            "totalWithdrawals": present_money(self.total_withdrawals),
            "depositCount": self.deposit_count,
            "withdrawalCount": self.withdrawal_count,
            "netInvested": present_money(self.net_invested),
            "firstDepositDate": (
                self.first_deposit_date.isoformat() if self.first_deposit_date else None
            ),
            "lastDepositDate": (
                self.last_deposit_date.isoformat() if self.last_deposit_date else None
            ),
        }


def summarize_deposits(deposits: Iterable[Deposit]) -> DepositSummary:
    """
    Summarize cash movements.

    Args:
        deposits: Deposit and withdrawal records in any order

    Returns:
        DepositSummary; all zeros when there are no records
    """
    deposits = sorted(deposits, key=lambda d: d.deposit_date)
    if not deposits:
        return DepositSummary()

    incoming = [d for d in deposits if d.deposit_type == DepositType.DEPOSIT]
    outgoing = [d for d in deposits if d.deposit_type == DepositType.WITHDRAWAL]

    return DepositSummary(
        total_deposits=sum((d.amount for d in incoming), ZERO),
        total_withdrawals=sum((d.amount for d in outgoing), ZERO),
        deposit_count=len(incoming),
        withdrawal_count=len(outgoing),
        first_deposit_date=deposits[0].deposit_date,
        last_deposit_date=deposits[-1].deposit_date,
    )
