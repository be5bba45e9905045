"""Upcoming option expirations across open positions."""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from .exceptions import ValidationError
from .models import Position, present_money
from .rolls import ROLL_LEGS, current_leg

DEFAULT_DAYS_AHEAD = 30
MAX_DAYS_AHEAD = 365


@dataclass(frozen=True)
class ExpiringLeg:
    """The open option leg of a position and when it expires."""

    position_id: str
    ticker: str
    status: str
    event_type: str
    strike: Decimal
    contracts: int
    expiration_date: date
    days_until: int
    premium: Decimal

    @property
    def overdue(self) -> bool:
        """Expired but not yet recorded as expired, assigned or called away."""
        return self.days_until < 0

    def to_dict(self) -> dict:
        return {
            "positionId": self.position_id,
            "ticker": self.ticker,
            "status": self.status,
            "eventType": self.event_type,
            "strike": present_money(self.strike),
            "contracts": self.contracts,
            "expirationDate": self.expiration_date.isoformat(),
            "daysUntil": self.days_until,
            "overdue": self.overdue,
            "premium": present_money(self.premium),
        }


def upcoming_expirations(
    positions: Iterable[Position],
    today: date,
    days_ahead: int = DEFAULT_DAYS_AHEAD,
) -> list[ExpiringLeg]:
    """
    Open option legs expiring on or before ``today + days_ahead``.

    Legs already past expiration are included and flagged overdue, since
    they still need an outcome recorded. Legs recorded without an
    expiration date are skipped.

    Args:
        positions: Position snapshots (closed ones are ignored)
        today: Reference date
        days_ahead: Look-ahead window in days (0 to 365)

    Returns:
        Legs ordered by expiration date, then ticker

    Raises:
        ValidationError: If days_ahead is out of range
    """
    if isinstance(days_ahead, bool) or not 0 <= days_ahead <= MAX_DAYS_AHEAD:
        raise ValidationError(
            f"days must be between 0 and {MAX_DAYS_AHEAD}", field="days"
        )
    horizon = today + timedelta(days=days_ahead)

    legs = []
    for position in positions:
        if position.status not in ROLL_LEGS:
            continue
        leg = current_leg(position)
        if leg.expiration_date is None or leg.expiration_date > horizon:
            continue
        legs.append(ExpiringLeg(
            position_id=position.id,
            ticker=position.ticker,
            status=position.reporting_status.value,
            event_type=leg.event_type.value,
            strike=leg.strike,
            contracts=position.open_contracts,
            expiration_date=leg.expiration_date,
            days_until=(leg.expiration_date - today).days,
            premium=leg.cash_flow,
        ))
    return sorted(legs, key=lambda leg: (leg.expiration_date, leg.ticker))


def group_by_expiration(legs: Iterable[ExpiringLeg]) -> dict[str, list[ExpiringLeg]]:
    """Legs keyed by ISO expiration date, in date order."""
    grouped: dict[str, list[ExpiringLeg]] = {}
    for leg in sorted(legs, key=lambda leg: (leg.expiration_date, leg.ticker)):
        grouped.setdefault(leg.expiration_date.isoformat(), []).append(leg)
    return grouped


def next_expiration(legs: Iterable[ExpiringLeg]) -> Optional[date]:
    """Earliest expiration that has not passed yet, if any."""
    upcoming = [leg.expiration_date for leg in legs if not leg.overdue]
    return min(upcoming) if upcoming else None
