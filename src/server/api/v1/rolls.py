"""Roll API endpoint.

Rolls the open put or call of a position to a new strike and/or
expiration. Both legs are recorded together or not at all.
"""

import logging

from fastapi import APIRouter, Depends, status

from src.server.dependencies import get_ledger_store
from src.server.models.trade_event import RollCreate, RollResponse
from src.server.repositories.ledger import SqlLedgerStore
from src.tracker.rolls import build_roll_events

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post(
    "/positions/{position_id}/roll",
    response_model=RollResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Roll an option",
    description="Buy back the open leg and sell a new one in a single step",
    responses={
        400: {"description": "Invalid roll"},
        404: {"description": "Position not found"},
        409: {"description": "Nothing to roll or version conflict"},
    },
)
def roll_position(
    position_id: str,
    roll_data: RollCreate,
    store: SqlLedgerStore = Depends(get_ledger_store),
) -> RollResponse:
    """Roll a position's open leg.

    A call roll stays on the same position. A put roll closes the
    position and returns the new one, with the closed one as
    ``rolledFrom``.

    Example:
        >>> POST /api/v1/positions/3f2a.../roll
        >>> {"new_strike": 155, "new_expiration_date": "2026-02-20",
        >>>  "close_premium": 1.0, "open_premium": 1.8}
        >>> {"position": {...}, "rolledFrom": null, "netPremium": 80.0, ...}
    """
    current = store.get_position(position_id)
    close_event, open_event = build_roll_events(
        current,
        new_strike=roll_data.new_strike,
        new_expiration=roll_data.new_expiration_date,
        close_premium=roll_data.close_premium,
        open_premium=roll_data.open_premium,
        occurred_at=roll_data.occurred_at,
        notes=roll_data.notes,
    )
    result = store.roll(
        position_id,
        close_event,
        open_event,
        expected_version=(
            roll_data.expected_version
            if roll_data.expected_version is not None else current.version
        ),
    )
    return RollResponse.from_result(result)
