"""Trade event API endpoint.

Appending an event is the only way to change a position. Rejected events
leave the ledger unchanged; the error handlers in ``src.server.main`` map
the domain errors to 400, 404 and 409.
"""

import logging

from fastapi import APIRouter, Depends, status

from src.server.dependencies import get_ledger_store
from src.server.models.trade_event import PositionResponse, TradeEventCreate
from src.server.repositories.ledger import SqlLedgerStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post(
    "/events",
    response_model=PositionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a trade event",
    description="Append an event to a position, or open a position with a SELL_TO_OPEN_PUT",
    responses={
        400: {"description": "Invalid event"},
        404: {"description": "Position not found"},
        409: {"description": "Transition not allowed or version conflict"},
    },
)
def create_event(
    event_data: TradeEventCreate,
    store: SqlLedgerStore = Depends(get_ledger_store),
) -> PositionResponse:
    """Record a trade event.

    Args:
        event_data: Event fields plus optional position_id and expected_version
        store: Ledger store

    Returns:
        The position after the event, with its events
    """
    event = event_data.to_event()
    position = store.append_event(
        event_data.position_id, event, expected_version=event_data.expected_version
    )
    return PositionResponse.from_position(position, include_events=True)
