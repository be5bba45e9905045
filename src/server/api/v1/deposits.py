"""Cash deposit API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.server.dependencies import get_deposit_repository
from src.server.models.deposit import DepositCreate, DepositResponse
from src.server.repositories.deposit import DepositRepository
from src.tracker.deposits import summarize_deposits
from src.tracker.exceptions import ValidationError
from src.tracker.models import DepositType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["deposits"])


@router.post(
    "/deposits",
    response_model=DepositResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a deposit or withdrawal",
)
def create_deposit(
    deposit_data: DepositCreate,
    repo: DepositRepository = Depends(get_deposit_repository),
) -> DepositResponse:
    """Record a cash movement. Does not affect position P&L."""
    deposit = repo.create_deposit(deposit_data.to_deposit())
    return DepositResponse.from_deposit(deposit)


@router.get(
    "/deposits",
    response_model=list[DepositResponse],
    summary="List deposits",
)
def list_deposits(
    deposit_type: Optional[str] = Query(
        None, alias="type", description="DEPOSIT or WITHDRAWAL"
    ),
    repo: DepositRepository = Depends(get_deposit_repository),
) -> list[DepositResponse]:
    """List deposits and withdrawals, newest first."""
    type_filter = None
    if deposit_type:
        try:
            type_filter = DepositType(deposit_type.upper())
        except ValueError as e:
            raise ValidationError(
                f"Invalid deposit type '{deposit_type}'", field="type"
            ) from e
    return [DepositResponse.from_deposit(d) for d in repo.list_deposits(type_filter)]


@router.get(
    "/deposits/summary",
    summary="Deposit summary",
    description="Totals and counts of deposits and withdrawals",
)
def get_deposit_summary(
    repo: DepositRepository = Depends(get_deposit_repository),
) -> dict:
    """Cash totals, independent of position P&L."""
    return summarize_deposits(repo.list_deposits()).to_dict()
