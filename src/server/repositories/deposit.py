"""Repository for cash deposit records."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.server.database.models.deposit import DepositRecord
from src.tracker.models import Deposit, DepositType

logger = logging.getLogger(__name__)


def _deposit_from_record(record: DepositRecord) -> Deposit:
    return Deposit(
        id=record.id,
        amount=Decimal(record.amount),
        deposit_date=record.deposit_date,
        deposit_type=DepositType(record.deposit_type),
        notes=record.notes,
    )


class DepositRepository:
    """Repository for deposit data access.

    Attributes:
        db: SQLAlchemy database session
    """

    def __init__(self, db: Session):
        self.db = db

    def create_deposit(self, deposit: Deposit) -> Deposit:
        """Persist a validated deposit.

        Args:
            deposit: Deposit or withdrawal to store

        Returns:
            The stored deposit
        """
        record = DepositRecord(
            id=deposit.id,
            amount=str(deposit.amount),
            deposit_type=deposit.deposit_type.value,
            deposit_date=deposit.deposit_date,
            notes=deposit.notes,
        )
        self.db.add(record)
        self.db.commit()

        logger.info(
            f"Recorded {deposit.deposit_type.value.lower()} of {deposit.amount} "
            f"on {deposit.deposit_date.isoformat()}"
        )
        return deposit

    def list_deposits(
        self,
        deposit_type: Optional[DepositType] = None,
        since: Optional[date] = None,
    ) -> list[Deposit]:
        """List deposits, newest first.

        Args:
            deposit_type: Only this direction, if given
            since: Only deposits on or after this date
        """
        query = self.db.query(DepositRecord)
        if deposit_type is not None:
            query = query.filter(DepositRecord.deposit_type == deposit_type.value)
        if since is not None:
            query = query.filter(DepositRecord.deposit_date >= since)
        records = query.order_by(
            DepositRecord.deposit_date.desc(), DepositRecord.created_at.desc()
        ).all()
        return [_deposit_from_record(r) for r in records]
