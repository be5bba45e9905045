"""Cash deposit database model."""


from sqlalchemy import Column, Date, DateTime, String

from src.server.database.session import Base, utcnow


class DepositRecord(Base):
    """Cash deposit or withdrawal.

    Attributes:
        id: Deposit identifier (hex uuid)
        amount: Positive amount, decimal text
        deposit_type: "DEPOSIT" or "WITHDRAWAL"
        deposit_date: Date of the movement
        notes: Free text
    """

    __tablename__ = "deposits"

    id = Column(String, primary_key=True)
    amount = Column(String, nullable=False)
    deposit_type = Column(String, nullable=False, default="DEPOSIT", index=True)
    deposit_date = Column(Date, nullable=False, index=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DepositRecord(id={self.id}, type={self.deposit_type}, "
            f"amount={self.amount}, date={self.deposit_date})>"
        )
