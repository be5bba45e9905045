"""Data access layer repositories."""

from src.server.repositories.deposit import DepositRepository
from src.server.repositories.ledger import SqlLedgerStore

__all__ = [
    "DepositRepository",
    "SqlLedgerStore",
]
