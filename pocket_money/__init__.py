"""
Pocket Money: chore ledger for families and shared homes

This package provides:
- Ledger entries for completed chores, approved by the group head
- Role-based creation policy (heads self-approve, members wait)
- Per-member balances: approved entries minus cash settlements
- Groups, invites, chores and settlements around the ledger
"""

from .models import (
    Role,
    LedgerStatus,
    Unresolved,
    Approved,
    Rejected,
    LedgerEntry,
    Settlement,
    MemberBalance,
)
from .exceptions import (
    PocketMoneyError,
    ForbiddenError,
    NotFoundError,
    InvalidReferenceError,
    InvalidArgumentError,
    ConflictError,
    TransientError,
)
from .policy import decide_creation
from .storage import InMemoryStorage
from .service import LedgerService
from .balances import BalanceAggregator
from .groups import GroupService
from .settlements import SettlementService

__all__ = [
    "Role",
    "LedgerStatus",
    "Unresolved",
    "Approved",
    "Rejected",
    "LedgerEntry",
    "Settlement",
    "MemberBalance",
    "PocketMoneyError",
    "ForbiddenError",
    "NotFoundError",
    "InvalidReferenceError",
    "InvalidArgumentError",
    "ConflictError",
    "TransientError",
    "decide_creation",
    "InMemoryStorage",
    "LedgerService",
    "BalanceAggregator",
    "GroupService",
    "SettlementService",
]
