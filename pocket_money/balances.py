"""
Per-member balances for a group.

    balance = sum(approved ledger entries credited to the member)
              - sum(settlements paid out to the member)

Balances are derived on every call and never stored. Pending and rejected
entries do not count. Every member is reported, with zero when nothing
applies to them.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from .models import MemberBalance
from .policy import require_member
from .storage import BalanceSnapshot, InMemoryStorage

logger = structlog.get_logger(__name__)


def aggregate_balances(snapshot: BalanceSnapshot) -> list[MemberBalance]:
    credits: dict[UUID, Decimal] = defaultdict(Decimal)
    for entry in snapshot.approved_entries:
        credits[entry["user_id"]] += Decimal(entry["amount"])

    payouts: dict[UUID, Decimal] = defaultdict(Decimal)
    for settlement in snapshot.settlements:
        payouts[settlement["user_id"]] += Decimal(settlement["amount"])

    balances = [
        MemberBalance(
            user_id=member["user_id"],
            name=member["name"],
            balance=credits[member["user_id"]] - payouts[member["user_id"]],
        )
        for member in snapshot.members
    ]
    balances.sort(key=lambda b: (b.name.lower(), str(b.user_id)))
    return balances


class BalanceAggregator:
    def __init__(self, storage: Optional[InMemoryStorage] = None):
        self.storage = storage or InMemoryStorage()

    def compute_balances(self, group_id: UUID, caller_id: UUID) -> list[MemberBalance]:
        require_member(self.storage, group_id, caller_id)
        balances = aggregate_balances(self.storage.balance_snapshot(group_id))
        logger.debug("balances_computed", group_id=str(group_id), members=len(balances))
        return balances
