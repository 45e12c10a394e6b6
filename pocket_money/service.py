from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID, uuid4

import structlog

from .exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidReferenceError,
    NotFoundError,
)
from .models import (
    Approved,
    CreateLedgerEntryRequest,
    LedgerEntry,
    LedgerStatus,
    Rejected,
    resolution_to_columns,
)
from .policy import decide_creation, require_head, require_member
from .storage import InMemoryStorage

logger = structlog.get_logger(__name__)


class LedgerService:
    def __init__(self, storage: Optional[InMemoryStorage] = None):
        self.storage = storage or InMemoryStorage()

    def create_entry(self, group_id: UUID, caller_id: UUID, request: CreateLedgerEntryRequest) -> LedgerEntry:
        role = require_member(self.storage, group_id, caller_id)

        chore = self.storage.get_chore(request.chore_id)
        if chore is None:
            raise InvalidReferenceError("chore not found")
        if chore["group_id"] != group_id:
            raise InvalidReferenceError("chore does not belong to this group")

        amount = request.amount if request.amount is not None else chore["amount"]
        if amount is None or Decimal(amount) <= 0:
            raise InvalidArgumentError("amount must be positive")

        decision = decide_creation(role, request.user_id, caller_id)
        if decision.beneficiary_id != caller_id:
            if self.storage.role_of(group_id, decision.beneficiary_id) is None:
                raise InvalidReferenceError("target user is not a member of this group")

        entry_data = {
            "id": uuid4(),
            "group_id": group_id,
            "user_id": decision.beneficiary_id,
            "chore_id": request.chore_id,
            "amount": Decimal(amount),
            "created_by_user_id": caller_id,
            "created_at": datetime.now(timezone.utc),
            **resolution_to_columns(decision.resolution),
        }
        stored = self.storage.insert_ledger_entry(entry_data)
        entry = LedgerEntry.from_record(stored)

        logger.info(
            "ledger_entry_created",
            entry_id=str(entry.id),
            group_id=str(group_id),
            beneficiary_id=str(entry.user_id),
            created_by=str(caller_id),
            amount=str(entry.amount),
            status=entry.status.value,
        )
        return entry

    def approve_entry(self, entry_id: UUID, caller_id: UUID) -> LedgerEntry:
        return self._resolve(entry_id, caller_id, Approved(by=caller_id), action="approve entries")

    def reject_entry(self, entry_id: UUID, caller_id: UUID) -> LedgerEntry:
        return self._resolve(entry_id, caller_id, Rejected(by=caller_id), action="reject entries")

    def get_entry(self, entry_id: UUID, caller_id: UUID) -> LedgerEntry:
        entry_data = self.storage.get_ledger_entry(entry_id)
        if not entry_data:
            raise NotFoundError("entry not found")
        require_member(self.storage, entry_data["group_id"], caller_id)
        return LedgerEntry.from_record(entry_data)

    def list_for_group(
        self,
        group_id: UUID,
        caller_id: UUID,
        status: Optional[Union[LedgerStatus, str]] = None,
    ) -> list[LedgerEntry]:
        require_member(self.storage, group_id, caller_id)
        status_filter = self._parse_status(status)
        return [
            LedgerEntry.from_record(e)
            for e in self.storage.list_ledger_entries(group_id, status_filter)
        ]

    def list_pending(self, group_id: UUID, caller_id: UUID) -> list[LedgerEntry]:
        require_head(self.storage, group_id, caller_id, "view pending entries")
        return [
            LedgerEntry.from_record(e)
            for e in self.storage.list_ledger_entries(group_id, LedgerStatus.PENDING_APPROVAL)
        ]

    def _resolve(
        self,
        entry_id: UUID,
        caller_id: UUID,
        resolution: Union[Approved, Rejected],
        action: str,
    ) -> LedgerEntry:
        entry_data = self.storage.get_ledger_entry(entry_id)
        if not entry_data:
            raise NotFoundError("entry not found")

        require_head(self.storage, entry_data["group_id"], caller_id, action)

        # The store re-checks the status under its lock; this read is only
        # used for authorization.
        updated = self.storage.resolve_if_pending(entry_id, **resolution_to_columns(resolution))
        if updated is None:
            logger.warning(
                "ledger_entry_transition_conflict",
                entry_id=str(entry_id),
                attempted_status=resolution.status.value,
                caller_id=str(caller_id),
            )
            raise ConflictError("entry is not pending approval")

        entry = LedgerEntry.from_record(updated)
        logger.info(
            f"ledger_entry_{entry.status.value}",
            entry_id=str(entry.id),
            group_id=str(entry.group_id),
            beneficiary_id=str(entry.user_id),
            resolved_by=str(caller_id),
        )
        return entry

    @staticmethod
    def _parse_status(status: Optional[Union[LedgerStatus, str]]) -> Optional[LedgerStatus]:
        if status is None or status == "":
            return None
        try:
            return LedgerStatus(status)
        except ValueError:
            raise InvalidArgumentError("invalid status") from None
