from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from .exceptions import InvalidArgumentError, InvalidReferenceError
from .models import CreateSettlementRequest, Settlement
from .policy import require_head, require_member
from .storage import InMemoryStorage

logger = structlog.get_logger(__name__)


class SettlementService:
    """Cash payouts. A settlement is written once and never changed."""

    def __init__(self, storage: Optional[InMemoryStorage] = None):
        self.storage = storage or InMemoryStorage()

    def create_settlement(self, group_id: UUID, caller_id: UUID, request: CreateSettlementRequest) -> Settlement:
        require_head(self.storage, group_id, caller_id, "create settlements")

        if request.amount is None or Decimal(request.amount) <= 0:
            raise InvalidArgumentError("amount must be positive")
        if self.storage.role_of(group_id, request.user_id) is None:
            raise InvalidReferenceError("target user is not a member of this group")

        settlement_data = {
            "id": uuid4(),
            "group_id": group_id,
            "user_id": request.user_id,
            "amount": Decimal(request.amount),
            "date": request.date,
            "note": request.note,
            "created_at": datetime.now(timezone.utc),
        }
        settlement = Settlement(**self.storage.insert_settlement(settlement_data))
        logger.info(
            "settlement_created",
            settlement_id=str(settlement.id),
            group_id=str(group_id),
            user_id=str(settlement.user_id),
            amount=str(settlement.amount),
            created_by=str(caller_id),
        )
        return settlement

    def list_settlements(self, group_id: UUID, caller_id: UUID) -> list[Settlement]:
        require_member(self.storage, group_id, caller_id)
        return [Settlement(**s) for s in self.storage.list_settlements(group_id)]
