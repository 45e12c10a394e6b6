"""
Role-based creation policy for ledger entries.

A head records work for anyone in the group and the entry is approved on the
spot; a member can only credit themselves and must wait for the head.

The membership gates used by every group-scoped operation live here too.
"""

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from .exceptions import ForbiddenError
from .models import Approved, Role, Unresolved
from .storage import MembershipOracle


@dataclass(frozen=True)
class CreationDecision:
    beneficiary_id: UUID
    resolution: Union[Unresolved, Approved]


class HeadPolicy:
    def decide(self, caller_id: UUID, requested_beneficiary_id: Optional[UUID]) -> CreationDecision:
        return CreationDecision(
            beneficiary_id=requested_beneficiary_id or caller_id,
            resolution=Approved(by=caller_id),
        )


class MemberPolicy:
    def decide(self, caller_id: UUID, requested_beneficiary_id: Optional[UUID]) -> CreationDecision:
        # Any requested beneficiary is ignored.
        return CreationDecision(beneficiary_id=caller_id, resolution=Unresolved())


CreationPolicy = Union[HeadPolicy, MemberPolicy]

POLICIES: dict[Role, CreationPolicy] = {
    Role.HEAD: HeadPolicy(),
    Role.MEMBER: MemberPolicy(),
}


def policy_for(role: Role) -> CreationPolicy:
    return POLICIES[Role(role)]


def require_member(oracle: MembershipOracle, group_id: UUID, caller_id: UUID) -> Role:
    role = oracle.role_of(group_id, caller_id)
    if role is None:
        raise ForbiddenError("not a member of this group")
    return role


def require_head(oracle: MembershipOracle, group_id: UUID, caller_id: UUID, action: str) -> Role:
    role = require_member(oracle, group_id, caller_id)
    if role != Role.HEAD:
        raise ForbiddenError(f"only group head can {action}")
    return role


def decide_creation(
    role: Role,
    requested_beneficiary_id: Optional[UUID],
    caller_id: UUID,
) -> CreationDecision:
    """Pick the beneficiary and initial resolution for a new ledger entry."""
    return policy_for(role).decide(caller_id, requested_beneficiary_id)
