from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, ClassVar, Literal, Optional, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, computed_field


class Role(str, Enum):
    HEAD = "head"
    MEMBER = "member"


class LedgerStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class Unresolved(BaseModel):
    kind: Literal["unresolved"] = "unresolved"
    status: ClassVar[LedgerStatus] = LedgerStatus.PENDING_APPROVAL

    model_config = ConfigDict(frozen=True)


class Approved(BaseModel):
    kind: Literal["approved"] = "approved"
    by: UUID
    status: ClassVar[LedgerStatus] = LedgerStatus.APPROVED

    model_config = ConfigDict(frozen=True)


class Rejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    by: UUID
    status: ClassVar[LedgerStatus] = LedgerStatus.REJECTED

    model_config = ConfigDict(frozen=True)


# Who, if anyone, settled a ledger entry. Only one resolver can ever be set.
Resolution = Annotated[Union[Unresolved, Approved, Rejected], Field(discriminator="kind")]


def resolution_from_columns(
    status: LedgerStatus,
    approved_by_user_id: Optional[UUID],
    rejected_by_user_id: Optional[UUID],
) -> Union[Unresolved, Approved, Rejected]:
    """Rebuild a resolution from its stored row columns."""
    status = LedgerStatus(status)
    if status == LedgerStatus.APPROVED:
        return Approved(by=approved_by_user_id)
    if status == LedgerStatus.REJECTED:
        return Rejected(by=rejected_by_user_id)
    return Unresolved()


def resolution_to_columns(resolution: Union[Unresolved, Approved, Rejected]) -> dict:
    """Flatten a resolution into status/approver/rejecter row columns."""
    return {
        "status": resolution.status,
        "approved_by_user_id": resolution.by if isinstance(resolution, Approved) else None,
        "rejected_by_user_id": resolution.by if isinstance(resolution, Rejected) else None,
    }


class User(BaseModel):
    id: UUID
    name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Group(BaseModel):
    id: UUID
    name: str
    head_user_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Membership(BaseModel):
    group_id: UUID
    user_id: UUID
    role: Role
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberWithUser(Membership):
    name: str
    email: str


class GroupDetail(Group):
    members: list[MemberWithUser]
    chores_count: int


class Chore(BaseModel):
    id: UUID
    group_id: UUID
    name: str
    description: Optional[str] = None
    amount: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Invite(BaseModel):
    id: UUID
    group_id: UUID
    token: str
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class LedgerEntry(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID = Field(..., description="Beneficiary credited by this entry")
    chore_id: UUID
    amount: Decimal
    resolution: Resolution
    created_by_user_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_record(cls, record: dict) -> "LedgerEntry":
        return cls(
            id=record["id"],
            group_id=record["group_id"],
            user_id=record["user_id"],
            chore_id=record["chore_id"],
            amount=record["amount"],
            resolution=resolution_from_columns(
                record["status"],
                record["approved_by_user_id"],
                record["rejected_by_user_id"],
            ),
            created_by_user_id=record["created_by_user_id"],
            created_at=record["created_at"],
        )

    @computed_field
    @property
    def status(self) -> LedgerStatus:
        return self.resolution.status

    @computed_field
    @property
    def approved_by_user_id(self) -> Optional[UUID]:
        return self.resolution.by if isinstance(self.resolution, Approved) else None

    @computed_field
    @property
    def rejected_by_user_id(self) -> Optional[UUID]:
        return self.resolution.by if isinstance(self.resolution, Rejected) else None

    def is_pending(self) -> bool:
        return isinstance(self.resolution, Unresolved)


class Settlement(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    amount: Decimal
    date: date
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberBalance(BaseModel):
    user_id: UUID
    name: str
    balance: Decimal


class RegisterUserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)


class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=1)


class CreateInviteRequest(BaseModel):
    expires_in_days: Optional[int] = Field(default=None, description="Defaults to the configured expiry")


class JoinGroupRequest(BaseModel):
    token: str


class CreateChoreRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    amount: Decimal = Field(..., gt=0)


class UpdateChoreRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)


class CreateLedgerEntryRequest(BaseModel):
    chore_id: UUID
    user_id: Optional[UUID] = Field(default=None, description="Beneficiary; only a group head may choose one")
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Defaults to the chore's current amount")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "chore_id": "770e8400-e29b-41d4-a716-446655440002",
            "amount": 20.00,
        }
    })


class CreateSettlementRequest(BaseModel):
    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    date: date
    note: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "660e8400-e29b-41d4-a716-446655440001",
            "amount": 20.00,
            "date": "2026-10-18",
            "note": "Weekly payout",
        }
    })
