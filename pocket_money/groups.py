import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from .exceptions import ConflictError, InvalidArgumentError, NotFoundError
from .models import (
    Chore,
    CreateChoreRequest,
    CreateGroupRequest,
    CreateInviteRequest,
    Group,
    GroupDetail,
    Invite,
    JoinGroupRequest,
    MemberWithUser,
    RegisterUserRequest,
    Role,
    UpdateChoreRequest,
    User,
)
from .policy import require_head, require_member
from .storage import InMemoryStorage

logger = structlog.get_logger(__name__)

DEFAULT_INVITE_EXPIRY_DAYS = 7


class GroupService:
    """Users, groups, membership, invites and the chore catalog."""

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        invite_expiry_days: int = DEFAULT_INVITE_EXPIRY_DAYS,
    ):
        self.storage = storage or InMemoryStorage()
        self.invite_expiry_days = invite_expiry_days

    def register_user(self, request: RegisterUserRequest) -> User:
        user_data = {
            "id": uuid4(),
            "name": request.name.strip(),
            "email": request.email.strip().lower(),
            "created_at": datetime.now(timezone.utc),
        }
        user = User(**self.storage.insert_user(user_data))
        logger.info("user_registered", user_id=str(user.id))
        return user

    def get_user(self, user_id: UUID) -> User:
        user_data = self.storage.get_user(user_id)
        if not user_data:
            raise NotFoundError("user not found")
        return User(**user_data)

    def create_group(self, caller_id: UUID, request: CreateGroupRequest) -> Group:
        self.get_user(caller_id)

        now = datetime.now(timezone.utc)
        group_data = {
            "id": uuid4(),
            "name": request.name.strip(),
            "head_user_id": caller_id,
            "created_at": now,
        }
        group = Group(**self.storage.insert_group(group_data, head_joined_at=now))
        logger.info("group_created", group_id=str(group.id), head_user_id=str(caller_id))
        return group

    def list_groups(self, caller_id: UUID) -> list[Group]:
        return [Group(**g) for g in self.storage.list_groups_for_user(caller_id)]

    def get_group(self, group_id: UUID, caller_id: UUID) -> GroupDetail:
        require_member(self.storage, group_id, caller_id)
        group_data = self.storage.get_group(group_id)
        if not group_data:
            raise NotFoundError("group not found")
        return GroupDetail(
            **group_data,
            members=self._members(group_id),
            chores_count=self.storage.count_chores(group_id),
        )

    def list_members(self, group_id: UUID, caller_id: UUID) -> list[MemberWithUser]:
        require_member(self.storage, group_id, caller_id)
        return self._members(group_id)

    def create_invite(self, group_id: UUID, caller_id: UUID, request: Optional[CreateInviteRequest] = None) -> Invite:
        require_head(self.storage, group_id, caller_id, "create invites")

        expires_in_days = request.expires_in_days if request else None
        if not expires_in_days or expires_in_days <= 0:
            expires_in_days = self.invite_expiry_days

        now = datetime.now(timezone.utc)
        invite_data = {
            "id": uuid4(),
            "group_id": group_id,
            "token": secrets.token_hex(16),
            "expires_at": now + timedelta(days=expires_in_days),
            "created_at": now,
        }
        invite = Invite(**self.storage.insert_invite(invite_data))
        logger.info(
            "invite_created",
            group_id=str(group_id),
            invite_id=str(invite.id),
            expires_at=invite.expires_at.isoformat(),
        )
        return invite

    def join_group(self, caller_id: UUID, request: JoinGroupRequest) -> Group:
        self.get_user(caller_id)

        invite_data = self.storage.get_invite_by_token(request.token)
        if not invite_data:
            raise InvalidArgumentError("invalid token")
        invite = Invite(**invite_data)
        if invite.is_expired(datetime.now(timezone.utc)):
            raise InvalidArgumentError("token expired")

        if self.storage.role_of(invite.group_id, caller_id) is not None:
            raise ConflictError("already a member of this group")

        self.storage.add_member(invite.group_id, caller_id, Role.MEMBER, datetime.now(timezone.utc))
        logger.info("group_joined", group_id=str(invite.group_id), user_id=str(caller_id))
        return Group(**self.storage.get_group(invite.group_id))

    def create_chore(self, group_id: UUID, caller_id: UUID, request: CreateChoreRequest) -> Chore:
        require_head(self.storage, group_id, caller_id, "create chores")
        chore_data = {
            "id": uuid4(),
            "group_id": group_id,
            "name": request.name.strip(),
            "description": request.description,
            "amount": request.amount,
            "created_at": datetime.now(timezone.utc),
        }
        chore = Chore(**self.storage.insert_chore(chore_data))
        logger.info("chore_created", group_id=str(group_id), chore_id=str(chore.id), amount=str(chore.amount))
        return chore

    def update_chore(
        self,
        group_id: UUID,
        chore_id: UUID,
        caller_id: UUID,
        request: UpdateChoreRequest,
    ) -> Chore:
        require_head(self.storage, group_id, caller_id, "update chores")

        chore_data = self.storage.get_chore(chore_id)
        if not chore_data or chore_data["group_id"] != group_id:
            raise NotFoundError("chore not found")

        changes = request.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise InvalidArgumentError("name cannot be empty")
        if "amount" in changes and changes["amount"] is None:
            raise InvalidArgumentError("amount must be positive")

        chore = Chore(**self.storage.update_chore(chore_id, changes))
        logger.info("chore_updated", group_id=str(group_id), chore_id=str(chore_id), fields=sorted(changes))
        return chore

    def delete_chore(self, group_id: UUID, chore_id: UUID, caller_id: UUID) -> None:
        """
        Remove a chore from the catalog.

        Existing ledger entries stay as they are, so balances do not move.
        """
        require_head(self.storage, group_id, caller_id, "delete chores")

        chore_data = self.storage.get_chore(chore_id)
        if not chore_data or chore_data["group_id"] != group_id:
            raise NotFoundError("chore not found")
        if not self.storage.delete_chore(chore_id):
            raise NotFoundError("chore not found")

        logger.info("chore_deleted", group_id=str(group_id), chore_id=str(chore_id))

    def list_chores(self, group_id: UUID, caller_id: UUID) -> list[Chore]:
        require_member(self.storage, group_id, caller_id)
        return [Chore(**c) for c in self.storage.list_chores(group_id)]

    def _members(self, group_id: UUID) -> list[MemberWithUser]:
        return [MemberWithUser(**m) for m in self.storage.list_members(group_id)]
