"""
In-memory transactional store for Pocket Money.

Records are kept as plain dicts, the way a database row would come back, and
are copied on the way in and out so callers never hold a live reference.
All access goes through one re-entrant lock acquired with a bounded timeout;
failing to acquire it surfaces as a TransientError.

Two narrow read contracts are split out so the ledger and balance logic can
be exercised against any store that provides them:

- MembershipOracle.role_of  -> the caller's role in a group, or None
- ChoreCatalog.get_chore    -> a chore's owning group and current amount
"""

import itertools
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

import structlog

from .exceptions import ConflictError, TransientError
from .models import LedgerStatus, Role

logger = structlog.get_logger(__name__)


DEMO_HEAD_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
DEMO_MEMBER_ID = UUID("660e8400-e29b-41d4-a716-446655440001")
DEMO_SECOND_MEMBER_ID = UUID("660e8400-e29b-41d4-a716-446655440002")
DEMO_GROUP_ID = UUID("11111111-1111-1111-1111-111111111111")
DEMO_DISHES_CHORE_ID = UUID("22222222-2222-2222-2222-222222222222")
DEMO_LAWN_CHORE_ID = UUID("33333333-3333-3333-3333-333333333333")


class MembershipOracle(ABC):
    @abstractmethod
    def role_of(self, group_id: UUID, user_id: UUID) -> Optional[Role]:
        """
        Resolve a user's role in a group.

        Returns:
            The role, or None when the user is not a member.
        """


class ChoreCatalog(ABC):
    @abstractmethod
    def get_chore(self, chore_id: UUID) -> Optional[dict]:
        """Return the chore record (owning group, amount, ...) or None."""


@dataclass
class BalanceSnapshot:
    """Everything a balance computation reads, captured under one lock."""
    members: list[dict] = field(default_factory=list)
    approved_entries: list[dict] = field(default_factory=list)
    settlements: list[dict] = field(default_factory=list)


class InMemoryStorage(MembershipOracle, ChoreCatalog):
    def __init__(self, seed_demo_data: bool = False, timeout_seconds: float = 5.0):
        self.users: dict[UUID, dict] = {}
        self.groups: dict[UUID, dict] = {}
        self.memberships: dict[tuple[UUID, UUID], dict] = {}
        self.chores: dict[UUID, dict] = {}
        self.invites: dict[str, dict] = {}
        self.ledger_entries: dict[UUID, dict] = {}
        self.settlements: dict[UUID, dict] = {}
        self.email_index: dict[str, UUID] = {}
        self.timeout_seconds = timeout_seconds
        self._lock = threading.RLock()
        self._sequence = itertools.count(1)
        if seed_demo_data:
            self._seed_data()

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStorage"]:
        if not self._lock.acquire(timeout=self.timeout_seconds):
            logger.error("store_lock_timeout", timeout_seconds=self.timeout_seconds)
            raise TransientError("storage is busy, try again")
        try:
            yield self
        finally:
            self._lock.release()

    def _stamp(self, record: dict) -> dict:
        record = dict(record)
        record["seq"] = next(self._sequence)
        return record

    # Users

    def insert_user(self, record: dict) -> dict:
        with self.transaction():
            email = record["email"].lower()
            if email in self.email_index:
                raise ConflictError("email already registered")
            stored = self._stamp(record)
            self.users[stored["id"]] = stored
            self.email_index[email] = stored["id"]
            return dict(stored)

    def get_user(self, user_id: UUID) -> Optional[dict]:
        with self.transaction():
            record = self.users.get(user_id)
            return dict(record) if record else None

    # Groups and membership

    def insert_group(self, record: dict, head_joined_at: datetime) -> dict:
        """Insert a group and its head membership as one unit."""
        with self.transaction():
            stored = self._stamp(record)
            self.groups[stored["id"]] = stored
            self._insert_membership(stored["id"], stored["head_user_id"], Role.HEAD, head_joined_at)
            return dict(stored)

    def get_group(self, group_id: UUID) -> Optional[dict]:
        with self.transaction():
            record = self.groups.get(group_id)
            return dict(record) if record else None

    def list_groups_for_user(self, user_id: UUID) -> list[dict]:
        with self.transaction():
            groups = [
                dict(self.groups[group_id])
                for (group_id, member_id) in self.memberships
                if member_id == user_id
            ]
        groups.sort(key=lambda g: (g["created_at"], g["seq"]), reverse=True)
        return groups

    def role_of(self, group_id: UUID, user_id: UUID) -> Optional[Role]:
        with self.transaction():
            membership = self.memberships.get((group_id, user_id))
            return membership["role"] if membership else None

    def add_member(self, group_id: UUID, user_id: UUID, role: Role, joined_at: datetime) -> dict:
        with self.transaction():
            return dict(self._insert_membership(group_id, user_id, role, joined_at))

    def _insert_membership(self, group_id: UUID, user_id: UUID, role: Role, joined_at: datetime) -> dict:
        key = (group_id, user_id)
        if key in self.memberships:
            raise ConflictError("already a member of this group")
        stored = self._stamp({
            "group_id": group_id, "user_id": user_id,
            "role": role, "joined_at": joined_at,
        })
        self.memberships[key] = stored
        return stored

    def list_members(self, group_id: UUID) -> list[dict]:
        with self.transaction():
            return self._members_with_users(group_id)

    def _members_with_users(self, group_id: UUID) -> list[dict]:
        members = []
        for (member_group_id, user_id), membership in self.memberships.items():
            if member_group_id != group_id:
                continue
            user = self.users.get(user_id, {})
            members.append({
                **membership,
                "name": user.get("name", ""),
                "email": user.get("email", ""),
            })
        members.sort(key=lambda m: (m["joined_at"], m["seq"]))
        return members

    # Invites

    def insert_invite(self, record: dict) -> dict:
        with self.transaction():
            stored = self._stamp(record)
            self.invites[stored["token"]] = stored
            return dict(stored)

    def get_invite_by_token(self, token: str) -> Optional[dict]:
        with self.transaction():
            record = self.invites.get(token)
            return dict(record) if record else None

    # Chores

    def insert_chore(self, record: dict) -> dict:
        with self.transaction():
            stored = self._stamp(record)
            self.chores[stored["id"]] = stored
            return dict(stored)

    def get_chore(self, chore_id: UUID) -> Optional[dict]:
        with self.transaction():
            record = self.chores.get(chore_id)
            return dict(record) if record else None

    def update_chore(self, chore_id: UUID, changes: dict) -> Optional[dict]:
        with self.transaction():
            record = self.chores.get(chore_id)
            if record is None:
                return None
            # The owning group never changes.
            changes = {k: v for k, v in changes.items() if k not in ("id", "group_id", "seq")}
            record.update(changes)
            return dict(record)

    def delete_chore(self, chore_id: UUID) -> bool:
        # Ledger entries keep their chore_id; the amount lives on the entry.
        with self.transaction():
            return self.chores.pop(chore_id, None) is not None

    def list_chores(self, group_id: UUID) -> list[dict]:
        with self.transaction():
            chores = [dict(c) for c in self.chores.values() if c["group_id"] == group_id]
        chores.sort(key=lambda c: (c["name"].lower(), c["seq"]))
        return chores

    def count_chores(self, group_id: UUID) -> int:
        with self.transaction():
            return sum(1 for c in self.chores.values() if c["group_id"] == group_id)

    # Ledger entries

    def insert_ledger_entry(self, record: dict) -> dict:
        with self.transaction():
            stored = self._stamp(record)
            self.ledger_entries[stored["id"]] = stored
            return dict(stored)

    def get_ledger_entry(self, entry_id: UUID) -> Optional[dict]:
        with self.transaction():
            record = self.ledger_entries.get(entry_id)
            return dict(record) if record else None

    def list_ledger_entries(self, group_id: UUID, status: Optional[LedgerStatus] = None) -> list[dict]:
        with self.transaction():
            entries = [
                dict(e) for e in self.ledger_entries.values()
                if e["group_id"] == group_id and (status is None or e["status"] == status)
            ]
        entries.sort(key=lambda e: (e["created_at"], e["seq"]), reverse=True)
        return entries

    def resolve_if_pending(
        self,
        entry_id: UUID,
        status: LedgerStatus,
        approved_by_user_id: Optional[UUID],
        rejected_by_user_id: Optional[UUID],
    ) -> Optional[dict]:
        """
        Move an entry out of pending_approval in a single guarded update.

        The status check and the write happen under the same lock, so of two
        racing callers exactly one sees its update applied.

        Returns:
            The updated record, or None when the entry is missing or no
            longer pending.
        """
        with self.transaction():
            record = self.ledger_entries.get(entry_id)
            if record is None or record["status"] != LedgerStatus.PENDING_APPROVAL:
                return None
            record["status"] = status
            record["approved_by_user_id"] = approved_by_user_id
            record["rejected_by_user_id"] = rejected_by_user_id
            return dict(record)

    # Settlements

    def insert_settlement(self, record: dict) -> dict:
        with self.transaction():
            stored = self._stamp(record)
            self.settlements[stored["id"]] = stored
            return dict(stored)

    def list_settlements(self, group_id: UUID) -> list[dict]:
        with self.transaction():
            settlements = [dict(s) for s in self.settlements.values() if s["group_id"] == group_id]
        settlements.sort(key=lambda s: (s["date"], s["created_at"], s["seq"]), reverse=True)
        return settlements

    # Balances

    def balance_snapshot(self, group_id: UUID) -> BalanceSnapshot:
        with self.transaction():
            return BalanceSnapshot(
                members=self._members_with_users(group_id),
                approved_entries=[
                    dict(e) for e in self.ledger_entries.values()
                    if e["group_id"] == group_id and e["status"] == LedgerStatus.APPROVED
                ],
                settlements=[dict(s) for s in self.settlements.values() if s["group_id"] == group_id],
            )

    def _seed_data(self):
        now = datetime.now(timezone.utc)

        for user_id, name, email in (
            (DEMO_HEAD_ID, "Alex Parent", "alex@example.com"),
            (DEMO_MEMBER_ID, "Sam Kid", "sam@example.com"),
            (DEMO_SECOND_MEMBER_ID, "Riley Kid", "riley@example.com"),
        ):
            self.insert_user({"id": user_id, "name": name, "email": email, "created_at": now})

        self.insert_group(
            {"id": DEMO_GROUP_ID, "name": "The Parkers", "head_user_id": DEMO_HEAD_ID, "created_at": now},
            head_joined_at=now,
        )
        self.add_member(DEMO_GROUP_ID, DEMO_MEMBER_ID, Role.MEMBER, now)
        self.add_member(DEMO_GROUP_ID, DEMO_SECOND_MEMBER_ID, Role.MEMBER, now)

        self.insert_chore({
            "id": DEMO_DISHES_CHORE_ID, "group_id": DEMO_GROUP_ID,
            "name": "Wash dishes", "description": "After dinner",
            "amount": Decimal("20.00"), "created_at": now,
        })
        self.insert_chore({
            "id": DEMO_LAWN_CHORE_ID, "group_id": DEMO_GROUP_ID,
            "name": "Mow lawn", "description": None,
            "amount": Decimal("15.00"), "created_at": now,
        })
