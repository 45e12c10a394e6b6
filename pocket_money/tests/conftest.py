from dataclasses import dataclass
from decimal import Decimal

import pytest

from pocket_money.balances import BalanceAggregator
from pocket_money.groups import GroupService
from pocket_money.models import (
    Chore,
    CreateChoreRequest,
    CreateGroupRequest,
    Group,
    JoinGroupRequest,
    RegisterUserRequest,
    User,
)
from pocket_money.service import LedgerService
from pocket_money.settlements import SettlementService
from pocket_money.storage import InMemoryStorage


@dataclass
class Family:
    storage: InMemoryStorage
    groups: GroupService
    ledger: LedgerService
    balances: BalanceAggregator
    settlements: SettlementService
    head: User
    member: User
    second_member: User
    outsider: User
    group: Group
    dishes: Chore
    lawn: Chore


@pytest.fixture
def family() -> Family:
    """A group with one head, two members, two chores and an outsider."""
    storage = InMemoryStorage()
    groups = GroupService(storage)

    head = groups.register_user(RegisterUserRequest(name="Alex Parent", email="alex@example.com"))
    member = groups.register_user(RegisterUserRequest(name="Sam Kid", email="sam@example.com"))
    second_member = groups.register_user(RegisterUserRequest(name="Riley Kid", email="riley@example.com"))
    outsider = groups.register_user(RegisterUserRequest(name="Jordan Neighbour", email="jordan@example.com"))

    group = groups.create_group(head.id, CreateGroupRequest(name="The Parkers"))
    invite = groups.create_invite(group.id, head.id)
    groups.join_group(member.id, JoinGroupRequest(token=invite.token))
    groups.join_group(second_member.id, JoinGroupRequest(token=invite.token))

    dishes = groups.create_chore(group.id, head.id, CreateChoreRequest(name="Wash dishes", amount=Decimal("20.00")))
    lawn = groups.create_chore(group.id, head.id, CreateChoreRequest(name="Mow lawn", amount=Decimal("15.00")))

    return Family(
        storage=storage,
        groups=groups,
        ledger=LedgerService(storage),
        balances=BalanceAggregator(storage),
        settlements=SettlementService(storage),
        head=head,
        member=member,
        second_member=second_member,
        outsider=outsider,
        group=group,
        dishes=dishes,
        lawn=lawn,
    )
