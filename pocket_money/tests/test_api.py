"""
HTTP binding tests: routes, caller header and error mapping.
"""

import pytest
from decimal import Decimal
from uuid import UUID

from fastapi.testclient import TestClient

from pocket_money.api import create_app
from pocket_money.config import Settings
from pocket_money.storage import (
    DEMO_DISHES_CHORE_ID,
    DEMO_GROUP_ID,
    DEMO_HEAD_ID,
    DEMO_LAWN_CHORE_ID,
    DEMO_MEMBER_ID,
    DEMO_SECOND_MEMBER_ID,
    InMemoryStorage,
)


OUTSIDER_ID = UUID("99999999-9999-9999-9999-999999999999")
MISSING_ID = UUID("00000000-0000-0000-0000-000000000000")


def as_user(user_id):
    return {"X-User-ID": str(user_id)}


@pytest.fixture
def client():
    settings = Settings(log_json=False, app_name="pocket-money-test")
    app = create_app(storage=InMemoryStorage(seed_demo_data=True), settings=settings)
    return TestClient(app)


def balances(client, caller=DEMO_HEAD_ID):
    response = client.get(f"/groups/{DEMO_GROUP_ID}/balance", headers=as_user(caller))
    assert response.status_code == 200
    return {UUID(b["user_id"]): Decimal(str(b["balance"])) for b in response.json()}


class TestSystem:
    """Health check and caller identification."""

    def test_health(self, client):
        """Health reports the configured service name."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "pocket-money-test"}

    def test_missing_caller_header(self, client):
        """Group routes need the X-User-ID header."""
        response = client.get(f"/groups/{DEMO_GROUP_ID}/ledger")

        assert response.status_code == 422


class TestLedgerRoutes:
    """Ledger entry lifecycle over HTTP."""

    def test_member_request_approved_and_settled(self, client):
        """Member request, head approval, then a settlement brings the balance back to zero."""
        created = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_DISHES_CHORE_ID), "amount": "20.00"},
            headers=as_user(DEMO_MEMBER_ID),
        )
        assert created.status_code == 201
        entry = created.json()
        assert entry["status"] == "pending_approval"
        assert entry["user_id"] == str(DEMO_MEMBER_ID)
        assert entry["approved_by_user_id"] is None

        pending = client.get(f"/groups/{DEMO_GROUP_ID}/pending", headers=as_user(DEMO_HEAD_ID))
        assert [e["id"] for e in pending.json()] == [entry["id"]]

        approved = client.post(f"/ledger/{entry['id']}/approve", headers=as_user(DEMO_HEAD_ID))
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by_user_id"] == str(DEMO_HEAD_ID)
        assert balances(client)[DEMO_MEMBER_ID] == Decimal("20")

        settled = client.post(
            f"/groups/{DEMO_GROUP_ID}/settlements",
            json={"user_id": str(DEMO_MEMBER_ID), "amount": 20, "date": "2026-10-18"},
            headers=as_user(DEMO_HEAD_ID),
        )
        assert settled.status_code == 201
        assert balances(client)[DEMO_MEMBER_ID] == Decimal("0")

    def test_head_credits_other_member_directly(self, client):
        """A head entry for another member is approved on creation."""
        created = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_LAWN_CHORE_ID), "user_id": str(DEMO_SECOND_MEMBER_ID)},
            headers=as_user(DEMO_HEAD_ID),
        )

        assert created.status_code == 201
        assert created.json()["status"] == "approved"
        assert balances(client)[DEMO_SECOND_MEMBER_ID] == Decimal("15")

    def test_second_approval_is_conflict(self, client):
        """A rejected entry cannot be approved afterwards."""
        entry = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_DISHES_CHORE_ID)},
            headers=as_user(DEMO_MEMBER_ID),
        ).json()
        client.post(f"/ledger/{entry['id']}/reject", headers=as_user(DEMO_HEAD_ID))

        response = client.post(f"/ledger/{entry['id']}/approve", headers=as_user(DEMO_HEAD_ID))

        assert response.status_code == 409
        assert response.json() == {"error": "entry is not pending approval", "code": "CONFLICT"}

    def test_member_cannot_approve(self, client):
        """Only the head resolves entries, even the beneficiary gets 403."""
        entry = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_DISHES_CHORE_ID)},
            headers=as_user(DEMO_MEMBER_ID),
        ).json()

        response = client.post(f"/ledger/{entry['id']}/approve", headers=as_user(DEMO_MEMBER_ID))

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_missing_entry(self, client):
        """Unknown entry ids map to 404."""
        response = client.post(f"/ledger/{MISSING_ID}/approve", headers=as_user(DEMO_HEAD_ID))

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_invalid_status_filter(self, client):
        """An unknown status filter is a 400."""
        response = client.get(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            params={"status": "paid"},
            headers=as_user(DEMO_MEMBER_ID),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ARGUMENT"

    def test_unknown_chore(self, client):
        """A chore id that does not exist is an invalid reference."""
        response = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(MISSING_ID), "amount": 5},
            headers=as_user(DEMO_MEMBER_ID),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "chore not found", "code": "INVALID_REFERENCE"}

    def test_non_positive_amount_rejected_at_the_edge(self, client):
        """Request validation refuses a zero amount before the service runs."""
        response = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_DISHES_CHORE_ID), "amount": 0},
            headers=as_user(DEMO_MEMBER_ID),
        )

        assert response.status_code == 422

    @pytest.mark.parametrize("method, path", [
        ("get", f"/groups/{DEMO_GROUP_ID}/ledger"),
        ("get", f"/groups/{DEMO_GROUP_ID}/pending"),
        ("get", f"/groups/{DEMO_GROUP_ID}/balance"),
        ("get", f"/groups/{DEMO_GROUP_ID}/settlements"),
        ("get", f"/groups/{MISSING_ID}/ledger"),
        ("get", f"/groups/{MISSING_ID}/balance"),
    ])
    def test_outsider_is_forbidden(self, client, method, path):
        """Non-members get 403 on every group read, existing group or not."""
        response = getattr(client, method)(path, headers=as_user(OUTSIDER_ID))

        assert response.status_code == 403

    def test_outsider_cannot_create_entry(self, client):
        """Membership is checked before the chore."""
        response = client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(MISSING_ID)},
            headers=as_user(OUTSIDER_ID),
        )

        assert response.status_code == 403


class TestGroupRoutes:
    """Users, groups, invites and chores over HTTP."""

    def test_register_create_invite_join(self, client):
        """Register two users, create a group, invite and join."""
        owner = client.post("/users", json={"name": "Casey Host", "email": "casey@example.com"}).json()
        guest = client.post("/users", json={"name": "Morgan Guest", "email": "morgan@example.com"}).json()

        group = client.post("/groups", json={"name": "Flat 4"}, headers=as_user(owner["id"]))
        assert group.status_code == 201
        group_id = group.json()["id"]

        invite = client.post(f"/groups/{group_id}/invite", json={"expires_in_days": 3}, headers=as_user(owner["id"]))
        assert invite.status_code == 201

        joined = client.post("/groups/join", json={"token": invite.json()["token"]}, headers=as_user(guest["id"]))
        assert joined.status_code == 200
        assert joined.json()["id"] == group_id

        members = client.get(f"/groups/{group_id}/members", headers=as_user(guest["id"])).json()
        assert [(m["name"], m["role"]) for m in members] == [("Casey Host", "head"), ("Morgan Guest", "member")]

    def test_chore_routes(self, client):
        """Create and update a chore, then see it counted on the group."""
        created = client.post(
            f"/groups/{DEMO_GROUP_ID}/chores",
            json={"name": "Take out bins", "amount": "5.00"},
            headers=as_user(DEMO_HEAD_ID),
        )
        assert created.status_code == 201

        updated = client.patch(
            f"/groups/{DEMO_GROUP_ID}/chores/{created.json()['id']}",
            json={"amount": "6.00"},
            headers=as_user(DEMO_HEAD_ID),
        )
        assert updated.status_code == 200
        assert Decimal(str(updated.json()["amount"])) == Decimal("6.00")

        detail = client.get(f"/groups/{DEMO_GROUP_ID}", headers=as_user(DEMO_MEMBER_ID)).json()
        assert detail["chores_count"] == 3

    def test_duplicate_email(self, client):
        """Registering an email twice is a 409."""
        response = client.post("/users", json={"name": "Alex Again", "email": "alex@example.com"})

        assert response.status_code == 409

    def test_current_user(self, client):
        """The caller's own profile comes from the X-User-ID header."""
        response = client.get("/users/me", headers=as_user(DEMO_MEMBER_ID))

        assert response.status_code == 200
        assert response.json()["id"] == str(DEMO_MEMBER_ID)
        assert response.json()["name"] == "Sam Kid"

    def test_current_user_unknown(self, client):
        """An id with no registered user is a 404."""
        response = client.get("/users/me", headers=as_user(OUTSIDER_ID))

        assert response.status_code == 404
        assert response.json() == {"error": "user not found", "code": "NOT_FOUND"}

    def test_delete_chore_keeps_balances(self, client):
        """Deleting a chore leaves existing entries and balances alone."""
        client.post(
            f"/groups/{DEMO_GROUP_ID}/ledger",
            json={"chore_id": str(DEMO_LAWN_CHORE_ID), "user_id": str(DEMO_MEMBER_ID)},
            headers=as_user(DEMO_HEAD_ID),
        )
        before = balances(client)

        response = client.delete(f"/groups/{DEMO_GROUP_ID}/chores/{DEMO_LAWN_CHORE_ID}", headers=as_user(DEMO_HEAD_ID))

        assert response.status_code == 204
        assert balances(client) == before
        chores = client.get(f"/groups/{DEMO_GROUP_ID}/chores", headers=as_user(DEMO_MEMBER_ID)).json()
        assert [c["id"] for c in chores] == [str(DEMO_DISHES_CHORE_ID)]

    def test_member_cannot_delete_chore(self, client):
        """Only the head deletes chores."""
        response = client.delete(f"/groups/{DEMO_GROUP_ID}/chores/{DEMO_LAWN_CHORE_ID}", headers=as_user(DEMO_MEMBER_ID))

        assert response.status_code == 403
        assert response.json() == {"error": "only group head can delete chores", "code": "FORBIDDEN"}

    def test_delete_missing_chore(self, client):
        """A chore that does not exist is a 404."""
        response = client.delete(f"/groups/{DEMO_GROUP_ID}/chores/{MISSING_ID}", headers=as_user(DEMO_HEAD_ID))

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestAppFactory:
    """Application wiring from settings."""

    def test_root_path_comes_from_settings(self):
        """The mount prefix is a setting, so one factory call serves every entry point."""
        app = create_app(storage=InMemoryStorage(), settings=Settings(root_path="/api", log_json=False))

        assert app.root_path == "/api"

    def test_default_root_path_is_empty(self, client):
        """Without a prefix the routes answer at the top level."""
        assert client.app.root_path == ""
        assert client.get("/health").status_code == 200
