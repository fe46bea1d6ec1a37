"""
tests/integration/test_balances.py — Balance summary and single-member balance.

Endpoints covered:
  GET /groups/:id/balances/summary              → 200
  GET /groups/:id/balances/members/:member_id   → 200 / 404

Properties verified:
  - Amounts are strings with two decimal places, never JSON numbers
  - Every current member appears, even with a 0.00 balance
  - Former members appear only while they still have ledger rows
  - Soft-deleted expenses are excluded
  - Corrupt books are reported as a warning next to a 200
  - 401 without a token, 403 for non-members, 404 for unknown groups
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from divvy.app.services import expense_source

from .conftest import (
    add_member,
    auth_headers,
    make_expense,
    make_group,
    make_user,
    token_for,
)


# ═══════════════════════════════════════════════════════════════════════════
# Setup helpers
# ═══════════════════════════════════════════════════════════════════════════

def _setup(app):
    alice = make_user(app, "alice")
    bob   = make_user(app, "bob")
    carol = make_user(app, "carol")
    group = make_group(app, [alice, bob, carol])
    return alice, bob, carol, group


def _summary(client, app, user_id, group_id):
    return client.get(
        f"/api/v1/groups/{group_id}/balances/summary",
        headers=auth_headers(token_for(app, user_id)),
    )


def _balances_by_name(resp) -> dict[str, dict]:
    return {b["name"]: b for b in resp.get_json()["data"]["balances"]}


# ═══════════════════════════════════════════════════════════════════════════
# Summary
# ═══════════════════════════════════════════════════════════════════════════

class TestSummary:

    def test_three_way_split_paid_by_one_member(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "90.00", {alice: "30.00", bob: "30.00", carol: "30.00"})

        resp = _summary(client, app, alice, group)

        assert resp.status_code == 200
        body = resp.get_json()
        data = body["data"]
        assert data["group_id"] == group
        assert data["total_expenses"] == "90.00"
        assert data["total_outstanding"] == "60.00"
        assert data["total_settled"] == "30.00"
        assert data["member_count"] == 3
        assert body["warnings"] == []

        balances = _balances_by_name(resp)
        assert balances["alice"] == {
            "member_id": alice,
            "name": "alice",
            "total_paid": "90.00",
            "total_owed": "30.00",
            "net_balance": "60.00",
        }
        assert balances["bob"]["net_balance"] == "-30.00"
        assert balances["carol"]["net_balance"] == "-30.00"

    def test_second_expense_updates_balances(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "90.00", {alice: "30.00", bob: "30.00", carol: "30.00"})
        make_expense(app, group, bob, "30.00", {bob: "15.00", carol: "15.00"})

        balances = _balances_by_name(_summary(client, app, bob, group))

        assert balances["alice"]["net_balance"] == "60.00"
        assert balances["bob"]["total_paid"] == "30.00"
        assert balances["bob"]["total_owed"] == "45.00"
        assert balances["bob"]["net_balance"] == "-15.00"
        assert balances["carol"]["net_balance"] == "-45.00"

    def test_empty_group_lists_members_with_zero_balance(self, client, app):
        alice, bob, carol, group = _setup(app)

        resp = _summary(client, app, alice, group)

        data = resp.get_json()["data"]
        assert data["total_expenses"] == "0.00"
        assert data["total_outstanding"] == "0.00"
        assert data["member_count"] == 3
        assert all(b["net_balance"] == "0.00" for b in data["balances"])

    def test_single_member_group(self, client, app):
        alice = make_user(app, "alice")
        group = make_group(app, [alice])

        data = _summary(client, app, alice, group).get_json()["data"]

        assert data["member_count"] == 1
        assert data["balances"][0]["net_balance"] == "0.00"

    def test_deleted_expense_is_excluded(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "20.00", {alice: "10.00", bob: "10.00"})
        make_expense(app, group, bob, "500.00", {alice: "250.00", bob: "250.00"}, deleted=True)

        resp = _summary(client, app, alice, group)

        assert resp.get_json()["data"]["total_expenses"] == "20.00"
        assert _balances_by_name(resp)["alice"]["net_balance"] == "10.00"

    def test_former_member_with_history_still_appears(self, client, app):
        alice, bob, carol, group = _setup(app)
        dave = make_user(app, "dave")
        erin = make_user(app, "erin")
        add_member(app, group, dave, active=False)
        add_member(app, group, erin, active=False)
        make_expense(app, group, alice, "40.00", {alice: "20.00", dave: "20.00"})

        balances = _balances_by_name(_summary(client, app, alice, group))

        assert balances["dave"]["net_balance"] == "-20.00"
        assert "erin" not in balances

    def test_corrupt_books_raise_integrity_warning(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "50.00", {alice: "25.01", bob: "25.01"})

        resp = _summary(client, app, alice, group)

        assert resp.status_code == 200
        warnings = resp.get_json()["warnings"]
        assert [w["code"] for w in warnings] == ["BALANCE_INTEGRITY_VIOLATION"]
        assert "-0.02" in warnings[0]["message"]

    def test_uneven_split_is_exact(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "100.00", {alice: "33.33", bob: "33.33", carol: "33.34"})

        resp = _summary(client, app, alice, group)

        balances = _balances_by_name(resp)
        assert balances["alice"]["net_balance"] == "66.67"
        assert balances["bob"]["net_balance"] == "-33.33"
        assert balances["carol"]["net_balance"] == "-33.34"
        assert resp.get_json()["warnings"] == []


# ═══════════════════════════════════════════════════════════════════════════
# Single member balance
# ═══════════════════════════════════════════════════════════════════════════

class TestMemberBalance:

    def test_member_balance(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "90.00", {alice: "30.00", bob: "30.00", carol: "30.00"})

        resp = client.get(
            f"/api/v1/groups/{group}/balances/members/{bob}",
            headers=auth_headers(token_for(app, alice)),
        )

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["member_id"] == bob
        assert data["name"] == "bob"
        assert data["total_paid"] == "0.00"
        assert data["total_owed"] == "30.00"
        assert data["net_balance"] == "-30.00"

    def test_unknown_member_is_not_found(self, client, app):
        alice, bob, carol, group = _setup(app)
        outsider = make_user(app, "zed")

        resp = client.get(
            f"/api/v1/groups/{group}/balances/members/{outsider}",
            headers=auth_headers(token_for(app, alice)),
        )

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "MEMBER_BALANCE_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════════════
# Access
# ═══════════════════════════════════════════════════════════════════════════

class TestAccess:

    def test_missing_token_is_unauthorized(self, client, app):
        alice, bob, carol, group = _setup(app)

        resp = client.get(f"/api/v1/groups/{group}/balances/summary")

        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"

    def test_expired_token_is_unauthorized(self, client, app):
        alice, bob, carol, group = _setup(app)
        token = token_for(app, alice, expires_in=timedelta(seconds=-30))

        resp = client.get(
            f"/api/v1/groups/{group}/balances/summary",
            headers=auth_headers(token),
        )

        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_non_member_is_forbidden(self, client, app):
        alice, bob, carol, group = _setup(app)
        outsider = make_user(app, "zed")

        resp = _summary(client, app, outsider, group)

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_former_member_is_forbidden(self, client, app):
        alice, bob, carol, group = _setup(app)
        dave = make_user(app, "dave")
        add_member(app, group, dave, active=False)

        resp = _summary(client, app, dave, group)

        assert resp.status_code == 403

    def test_unknown_group_is_not_found(self, client, app):
        alice = make_user(app, "alice")

        resp = _summary(client, app, alice, 987654)

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"

    def test_unknown_route_returns_404(self, client, app):
        alice = make_user(app, "alice")

        resp = client.get(
            "/api/v1/groups/1/balances/history",
            headers=auth_headers(token_for(app, alice)),
        )

        assert resp.status_code == 404

    def test_cors_headers_in_testing_mode(self, client, app):
        alice = make_user(app, "alice")
        group = make_group(app, [alice])

        resp = client.get(
            f"/api/v1/groups/{group}/balances/summary",
            headers={**auth_headers(token_for(app, alice)), "Origin": "http://localhost:8000"},
        )

        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:8000"
        assert "Authorization" in resp.headers["Access-Control-Allow-Headers"]

    def test_member_request_looks_up_group_once(self, client, app):
        alice, bob, carol, group = _setup(app)
        make_expense(app, group, alice, "90.00", {alice: "30.00", bob: "30.00", carol: "30.00"})
        headers = auth_headers(token_for(app, alice))

        for path in ("summary", "settlements", f"members/{bob}"):
            with patch.object(
                expense_source, "ensure_group_exists", wraps=expense_source.ensure_group_exists,
            ) as spy:
                resp = client.get(f"/api/v1/groups/{group}/balances/{path}", headers=headers)

            assert resp.status_code == 200
            assert spy.call_count == 1, path

        with patch.object(
            expense_source, "ensure_group_exists", wraps=expense_source.ensure_group_exists,
        ) as spy:
            resp = client.post(f"/api/v1/groups/{group}/balances/validate", headers=headers)

        assert resp.status_code == 200
        assert spy.call_count == 1
