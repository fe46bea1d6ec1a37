"""
tests/integration/test_validation.py — POST /groups/:id/balances/validate.

Invalid books are a 200 with is_valid=false, never an error status.
"""

from __future__ import annotations

from .conftest import auth_headers, make_expense, make_group, make_user, token_for


def _setup(app):
    alice = make_user(app, "alice")
    bob   = make_user(app, "bob")
    carol = make_user(app, "carol")
    group = make_group(app, [alice, bob, carol])
    return alice, bob, carol, group


def _validate(client, app, user_id, group_id):
    return client.post(
        f"/api/v1/groups/{group_id}/balances/validate",
        headers=auth_headers(token_for(app, user_id)),
    )


def test_consistent_group_is_valid(client, app):
    alice, bob, carol, group = _setup(app)
    make_expense(app, group, alice, "100.00", {alice: "33.33", bob: "33.33", carol: "33.34"})

    resp = _validate(client, app, alice, group)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["data"] == {
        "group_id": group,
        "is_valid": True,
        "error": None,
        "total_members": 3,
        "total_net_balance": "0.00",
        "split_mismatches": [],
    }
    assert body["warnings"] == []


def test_empty_group_is_valid(client, app):
    alice, bob, carol, group = _setup(app)

    data = _validate(client, app, alice, group).get_json()["data"]

    assert data["is_valid"] is True
    assert data["total_members"] == 3


def test_two_cent_corruption_is_reported(client, app):
    alice, bob, carol, group = _setup(app)
    expense_id = make_expense(app, group, alice, "50.00", {alice: "25.01", bob: "25.01"})

    resp = _validate(client, app, bob, group)

    assert resp.status_code == 200
    body = resp.get_json()
    data = body["data"]
    assert data["is_valid"] is False
    assert data["total_net_balance"] == "-0.02"
    assert data["error"] == "Balances do not sum to zero. Total net balance: -0.02"
    assert data["split_mismatches"] == [{
        "expense_id": expense_id,
        "expense_total": "50.00",
        "splits_total": "50.02",
        "difference": "0.02",
    }]
    assert [w["code"] for w in body["warnings"]] == ["SPLIT_SUM_MISMATCH"]
    assert f"Expense {expense_id}" in body["warnings"][0]["message"]


def test_expense_without_splits_is_reported(client, app):
    alice, bob, carol, group = _setup(app)
    expense_id = make_expense(app, group, alice, "10.00", {})

    data = _validate(client, app, alice, group).get_json()["data"]

    assert data["is_valid"] is False
    assert data["total_net_balance"] == "10.00"
    assert [m["expense_id"] for m in data["split_mismatches"]] == [expense_id]


def test_validate_requires_post(client, app):
    alice, bob, carol, group = _setup(app)

    resp = client.get(
        f"/api/v1/groups/{group}/balances/validate",
        headers=auth_headers(token_for(app, alice)),
    )

    assert resp.status_code == 405


def test_unknown_group_is_not_found(client, app):
    alice = make_user(app, "alice")

    resp = _validate(client, app, alice, 424242)

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"


def test_missing_token_is_unauthorized(client, app):
    alice, bob, carol, group = _setup(app)

    resp = client.post(f"/api/v1/groups/{group}/balances/validate")

    assert resp.status_code == 401
