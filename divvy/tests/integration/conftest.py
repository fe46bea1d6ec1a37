"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing"), which
    points at in-memory SQLite unless TEST_DATABASE_URL names a real database.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - Users, groups and expenses are written straight through the ORM: this
    service only reads them. Tokens are minted with the shared test secret,
    standing in for the identity service.

Helper functions (not fixtures) are provided for common operations:
  - make_user(app, ...)          → user id
  - make_group(app, ...)         → group id (members added as active)
  - add_member(app, ...)         → adds a current or former member
  - make_expense(app, ...)       → expense id
  - token_for(app, user_id)      → signed access token
  - auth_headers(token)          → {"Authorization": "Bearer <token>"}
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import jwt
import pytest

from divvy.app import create_app
from divvy.app.extensions import db as _db
from divvy.app.models.expense import Expense
from divvy.app.models.group import Group
from divvy.app.models.membership import Membership
from divvy.app.models.split import Split
from divvy.app.models.user import User


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the entire test session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()
        with _db.engine.begin() as conn:
            for table in reversed(_db.metadata.sorted_tables):
                conn.execute(table.delete())


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_user(app, username: str) -> int:
    with app.app_context():
        user = User(username=username)
        _db.session.add(user)
        _db.session.commit()
        return user.id


def make_group(app, member_ids: list[int], name: str = "Test Group") -> int:
    """Creates a group whose listed users are all current members."""
    with app.app_context():
        group = Group(name=name)
        _db.session.add(group)
        _db.session.flush()
        for user_id in member_ids:
            _db.session.add(Membership(user_id=user_id, group_id=group.id, is_active=True))
        _db.session.commit()
        return group.id


def add_member(app, group_id: int, user_id: int, active: bool = True) -> None:
    """Adds a member; active=False records someone who has since left."""
    with app.app_context():
        membership = Membership(user_id=user_id, group_id=group_id, is_active=active)
        if not active:
            membership.joined_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
            membership.left_at = datetime(2026, 2, 1, tzinfo=timezone.utc)
        _db.session.add(membership)
        _db.session.commit()


def make_expense(
    app,
    group_id: int,
    paid_by: int,
    amount: str,
    splits: dict[int, str],
    description: str = "Test Expense",
    deleted: bool = False,
) -> int:
    """
    Writes an expense and its splits exactly as given.

    No validation: tests use this to plant corrupt data (splits that do not
    add up, expenses with no splits at all).
    """
    with app.app_context():
        expense = Expense(
            group_id=group_id,
            paid_by_user_id=paid_by,
            description=description,
            amount=Decimal(amount),
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        expense.splits = [
            Split(user_id=user_id, amount=Decimal(share))
            for user_id, share in splits.items()
        ]
        _db.session.add(expense)
        _db.session.commit()
        return expense.id


def token_for(app, user_id: int, expires_in: timedelta = timedelta(minutes=15)) -> str:
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(
        payload,
        app.config["JWT_SECRET_KEY"],
        algorithm=app.config["JWT_ALGORITHM"],
    )


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}
