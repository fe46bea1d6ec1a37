"""
services/balance_summary_service.py — The views the HTTP layer serves.

Composes the calculator, validator and optimizer into the four read
operations of the balance API:

  get_group_balance_summary()   totals + per-member balances
  get_user_balance_in_group()   one member's balance, or None
  get_settlement_plan()         suggested transfers to settle the group
  get_validation_report()       zero-sum and per-expense split checks

Layer rules:
  - No Flask imports. Receives group_id and a SQLAlchemy Session.
  - Adds no failure modes of its own: DataSourceError from the calculator
    propagates unchanged; a member without a balance is reported as None.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from divvy.app.ledger import (
    GroupBalanceSummary,
    MemberBalance,
    SettlementPlan,
    ValidationReport,
)
from divvy.app.money import TOLERANCE_CENTS
from divvy.app.services import balance_calculator, expense_source
from divvy.app.services.balance_validator import find_split_mismatches, validate_balances
from divvy.app.services.settlement_optimizer import calculate_optimal_settlements


def summarize_balances(balances: Iterable[MemberBalance]) -> GroupBalanceSummary:
    """
    Derives group totals from a balance list.

      total_expenses    = sum(total_paid)
      total_outstanding = sum(|net_balance|) / 2, a half cent rounds up
      total_settled     = total_expenses - total_outstanding
    """
    balances = list(balances)

    total_expenses = sum(b.total_paid for b in balances)
    total_outstanding = (sum(abs(b.net_balance) for b in balances) + 1) // 2

    return GroupBalanceSummary(
        total_expenses=total_expenses,
        total_settled=total_expenses - total_outstanding,
        total_outstanding=total_outstanding,
        member_count=len(balances),
        balances=balances,
    )


def get_group_balance_summary(group_id: int, session: Session) -> GroupBalanceSummary:
    balances = balance_calculator.calculate_group_balances(group_id, session)
    return summarize_balances(balances)


def get_user_balance_in_group(
        group_id: int,
        member_id: int,
        session: Session,
) -> MemberBalance | None:
    """Returns member_id's balance, or None if they have no balance in the group."""
    balances = balance_calculator.calculate_group_balances(group_id, session)
    return next((b for b in balances if b.member_id == member_id), None)


def get_settlement_plan(
        group_id: int,
        session: Session,
        tolerance_cents: int = TOLERANCE_CENTS,
) -> SettlementPlan:
    """
    Suggests transfers that settle the group.

    The plan carries the zero-sum check of the balances it was built from:
    an invalid result means the transfers leave a residual.
    """
    balances = balance_calculator.calculate_group_balances(group_id, session)
    return SettlementPlan(
        transactions=calculate_optimal_settlements(balances, tolerance_cents),
        integrity=validate_balances(balances, tolerance_cents),
    )


def get_validation_report(
        group_id: int,
        session: Session,
        tolerance_cents: int = TOLERANCE_CENTS,
) -> ValidationReport:
    """
    Validates the group's books.

    The zero-sum check runs on the computed balances; the split-sum check
    runs on the raw rows so the offending expenses can be named.
    """
    rows, member_ids = expense_source.fetch_group_ledger(group_id, session)

    balances = balance_calculator.calculate_member_balances(rows, member_ids)

    return ValidationReport(
        result=validate_balances(balances, tolerance_cents),
        total_members=len(balances),
        split_mismatches=find_split_mismatches(rows),
    )
