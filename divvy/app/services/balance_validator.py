"""
services/balance_validator.py — Zero-sum and split-sum checks.

Invalid books are a data-quality fact, not an exceptional event: nothing in
this module raises. A failed check is returned to the caller and logged as a
warning. Nothing is ever "fixed" here: no rebalancing, no dropped members.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from divvy.app.ledger import ExpenseSplitRow, MemberBalance, SplitMismatch, ValidationResult
from divvy.app.money import TOLERANCE_CENTS, from_cents

logger = logging.getLogger(__name__)


def validate_balances(
        balances: Iterable[MemberBalance],
        tolerance_cents: int = TOLERANCE_CENTS,
) -> ValidationResult:
    """
    Checks that net balances sum to zero within tolerance.

    An empty balance list is valid (the empty sum is zero).
    """
    total = sum(b.net_balance for b in balances)

    if abs(total) > tolerance_cents:
        message = (
            "Balances do not sum to zero. "
            f"Total net balance: {from_cents(total)}"
        )
        logger.warning(message)
        return ValidationResult(is_valid=False, total_net_balance=total, error=message)

    return ValidationResult(is_valid=True, total_net_balance=total)


def find_split_mismatches(rows: Iterable[ExpenseSplitRow]) -> list[SplitMismatch]:
    """
    Lists every expense whose splits do not add up to its amount.

    Exact comparison in cents: a correctly apportioned remainder such as
    33.33 + 33.33 + 33.34 == 100.00 is not a mismatch, a stray cent is.
    """
    totals: dict[int, int] = {}
    split_sums: dict[int, int] = {}

    for row in rows:
        totals[row.expense_id] = row.total_cents
        split_sums[row.expense_id] = split_sums.get(row.expense_id, 0) + row.owed_cents

    mismatches = [
        SplitMismatch(
            expense_id=expense_id,
            expense_total=total,
            splits_total=split_sums[expense_id],
        )
        for expense_id, total in totals.items()
        if split_sums[expense_id] != total
    ]

    for mismatch in mismatches:
        logger.warning(
            "Expense %s splits sum to %s but the expense amount is %s",
            mismatch.expense_id,
            from_cents(mismatch.splits_total),
            from_cents(mismatch.expense_total),
        )

    return mismatches
