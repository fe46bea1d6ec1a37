"""
services/settlement_optimizer.py — Greedy debt simplification.

Matches the largest creditor against the largest debtor until one side runs
out. For N members with non-zero balances this emits at most N-1 transfers.
It does not guarantee the minimum number of transfers for every debt graph
(that is a subset-sum style search); greedy is O(n log n) and good enough
for group-sized inputs.

Matching is exact in cents. The tolerance only decides whether the group as
a whole is already settled; once anyone is owed more than that, every cent
is routed, including one-cent rounding remainders.

Pre-condition: balances sum to zero (validate_balances). On unbalanced input
the loop still terminates, leaving the excess unsettled.
"""

from __future__ import annotations

from collections.abc import Iterable

from divvy.app.ledger import MemberBalance, SettlementTransaction
from divvy.app.money import TOLERANCE_CENTS, is_settled


def calculate_optimal_settlements(
        balances: Iterable[MemberBalance],
        tolerance_cents: int = TOLERANCE_CENTS,
) -> list[SettlementTransaction]:
    """
    Produces payer → payee transfers that bring every balance to zero.

    Ordering is deterministic: creditors by descending balance, debtors by
    descending debt, ties broken by ascending member_id. Repeated calls on
    the same balances return the same list. The input is never mutated.

    Returns:
        List of SettlementTransaction. Empty when every balance is within
        tolerance_cents of zero.
    """
    balances = list(balances)

    if all(is_settled(b.net_balance, tolerance_cents) for b in balances):
        return []

    # [member_id, remaining] pairs; debts are stored as positive amounts.
    creditors = sorted(
        ([b.member_id, b.net_balance] for b in balances if b.net_balance > 0),
        key=lambda entry: (-entry[1], entry[0]),
    )
    debtors = sorted(
        ([b.member_id, -b.net_balance] for b in balances if b.net_balance < 0),
        key=lambda entry: (-entry[1], entry[0]),
    )

    transactions: list[SettlementTransaction] = []
    i = j = 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        amount = min(creditor[1], debtor[1])
        transactions.append(SettlementTransaction(
            from_member_id=debtor[0],
            to_member_id=creditor[0],
            amount=amount,
        ))

        creditor[1] -= amount
        debtor[1] -= amount

        # Equal magnitudes clear both sides in the same step.
        if creditor[1] == 0:
            i += 1
        if debtor[1] == 0:
            j += 1

    return transactions
