"""
ledger.py — Value types passed between the balance services.

All of these are derived and ephemeral: they are rebuilt from the expense
store on every request and never persisted. Amounts are integer cents
(see app/money.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExpenseSplitRow:
    """
    One row of the expense ⟕ split join.

    An expense with no splits still yields one row (member_id=None,
    owed_cents=0) so its payer is credited and the imbalance surfaces.
    """
    expense_id: int
    payer_id: int
    total_cents: int
    member_id: int | None
    owed_cents: int


@dataclass(frozen=True)
class MemberBalance:
    member_id: int
    total_paid: int
    total_owed: int
    net_balance: int


@dataclass(frozen=True)
class SettlementTransaction:
    """`from_member_id` should pay `to_member_id` `amount` cents."""
    from_member_id: int
    to_member_id: int
    amount: int


@dataclass(frozen=True)
class GroupBalanceSummary:
    total_expenses: int
    total_settled: int
    total_outstanding: int
    member_count: int
    balances: list[MemberBalance] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    total_net_balance: int
    error: str | None = None


@dataclass(frozen=True)
class SplitMismatch:
    expense_id: int
    expense_total: int
    splits_total: int

    @property
    def difference(self) -> int:
        return self.splits_total - self.expense_total


@dataclass(frozen=True)
class SettlementPlan:
    transactions: list[SettlementTransaction]
    integrity: ValidationResult | None = None

    @property
    def total_settlements(self) -> int:
        return len(self.transactions)

    @property
    def total_amount(self) -> int:
        return sum(t.amount for t in self.transactions)


@dataclass(frozen=True)
class ValidationReport:
    result: ValidationResult
    total_members: int
    split_mismatches: list[SplitMismatch] = field(default_factory=list)
