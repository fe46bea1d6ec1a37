"""
services/balance_calculator.py — Per-member net balances for a group.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed:

    net_balance = total_paid - total_owed

  total_paid  sum of expense amounts the member fronted, each expense counted
              once no matter how many splits it has
  total_owed  sum of the member's split shares, including their own share of
              expenses they paid

Coverage policy: every current member of the group appears in the result,
with a zero balance if they have no activity. Former members appear only if
they still have rows in the ledger.

All amounts are integer cents. No side effects; nothing is persisted.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy.orm import Session

from divvy.app.ledger import ExpenseSplitRow, MemberBalance
from divvy.app.services import expense_source

logger = logging.getLogger(__name__)


def calculate_member_balances(
        rows: Iterable[ExpenseSplitRow],
        member_ids: Iterable[int] = (),
) -> list[MemberBalance]:
    """
    Aggregates flat expense/split rows into one MemberBalance per member.

    Pure function: every row is visited exactly once. The payer of an
    expense is credited the first time that expense id is seen; later rows
    of the same expense only debit their participant.

    Returns balances sorted by member_id. Order is a convenience for stable
    output, not part of the contract.
    """
    paid: dict[int, int] = defaultdict(int)
    owed: dict[int, int] = defaultdict(int)
    credited: set[int] = set()

    for row in rows:
        if row.expense_id not in credited:
            credited.add(row.expense_id)
            paid[row.payer_id] += row.total_cents

        if row.member_id is not None:
            owed[row.member_id] += row.owed_cents

    members = set(paid) | set(owed) | set(member_ids)

    return [
        MemberBalance(
            member_id=member_id,
            total_paid=paid[member_id],
            total_owed=owed[member_id],
            net_balance=paid[member_id] - owed[member_id],
        )
        for member_id in sorted(members)
    ]


def calculate_group_balances(group_id: int, session: Session) -> list[MemberBalance]:
    """
    Computes the current balances of a group from the expense store.

    A group with no expenses yields a zero balance for each current member,
    or an empty list if it has no members either.

    Raises:
        DataSourceError(GROUP_NOT_FOUND, 404)          -- group does not exist.
        DataSourceError(DATA_SOURCE_UNAVAILABLE, 503)  -- store unreadable.
    """
    rows, member_ids = expense_source.fetch_group_ledger(group_id, session)

    balances = calculate_member_balances(rows, member_ids)
    logger.debug(
        "Computed %d balances for group %s from %d ledger rows",
        len(balances), group_id, len(rows),
    )
    return balances
