"""
routes/balances.py — Balance route handlers.

Layer rules:
  - Check access, call the balance service, dump through a schema, return
    the envelope. No arithmetic here and no direct queries.
  - Data-quality problems are reported as warnings next to a 200, never as
    errors: the books being off is a fact about the data, not a failed request.

Endpoints (base url_prefix=/api/v1/groups):
  GET  /groups/:id/balances/summary              → 200  totals + member balances
  GET  /groups/:id/balances/settlements          → 200  suggested transfers
  GET  /groups/:id/balances/members/:member_id   → 200  one member's balance
                                                   404  MEMBER_BALANCE_NOT_FOUND
  POST /groups/:id/balances/validate             → 200  zero-sum + split-sum report

Every endpoint: 401 without a valid token, 404 GROUP_NOT_FOUND, 403 FORBIDDEN
for non-members, 503 DATA_SOURCE_UNAVAILABLE if the store cannot be read.
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from divvy.app.errors import AppError, ErrorCode, WarningCode
from divvy.app.extensions import db
from divvy.app.ledger import ValidationResult
from divvy.app.middleware.auth_middleware import require_auth
from divvy.app.money import from_cents
from divvy.app.schemas.balance_schema import (
    GroupBalanceSummarySchema,
    MemberBalanceSchema,
    SettlementPlanSchema,
    ValidationReportSchema,
)
from divvy.app.services import balance_summary_service, expense_source
from divvy.app.services.balance_validator import validate_balances

balances_bp = Blueprint("balances", __name__)


# ── Helpers ────────────────────────────────────────────────────────────────

def _tolerance_cents() -> int:
    return current_app.config["SETTLEMENT_TOLERANCE_CENTS"]


def _authorize(group_id: int) -> None:
    """404 for an unknown group, 403 for a non-member caller."""
    expense_source.require_group_member(group_id, g.user_id, db.session)


def _integrity_warnings(result: ValidationResult | None) -> list[dict]:
    if result is None or result.is_valid:
        return []
    return [{
        "code": WarningCode.BALANCE_INTEGRITY_VIOLATION,
        "message": result.error,
    }]


# ── Route handlers ─────────────────────────────────────────────────────────

@balances_bp.route("/<int:group_id>/balances/summary", methods=["GET"])
@require_auth
def get_summary(group_id: int):
    """GET /groups/:id/balances/summary — Group totals and every member's balance."""
    _authorize(group_id)

    summary = balance_summary_service.get_group_balance_summary(group_id, db.session)
    names = expense_source.fetch_member_names(group_id, db.session)

    data = {"group_id": group_id, **GroupBalanceSummarySchema(names=names).dump(summary)}
    warnings = _integrity_warnings(validate_balances(summary.balances, _tolerance_cents()))
    return jsonify({"data": data, "warnings": warnings}), 200


@balances_bp.route("/<int:group_id>/balances/settlements", methods=["GET"])
@require_auth
def get_settlements(group_id: int):
    """GET /groups/:id/balances/settlements — Fewest practical transfers to settle up."""
    _authorize(group_id)

    plan = balance_summary_service.get_settlement_plan(
        group_id, db.session, tolerance_cents=_tolerance_cents(),
    )
    names = expense_source.fetch_member_names(group_id, db.session)

    data = {"group_id": group_id, **SettlementPlanSchema(names=names).dump(plan)}
    return jsonify({"data": data, "warnings": _integrity_warnings(plan.integrity)}), 200


@balances_bp.route("/<int:group_id>/balances/members/<int:member_id>", methods=["GET"])
@require_auth
def get_member_balance(group_id: int, member_id: int):
    """GET /groups/:id/balances/members/:member_id — One member's balance."""
    _authorize(group_id)

    balance = balance_summary_service.get_user_balance_in_group(
        group_id, member_id, db.session,
    )
    if balance is None:
        raise AppError(
            ErrorCode.MEMBER_BALANCE_NOT_FOUND,
            f"User {member_id} has no balance in group {group_id}.",
            404,
        )

    names = expense_source.fetch_member_names(group_id, db.session)
    data = {"group_id": group_id, **MemberBalanceSchema(names=names).dump(balance)}
    return jsonify({"data": data, "warnings": []}), 200


@balances_bp.route("/<int:group_id>/balances/validate", methods=["POST"])
@require_auth
def validate(group_id: int):
    """
    POST /groups/:id/balances/validate — Check that the books balance.

    An unbalanced group is still a 200: is_valid=false with the reason and
    the non-zero total. Each expense whose splits do not add up to its
    amount is listed and also raised as a SPLIT_SUM_MISMATCH warning.
    """
    _authorize(group_id)

    report = balance_summary_service.get_validation_report(
        group_id, db.session, tolerance_cents=_tolerance_cents(),
    )

    warnings = [
        {
            "code": WarningCode.SPLIT_SUM_MISMATCH,
            "message": (
                f"Expense {m.expense_id} splits sum to {from_cents(m.splits_total)} "
                f"but the expense amount is {from_cents(m.expense_total)}."
            ),
        }
        for m in report.split_mismatches
    ]
    data = {"group_id": group_id, **ValidationReportSchema().dump(report)}
    return jsonify({"data": data, "warnings": warnings}), 200
