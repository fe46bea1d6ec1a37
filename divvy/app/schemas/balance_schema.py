"""
schemas/balance_schema.py — Marshmallow schemas for balance responses.

The balance core works in integer cents. These schemas are the API-side
boundary: every monetary field goes through the Cents field, which turns
cents back into a two-place Decimal. The app's JSON provider then writes
Decimal as a string, so amounts reach the client as "30.00", never as a
JS number.

Display names are not part of the ledger types. Schemas that print member
ids take an optional `names` mapping ({user_id: username}) and fall back to
"user_<id>" for anyone missing from it.

IMPORTANT: Inherits from marshmallow.Schema directly so these can be used in
unit tests without a Flask app context.
"""

from __future__ import annotations

from marshmallow import Schema, fields

from divvy.app.money import from_cents


class Cents(fields.Field):
    """Integer cents → Decimal("0.00"). Output only."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return from_cents(value)


class _NamedSchema(Schema):

    def __init__(self, *args, names: dict[int, str] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.names = names or {}

    def _name(self, member_id: int) -> str:
        return self.names.get(member_id, f"user_{member_id}")


class MemberBalanceSchema(_NamedSchema):
    member_id   = fields.Int()
    name        = fields.Method("get_name")
    total_paid  = Cents()
    total_owed  = Cents()
    net_balance = Cents()

    def get_name(self, obj) -> str:
        return self._name(obj.member_id)


class SettlementTransactionSchema(_NamedSchema):
    from_member_id = fields.Int()
    from_name      = fields.Method("get_from_name")
    to_member_id   = fields.Int()
    to_name        = fields.Method("get_to_name")
    amount         = Cents()

    def get_from_name(self, obj) -> str:
        return self._name(obj.from_member_id)

    def get_to_name(self, obj) -> str:
        return self._name(obj.to_member_id)


class GroupBalanceSummarySchema(_NamedSchema):
    total_expenses    = Cents()
    total_settled     = Cents()
    total_outstanding = Cents()
    member_count      = fields.Int()
    balances          = fields.Method("dump_balances")

    def dump_balances(self, obj) -> list[dict]:
        return MemberBalanceSchema(many=True, names=self.names).dump(obj.balances)


class SettlementPlanSchema(_NamedSchema):
    settlements       = fields.Method("dump_settlements")
    total_settlements = fields.Int()
    total_amount      = Cents()

    def dump_settlements(self, obj) -> list[dict]:
        return SettlementTransactionSchema(many=True, names=self.names).dump(obj.transactions)


class SplitMismatchSchema(Schema):
    expense_id    = fields.Int()
    expense_total = Cents()
    splits_total  = Cents()
    difference    = Cents()


class ValidationReportSchema(Schema):
    is_valid          = fields.Function(lambda report: report.result.is_valid)
    error             = fields.Function(lambda report: report.result.error)
    total_members     = fields.Int()
    total_net_balance = fields.Function(
        lambda report: from_cents(report.result.total_net_balance)
    )
    split_mismatches  = fields.List(fields.Nested(SplitMismatchSchema))
