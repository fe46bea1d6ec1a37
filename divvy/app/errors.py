"""
errors.py — AppError base class and error code registry.

Every error returned by the Divvy balance API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Error codes are a versioned contract: they do not change once published.
Messages are human-readable prose and may be improved at any time.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class DataSourceError(AppError):
    """
    The expense/split store could not be read for a group.

    Raised only by services/expense_source.py. The calculator and summary
    service let it propagate unchanged; it is never retried inside the core.
    """

    def __init__(
            self,
            message: str,
            code: str | None = None,
            http_status: int = 503,
    ) -> None:
        super().__init__(code or ErrorCode.DATA_SOURCE_UNAVAILABLE, message, http_status)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MEMBER_BALANCE_NOT_FOUND   = "MEMBER_BALANCE_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not a member of the group
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors ──────────────────────────────────────────────────────
    DATA_SOURCE_UNAVAILABLE    = "DATA_SOURCE_UNAVAILABLE"  # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"           # 500


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They report data-quality facts; they never block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Net balances of the group do not sum to zero (beyond tolerance).
    # Settlements computed from such balances leave a residual.
    BALANCE_INTEGRITY_VIOLATION = "BALANCE_INTEGRITY_VIOLATION"

    # One expense's splits do not add up to the expense amount.
    SPLIT_SUM_MISMATCH          = "SPLIT_SUM_MISMATCH"
