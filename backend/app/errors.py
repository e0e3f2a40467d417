"""
errors.py — AppError base class and error code registry.

Every error returned by the Splitz API uses a code defined here.
Services and middleware raise AppError; routes never catch it. The global
handler in app/__init__.py renders it as the standard error envelope.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 (unauthenticated) and 403 (not a member / not the owner) are never swapped.
"""

from __future__ import annotations


class AppError(Exception):
    """
    A failure the client can act on: a stable `code`, readable `message`,
    HTTP status and optionally the request `field` at fault.
    """

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.field = field

    def to_dict(self) -> dict:
        """{"error": {"code", "message"[, "field"]}}, the body of every error response."""
        error = {"code": self.code, "message": self.message}
        if self.field is not None:
            error["field"] = self.field
        return {"error": error}

    def __repr__(self) -> str:
        field = f", field={self.field!r}" if self.field is not None else ""
        return f"AppError({self.code}, {self.http_status}{field}: {self.message!r})"


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the section comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_SPLIT_MODE         = "INVALID_SPLIT_MODE"
    SPLITS_SENT_FOR_EQUAL_MODE = "SPLITS_SENT_FOR_EQUAL_MODE"
    DUPLICATE_SPLIT_USER       = "DUPLICATE_SPLIT_USER"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL                = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME             = "DUPLICATE_USERNAME"
    ALREADY_MEMBER                 = "ALREADY_MEMBER"
    MEMBER_HAS_OUTSTANDING_BALANCE = "MEMBER_HAS_OUTSTANDING_BALANCE"
    # Optimistic concurrency token mismatch. The client re-reads and retries;
    # the server never retries on its behalf.
    CONCURRENT_MODIFICATION        = "CONCURRENT_MODIFICATION"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    TRANSACTION_NOT_FOUND      = "TRANSACTION_NOT_FOUND"
    DRAFT_NOT_FOUND            = "DRAFT_NOT_FOUND"
    JOIN_LINK_NOT_FOUND        = "JOIN_LINK_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    BALANCE_USER_NOT_MEMBER    = "BALANCE_USER_NOT_MEMBER"
    SPLIT_SUM_MISMATCH         = "SPLIT_SUM_MISMATCH"
    BALANCE_SUM_NONZERO        = "BALANCE_SUM_NONZERO"
    INVALID_CURRENCY           = "INVALID_CURRENCY"
    GROUP_REASSIGNMENT         = "GROUP_REASSIGNMENT"
    DRAFT_INCOMPLETE           = "DRAFT_INCOMPLETE"
    SELF_FRIEND                = "SELF_FRIEND"
    AMOUNT_OUT_OF_RANGE        = "AMOUNT_OUT_OF_RANGE"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
    # The settlement resolver received non-zero-sum input. Upstream validation
    # makes this unreachable; seeing it in logs means a bug.
    LEDGER_INVARIANT_VIOLATION = "LEDGER_INVARIANT_VIOLATION"
