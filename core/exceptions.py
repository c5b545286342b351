"""Shared exception types for the custody ledger.

Every failure aborts the whole request. Each error carries a stable ``code``
and the offending values so callers can render precise messages.
"""

from typing import Any, Dict, Optional


class BankError(RuntimeError):
    """Base class for every request failure raised by the bank."""

    code = "bank_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Structured failure payload (error kind + offending values)."""
        payload = {"error": self.code, "message": str(self)}
        payload.update(self.details)
        return payload


class InvalidAmount(BankError):
    """Raised for zero, negative or non-integer quantities."""

    code = "invalid_amount"

    def __init__(self, amount: Any):
        super().__init__(f"Invalid amount: {amount!r}", amount=amount)
        self.amount = amount


class TransactionAmountExceeded(BankError):
    """Raised when a single operation exceeds the per-transaction cap."""

    code = "transaction_amount_exceeded"

    def __init__(self, requested: int, cap: int):
        super().__init__(
            f"Transaction amount {requested} exceeds per-transaction cap {cap}",
            requested=requested,
            cap=cap,
        )
        self.requested = requested
        self.cap = cap


class DepositCapExceeded(BankError):
    """Raised when the aggregate balance would exceed the bank cap.

    ``requested`` is the projected aggregate balance. ``refunded_amount`` is
    set when the breach was detected after the trade and the proceeds were
    returned to the depositor.
    """

    code = "deposit_cap_exceeded"

    def __init__(self, requested: int, cap: int, refunded_amount: Optional[int] = None):
        super().__init__(
            f"Projected aggregate balance {requested} exceeds bank cap {cap}",
            requested=requested,
            cap=cap,
            refunded_amount=refunded_amount,
        )
        self.requested = requested
        self.cap = cap
        self.refunded_amount = refunded_amount


class InsufficientBalance(BankError):
    code = "insufficient_balance"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} but only {available} available",
            requested=requested,
            available=available,
        )
        self.requested = requested
        self.available = available


class PairNotFound(BankError):
    """Raised when neither a direct nor a bridged path exists."""

    code = "pair_not_found"

    def __init__(self, asset_in: str, asset_out: str):
        super().__init__(
            f"No trade path from {asset_in} to {asset_out}",
            asset_in=asset_in,
            asset_out=asset_out,
        )
        self.asset_in = asset_in
        self.asset_out = asset_out


class SwapFailed(BankError):
    """Raised when the venue rejects a trade or misses the minimum output."""

    code = "swap_failed"

    def __init__(self, reason: str, minimum_out: Optional[int] = None, original: Optional[Exception] = None):
        super().__init__(f"Swap failed: {reason}", reason=reason, minimum_out=minimum_out)
        self.reason = reason
        self.minimum_out = minimum_out
        self.original = original


class TransferFailed(BankError):
    code = "transfer_failed"

    def __init__(self, asset: str, reason: str, original: Optional[Exception] = None):
        super().__init__(f"Transfer of {asset} failed: {reason}", asset=asset, reason=reason)
        self.asset = asset
        self.reason = reason
        self.original = original


class CallerNotAdmin(BankError):
    code = "caller_not_admin"

    def __init__(self, account: str):
        super().__init__(f"Caller {account} does not hold the admin role", account=account)
        self.account = account


class InvalidAddress(BankError):
    """Raised when a zero/placeholder account identity is supplied."""

    code = "invalid_address"

    def __init__(self, value: Any):
        super().__init__(f"Invalid address: {value!r}", value=value)
        self.value = value


class InvalidAsset(BankError):
    """Raised when a zero/placeholder asset identity is supplied."""

    code = "invalid_asset"

    def __init__(self, value: Any):
        super().__init__(f"Invalid asset: {value!r}", value=value)
        self.value = value


class ReentrancyViolation(BankError):
    """Raised when a guarded entry point is entered while the lock is held."""

    code = "reentrancy_violation"

    def __init__(self, entry_point: str, holder: Optional[str] = None):
        super().__init__(
            f"Reentrant call to {entry_point} rejected (lock held by {holder})",
            entry_point=entry_point,
            holder=holder,
        )
        self.entry_point = entry_point
        self.holder = holder
