"""
SwapBank Core: Validation Engine

Pre-trade gates that reject malformed or over-limit requests before any
asset moves, using best-effort quotes. Executed amounts can diverge from
quotes, so the deposit cap is checked again after the trade.

Checks return a ValidationResult instead of raising; public operations
compose them explicitly and raise the carried error.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional
import logging

from core.assets import require_amount
from core.config import BankConfig
from core.exceptions import (
    BankError,
    DepositCapExceeded,
    InsufficientBalance,
    TransactionAmountExceeded,
)
from core.ledger import Ledger

if TYPE_CHECKING:
    from core.conversion import TradeRouter

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation gate"""
    approved: bool
    error: Optional[BankError] = None
    estimated_amount: Optional[int] = None

    @property
    def reason(self) -> Optional[str]:
        return self.error.code if self.error else None

    def raise_for_error(self) -> "ValidationResult":
        if self.error is not None:
            raise self.error
        return self

    @classmethod
    def ok(cls, estimated_amount: Optional[int] = None) -> "ValidationResult":
        return cls(approved=True, estimated_amount=estimated_amount)

    @classmethod
    def reject(cls, error: BankError, estimated_amount: Optional[int] = None) -> "ValidationResult":
        return cls(approved=False, error=error, estimated_amount=estimated_amount)


class ValidationEngine:
    """
    Enforces:
    - positive integer amounts
    - per-transaction cap (estimated reference value on deposit, nominal on withdrawal)
    - bank cap on projected aggregate balance
    - sufficient ledger balance on withdrawal
    """

    def __init__(self, config: BankConfig, ledger: Ledger, router: "TradeRouter"):
        self.config = config
        self.ledger = ledger
        self.router = router

    def validate_deposit(self, amount: int, asset: str) -> ValidationResult:
        """
        Gate a deposit of ``amount`` of ``asset`` on its estimated reference value.

        Path resolution and quote failures are reported as rejections too,
        so nothing is pulled into custody for an unroutable asset.
        """
        try:
            require_amount(amount)
            estimate = self.router.quote(amount, asset, self.config.reference_asset).expected_out
        except BankError as e:
            return self._rejected("deposit", e)

        if estimate > self.config.per_transaction_cap:
            return self._rejected(
                "deposit",
                TransactionAmountExceeded(estimate, self.config.per_transaction_cap),
                estimate,
            )

        projected = self.ledger.aggregate_balance + estimate
        if projected > self.config.bank_cap:
            return self._rejected(
                "deposit", DepositCapExceeded(projected, self.config.bank_cap), estimate
            )

        return ValidationResult.ok(estimate)

    def validate_withdrawal(self, amount: int, account: str) -> ValidationResult:
        """Gate a withdrawal on the nominal reference amount (the debit is exact)."""
        try:
            require_amount(amount)
        except BankError as e:
            return self._rejected("withdrawal", e)

        available = self.ledger.balance_of(account)
        if amount > available:
            return self._rejected("withdrawal", InsufficientBalance(amount, available), amount)

        if amount > self.config.per_transaction_cap:
            return self._rejected(
                "withdrawal",
                TransactionAmountExceeded(amount, self.config.per_transaction_cap),
                amount,
            )

        return ValidationResult.ok(amount)

    def check_post_trade_deposit(self, actual_amount: int) -> ValidationResult:
        """Re-check the bank cap against the executed amount."""
        projected = self.ledger.aggregate_balance + actual_amount
        if projected > self.config.bank_cap:
            return self._rejected(
                "post_trade_deposit",
                DepositCapExceeded(projected, self.config.bank_cap),
                actual_amount,
            )
        return ValidationResult.ok(actual_amount)

    @staticmethod
    def _rejected(stage: str, error: BankError, estimate: Optional[int] = None) -> ValidationResult:
        logger.warning(f"Rejected {stage}: {error.code} {error.details}")
        return ValidationResult.reject(error, estimate)
