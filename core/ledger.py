"""
SwapBank Core: Ledger

Authoritative reference-asset bookkeeping. The only component permitted to
mutate balances.

Invariants:
- aggregate_balance == sum(balances) after every settled request
- no balance and no aggregate ever goes negative
- mutations are all-or-nothing with the surrounding request
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional
import logging

from core.assets import normalize_identity
from core.exceptions import InsufficientBalance, InvalidAmount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy used to roll back a failed request."""
    balances: Dict[str, int]
    aggregate_balance: int
    deposit_count: int
    withdrawal_count: int


class Ledger:
    """
    In-process balance store.

    Features:
    - credit/debit with exact integer arithmetic
    - request-scoped transactions (snapshot + restore on failure)
    - informational deposit/withdrawal counters
    """

    def __init__(self):
        self._balances: Dict[str, int] = {}
        self._aggregate_balance = 0
        self._deposit_count = 0
        self._withdrawal_count = 0
        self._active: Optional[LedgerSnapshot] = None

    @property
    def aggregate_balance(self) -> int:
        return self._aggregate_balance

    @property
    def deposit_count(self) -> int:
        return self._deposit_count

    @property
    def withdrawal_count(self) -> int:
        return self._withdrawal_count

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_identity(account), 0)

    def accounts(self) -> Dict[str, int]:
        """Copy of all non-zero balances."""
        return {account: amount for account, amount in self._balances.items() if amount}

    def total_of_accounts(self) -> int:
        return sum(self._balances.values())

    def credit(self, account: str, amount: int) -> int:
        """
        Credit ``account`` with ``amount`` reference units.

        Returns:
            New account balance
        """
        self._check_amount(amount)
        key = normalize_identity(account)
        self._balances[key] = self._balances.get(key, 0) + amount
        self._aggregate_balance += amount
        self._deposit_count += 1
        logger.debug(f"Credited {amount} to {key} (aggregate={self._aggregate_balance})")
        return self._balances[key]

    def debit(self, account: str, amount: int) -> int:
        """
        Debit ``account`` by exactly ``amount`` reference units.

        Raises:
            InsufficientBalance: amount exceeds the current balance

        Returns:
            New account balance
        """
        self._check_amount(amount)
        key = normalize_identity(account)
        available = self._balances.get(key, 0)
        if amount > available:
            raise InsufficientBalance(requested=amount, available=available)
        remaining = available - amount
        if remaining:
            self._balances[key] = remaining
        else:
            self._balances.pop(key, None)
        self._aggregate_balance -= amount
        self._withdrawal_count += 1
        logger.debug(f"Debited {amount} from {key} (aggregate={self._aggregate_balance})")
        return remaining

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            balances=dict(self._balances),
            aggregate_balance=self._aggregate_balance,
            deposit_count=self._deposit_count,
            withdrawal_count=self._withdrawal_count,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self._balances = dict(snapshot.balances)
        self._aggregate_balance = snapshot.aggregate_balance
        self._deposit_count = snapshot.deposit_count
        self._withdrawal_count = snapshot.withdrawal_count

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        """
        Scope ledger mutations to one logical request.

        Any exception escaping the block restores the state captured on
        entry, so a failure after the withdrawal debit leaves no trace.
        Transactions do not nest.
        """
        if self._active is not None:
            raise RuntimeError("Ledger transaction already open")
        self._active = self.snapshot()
        try:
            yield self
        except BaseException:
            self.restore(self._active)
            logger.debug("Ledger transaction rolled back")
            raise
        finally:
            self._active = None

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(amount)
