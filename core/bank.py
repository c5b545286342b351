"""
SwapBank Core: Bank

Public operation surface of the custody ledger.

Every state-mutating entry point runs the same sequence:
1. acquire the request guard (reentrant calls fail immediately)
2. explicit validation gate (estimate-based for deposits)
3. ledger transaction around the conversion pipeline
4. audit + metrics for the outcome

Read-only queries and estimates never take the guard.
"""

import time
from typing import Any, Callable, Dict, List, Optional
import logging

from core.assets import NATIVE_ASSET, require_address, require_asset
from core.audit_log import AuditLogger
from core.config import BankConfig
from core.conversion import ConversionPipeline, TradeRecord, TradeRouter
from core.exceptions import BankError, CallerNotAdmin, ReentrancyViolation, SwapFailed
from core.guard import ReentrancyGuard
from core.interfaces import ADMIN_ROLE, ROOT_ROLE, AccessController, AssetTransfer, QuoteOracle, TradeExecutor
from core.ledger import Ledger
from core.validation import ValidationEngine
from infra.metrics import MetricsRecorder, RequestStats

logger = logging.getLogger(__name__)


class SwapBank:
    """
    Custodial ledger denominated in a single reference asset.

    Deposits of any routable asset are converted into the reference asset at
    the executed (not quoted) price; withdrawals pay out the reference asset
    directly or converted into the native coin or another asset.
    """

    def __init__(
        self,
        config: BankConfig,
        oracle: QuoteOracle,
        executor: TradeExecutor,
        transfers: AssetTransfer,
        access: AccessController,
        audit: Optional[AuditLogger] = None,
        metrics: Optional[MetricsRecorder] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the bank and bootstrap its two roots of trust.

        Args:
            config: Immutable custody parameters
            oracle: Venue quoting adapter
            executor: Venue trade adapter
            transfers: Asset movement adapter
            access: Role storage; receives ROOT_ROLE for the deployer and
                ADMIN_ROLE for the configured admin
            audit: Optional JSONL audit trail
            metrics: Optional Prometheus recorder
            clock: Time source for trade deadlines
        """
        self.config = config
        self.access = access
        self.audit = audit
        self.metrics = metrics or MetricsRecorder(enabled=False)
        self.guard = ReentrancyGuard()
        self.ledger = Ledger()
        self.router = TradeRouter(config, oracle)
        self.validator = ValidationEngine(config, self.ledger, self.router)
        self.pipeline = ConversionPipeline(
            config, self.ledger, self.router, executor, transfers, self.validator, clock=clock
        )

        access.bootstrap_role(config.deployer, ROOT_ROLE)
        access.bootstrap_role(config.admin, ADMIN_ROLE)

        logger.info(
            f"Initialized SwapBank (identity={config.identity}, reference={config.reference_asset}, "
            f"per_tx_cap={config.per_transaction_cap}, bank_cap={config.bank_cap}, "
            f"slippage={config.slippage_numerator}/{config.slippage_denominator}, "
            f"deadline={config.deadline_seconds}s, bridge={config.bridge_asset})"
        )

    @classmethod
    def from_config(
        cls,
        path: str,
        oracle: QuoteOracle,
        executor: TradeExecutor,
        transfers: AssetTransfer,
        access: AccessController,
        start_metrics: bool = False,
    ) -> "SwapBank":
        """Build a bank from bank.yaml with logging, audit and metrics wired in."""
        from core.config import load_bank_config
        from infra.logging_setup import setup_logging

        config, settings = load_bank_config(path)
        setup_logging(settings.log_level, settings.log_file)
        metrics = MetricsRecorder(enabled=settings.metrics_enabled, port=settings.metrics_port)
        if start_metrics:
            metrics.start_exporter()
        audit = AuditLogger(settings.audit_file, config_hash=config.config_hash())
        return cls(config, oracle, executor, transfers, access, audit=audit, metrics=metrics)

    # ----- state views -----

    @property
    def aggregate_balance(self) -> int:
        return self.ledger.aggregate_balance

    @property
    def deposit_count(self) -> int:
        return self.ledger.deposit_count

    @property
    def withdrawal_count(self) -> int:
        return self.ledger.withdrawal_count

    @property
    def trade_history(self) -> List[TradeRecord]:
        return list(self.pipeline.trade_history)

    def query_balance(self, account: str) -> int:
        return self.ledger.balance_of(account)

    def verify_invariants(self) -> None:
        """Raise RuntimeError if the ledger breaks its accounting invariants."""
        total = self.ledger.total_of_accounts()
        aggregate = self.ledger.aggregate_balance
        if total != aggregate:
            raise RuntimeError(f"Sum of balances {total} != aggregate balance {aggregate}")
        if not 0 <= aggregate <= self.config.bank_cap:
            raise RuntimeError(f"Aggregate balance {aggregate} outside [0, {self.config.bank_cap}]")

    # ----- estimates (read-only, no slippage deduction) -----

    def estimate_deposit(self, asset: str, amount: int) -> int:
        """Reference-asset value expected for depositing ``amount`` of ``asset``."""
        asset = require_asset(asset, allow_native=True)
        return self.pipeline.estimate(amount, asset, self.config.reference_asset)

    def estimate_withdraw_native(self, amount: int) -> int:
        return self.pipeline.estimate(amount, self.config.reference_asset, NATIVE_ASSET)

    def estimate_withdraw_asset(self, amount: int, asset: str) -> int:
        asset = require_asset(asset)
        return self.pipeline.estimate(amount, self.config.reference_asset, asset)

    # ----- deposits -----

    def deposit_native(self, caller: str, amount: int) -> int:
        """Deposit native coin; returns the reference amount credited."""
        return self._execute(
            "deposit_native", caller, amount, NATIVE_ASSET,
            lambda account: self._deposit(account, NATIVE_ASSET, amount),
        )

    def receive_native(self, caller: str, amount: int) -> int:
        """Unsolicited native transfer; settles exactly like deposit_native."""
        return self._execute(
            "receive_native", caller, amount, NATIVE_ASSET,
            lambda account: self._deposit(account, NATIVE_ASSET, amount),
        )

    def deposit_asset(self, caller: str, asset: str, amount: int) -> int:
        """Deposit a token; returns the reference amount credited."""
        return self._execute(
            "deposit_asset", caller, amount, asset,
            lambda account: self._deposit(account, require_asset(asset), amount),
        )

    # ----- withdrawals -----

    def withdraw_reference(self, caller: str, amount: int) -> int:
        return self._execute(
            "withdraw_reference", caller, amount, self.config.reference_asset,
            lambda account: self._withdraw(account, amount, self.config.reference_asset),
        )

    def withdraw_as_native(self, caller: str, amount: int) -> int:
        """Withdraw ``amount`` reference units paid out in native coin; returns native delivered."""
        return self._execute(
            "withdraw_as_native", caller, amount, NATIVE_ASSET,
            lambda account: self._withdraw(account, amount, NATIVE_ASSET),
        )

    def withdraw_as_asset(self, caller: str, amount: int, asset: str) -> int:
        """Withdraw ``amount`` reference units paid out in ``asset``; returns ``asset`` delivered."""
        return self._execute(
            "withdraw_as_asset", caller, amount, asset,
            lambda account: self._withdraw(account, amount, require_asset(asset)),
        )

    # ----- administration -----

    def add_admin(self, caller: str, account: str) -> None:
        """Grant ADMIN_ROLE to ``account``. Admin only."""
        def action(actor: str) -> None:
            self._require_admin(actor)
            target = require_address(account)
            self.access.grant_role(actor, target, ADMIN_ROLE)
            logger.info(f"Admin {actor} added admin {target}")

        self._execute("add_admin", caller, None, None, action)

    def rotate_venue(self, caller: str, oracle: QuoteOracle, executor: TradeExecutor) -> None:
        """
        Swap the venue adapter objects. Admin only.

        The venue identity, caps and slippage tolerance stay fixed; only the
        objects used to reach the venue change.
        """
        def action(actor: str) -> None:
            self._require_admin(actor)
            if oracle is None or executor is None:
                raise ValueError("oracle and executor are required")
            self.router.oracle = oracle
            self.pipeline.executor = executor
            logger.warning(f"Venue adapters rotated by {actor}")

        self._execute("rotate_venue", caller, None, None, action)

    def _require_admin(self, account: str) -> None:
        if not self.access.has_role(account, ADMIN_ROLE):
            raise CallerNotAdmin(account)

    # ----- request plumbing -----

    def _deposit(self, account: str, asset: str, amount: int) -> TradeRecord:
        self.validator.validate_deposit(amount, asset).raise_for_error()
        with self.ledger.transaction():
            return self.pipeline.deposit(account, asset, amount)

    def _withdraw(self, account: str, amount: int, asset: str) -> TradeRecord:
        self.validator.validate_withdrawal(amount, account).raise_for_error()
        with self.ledger.transaction():
            return self.pipeline.withdraw(account, amount, asset)

    def _execute(
        self,
        operation: str,
        caller: str,
        amount: Any,
        asset: Optional[str],
        action: Callable[[str], Any],
    ) -> Any:
        try:
            with self.guard.hold(operation):
                account = require_address(caller)
                outcome = action(account)
        except BankError as e:
            self._record_rejection(operation, caller, amount, asset, e)
            raise

        if isinstance(outcome, TradeRecord):
            self._record_settlement(operation, outcome)
            return outcome.amount_out

        self.metrics.record_request(RequestStats(operation=operation, status="settled"))
        if self.audit:
            self.audit.log_request(operation, caller, amount, asset)
        return outcome

    def _record_settlement(self, operation: str, record: TradeRecord) -> None:
        swapped = len(record.path) > 1
        self.metrics.record_request(RequestStats(operation=operation, status="settled"))
        if swapped:
            self.metrics.record_swap(record.direction, not record.shortfall, record.slippage_bps)
        self.metrics.record_aggregate(self.ledger.aggregate_balance, self.config.bank_cap)
        if self.audit:
            if swapped:
                self.audit.log_trade(record)
            self.audit.log_request(
                operation,
                record.account,
                record.amount_in,
                record.asset_in if record.direction == "deposit" else record.asset_out,
                result=self._settlement_summary(record),
                aggregate_balance=self.ledger.aggregate_balance,
            )

    def _settlement_summary(self, record: TradeRecord) -> Dict[str, Any]:
        return {
            "amount_out": record.amount_out,
            "expected_out": record.expected_out,
            "minimum_out": record.minimum_out,
            "balance_after": self.ledger.balance_of(record.account),
            "shortfall": record.shortfall,
        }

    def _record_rejection(
        self, operation: str, caller: Any, amount: Any, asset: Optional[str], error: BankError
    ) -> None:
        logger.warning(f"{operation} rejected for {caller}: {error.code} {error.details}")
        self.metrics.record_request(
            RequestStats(operation=operation, status="rejected", error_code=error.code)
        )
        if isinstance(error, ReentrancyViolation):
            self.metrics.record_reentrancy(error.entry_point)
        if isinstance(error, SwapFailed):
            direction = "deposit" if operation.startswith(("deposit", "receive")) else "withdrawal"
            self.metrics.record_swap(direction, False)
        if self.audit:
            self.audit.log_request(
                operation,
                caller if isinstance(caller, str) else repr(caller),
                amount,
                asset if isinstance(asset, str) else repr(asset),
                error=error.to_dict(),
                aggregate_balance=self.ledger.aggregate_balance,
            )
