"""
SwapBank Core: Conversion Pipeline

Converts between arbitrary assets and the reference asset through the venue.

Deposit:    pull input -> route -> quote -> min-out -> swap -> re-check cap -> credit
Withdrawal: debit -> route -> quote -> min-out -> swap to caller

Safety:
- the ledger only ever commits the executed amount, never the quote
- every trade carries a slippage-bounded minimum output
- executed amounts are measured on the recipient balance (venue is untrusted)
- failures run compensations so no request leaves partial effects
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from core.assets import NATIVE_ASSET, format_path, require_amount
from core.config import BankConfig
from core.exceptions import BankError, DepositCapExceeded, PairNotFound, SwapFailed, TransferFailed
from core.interfaces import AssetTransfer, QuoteOracle, TradeExecutor
from core.ledger import Ledger
from core.validation import ValidationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteQuote:
    """Best-effort quote along a resolved path"""
    path: Tuple[str, ...]
    amounts: Tuple[int, ...]

    @property
    def amount_in(self) -> int:
        return self.amounts[0]

    @property
    def expected_out(self) -> int:
        return self.amounts[-1]

    @property
    def hops(self) -> int:
        return len(self.path) - 1


@dataclass
class TradeRecord:
    """Trade-executed fact kept for observability"""
    direction: str  # "deposit" | "withdrawal"
    account: str
    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    expected_out: int
    minimum_out: int
    path: Tuple[str, ...] = ()
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    @property
    def slippage_bps(self) -> float:
        """Negative slippage vs quote in bps (negative value = price improvement)."""
        if self.expected_out <= 0:
            return 0.0
        return (self.expected_out - self.amount_out) * 10_000 / self.expected_out

    @property
    def shortfall(self) -> int:
        """Units the venue delivered below the minimum output (0 when filled)."""
        return max(0, self.minimum_out - self.amount_out)

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "account": self.account,
            "asset_in": self.asset_in,
            "asset_out": self.asset_out,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "expected_out": self.expected_out,
            "minimum_out": self.minimum_out,
            "path": list(self.path),
            "slippage_bps": round(self.slippage_bps, 2),
            "shortfall": self.shortfall,
            "timestamp": self.timestamp.isoformat(),
        }


class TradeRouter:
    """
    Path resolution and read-only quoting.

    Rule: direct pair if the venue lists one, otherwise two hops through the
    bridging asset. Native coin routes as the wrapped-native token.
    """

    def __init__(self, config: BankConfig, oracle: QuoteOracle):
        self.config = config
        self.oracle = oracle

    def resolve_path(self, asset_in: str, asset_out: str) -> Tuple[str, ...]:
        route_in = self.config.route_asset(asset_in)
        route_out = self.config.route_asset(asset_out)
        if route_in == route_out:
            return (route_in,)

        if self.oracle.resolve_pair(route_in, route_out):
            return (route_in, route_out)

        bridge = self.config.bridge_asset
        if (
            bridge not in (route_in, route_out)
            and self.oracle.resolve_pair(route_in, bridge)
            and self.oracle.resolve_pair(bridge, route_out)
        ):
            return (route_in, bridge, route_out)

        raise PairNotFound(asset_in, asset_out)

    def quote(self, amount_in: int, asset_in: str, asset_out: str) -> RouteQuote:
        """
        Quote ``amount_in`` of ``asset_in`` into ``asset_out``.

        Identity conversions (same asset on both sides) quote 1:1 without
        touching the venue.
        """
        path = self.resolve_path(asset_in, asset_out)
        if len(path) == 1:
            return RouteQuote(path=path, amounts=(amount_in, amount_in))

        try:
            raw = self.oracle.get_amounts_out(amount_in, list(path))
        except BankError:
            raise
        except Exception as e:
            raise SwapFailed(f"quote_unavailable: {e}", original=e) from e

        amounts = tuple(raw or ())
        if len(amounts) != len(path) or not all(
            isinstance(a, int) and not isinstance(a, bool) and a >= 0 for a in amounts
        ):
            raise SwapFailed(f"malformed_quote: {raw!r} for path {format_path(path)}")

        logger.debug(f"Quoted {amount_in} via {format_path(path)} -> {amounts[-1]}")
        return RouteQuote(path=path, amounts=amounts)


class ConversionPipeline:
    """
    Orchestrates trades and ledger commits for one request at a time.

    The caller (SwapBank) owns the reentrancy guard and the pre-trade
    validation; this class owns ordering, slippage bounds, post-trade
    re-validation and compensation.
    """

    def __init__(
        self,
        config: BankConfig,
        ledger: Ledger,
        router: TradeRouter,
        executor: TradeExecutor,
        transfers: AssetTransfer,
        validator: ValidationEngine,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.ledger = ledger
        self.router = router
        self.executor = executor
        self.transfers = transfers
        self.validator = validator
        self.clock = clock
        self.trade_history: List[TradeRecord] = []

    # ----- read-only -----

    def estimate(self, amount: int, asset_in: str, asset_out: str) -> int:
        """Expected output with no slippage deduction and no state change."""
        require_amount(amount)
        return self.router.quote(amount, asset_in, asset_out).expected_out

    def deadline(self) -> float:
        return self.clock() + self.config.deadline_seconds

    # ----- deposit direction -----

    def deposit(self, account: str, asset: str, amount: int) -> TradeRecord:
        """
        Pull ``amount`` of ``asset`` into custody and credit its reference value.

        Must run inside ``ledger.transaction()``.

        Raises:
            TransferFailed: input could not be pulled
            PairNotFound / SwapFailed: venue refused the trade (input refunded)
            SwapFailed: venue filled below the minimum (proceeds refunded)
            DepositCapExceeded: executed amount breaches the bank cap (proceeds refunded)
        """
        reference = self.config.reference_asset
        bank = self.config.identity

        self._move(self.transfers.transfer_from, asset, account, bank, amount)

        if asset == reference:
            quote = RouteQuote(path=(reference,), amounts=(amount, amount))
            minimum_out = amount
            actual = amount
        else:
            try:
                quote = self.router.quote(amount, asset, reference)
                minimum_out = self.config.minimum_output(quote.expected_out)
                actual = self._swap(
                    quote,
                    minimum_out,
                    asset_in=asset,
                    asset_out=reference,
                    recipient=bank,
                    native_in=(asset == NATIVE_ASSET),
                )
            except BankError as e:
                self._refund(e, asset, account, amount)
                raise

        # From here on the input is spent; only the proceeds can go back.
        if actual < minimum_out:
            error = SwapFailed(
                f"output {actual} below minimum {minimum_out}", minimum_out=minimum_out
            )
            error.details["refunded_amount"] = actual
            if actual > 0:
                self._refund(error, reference, account, actual)
            raise error

        post_check = self.validator.check_post_trade_deposit(actual)
        if not post_check.approved:
            error = DepositCapExceeded(
                post_check.error.requested, post_check.error.cap, refunded_amount=actual
            )
            self._refund(error, reference, account, actual)
            raise error

        self.ledger.credit(account, actual)
        record = TradeRecord(
            direction="deposit",
            account=account,
            asset_in=asset,
            asset_out=reference,
            amount_in=amount,
            amount_out=actual,
            expected_out=quote.expected_out,
            minimum_out=minimum_out,
            path=quote.path,
        )
        self.trade_history.append(record)
        logger.info(
            f"Deposit settled: {account} {amount} {asset} -> {actual} {reference} "
            f"(quoted={quote.expected_out}, min={minimum_out}, path={format_path(quote.path)})"
        )
        return record

    # ----- withdrawal direction -----

    def withdraw(self, account: str, amount: int, asset: str) -> TradeRecord:
        """
        Debit ``amount`` reference units and deliver them to ``account`` as ``asset``.

        The debit happens before the external trade so a reentrant caller
        cannot spend the same balance twice. Must run inside
        ``ledger.transaction()`` so a refused trade restores the debit.
        Once the venue has executed, the debit stands even if the account
        received less than the minimum; the record carries the shortfall.
        """
        reference = self.config.reference_asset
        bank = self.config.identity

        self.ledger.debit(account, amount)

        if asset == reference:
            self._move(self.transfers.transfer, reference, bank, account, amount)
            quote = RouteQuote(path=(reference,), amounts=(amount, amount))
            minimum_out = amount
            actual = amount
        else:
            quote = self.router.quote(amount, reference, asset)
            minimum_out = self.config.minimum_output(quote.expected_out)
            actual = self._swap(
                quote,
                minimum_out,
                asset_in=reference,
                asset_out=asset,
                recipient=account,
                native_out=(asset == NATIVE_ASSET),
            )

        record = TradeRecord(
            direction="withdrawal",
            account=account,
            asset_in=reference,
            asset_out=asset,
            amount_in=amount,
            amount_out=actual,
            expected_out=quote.expected_out,
            minimum_out=minimum_out,
            path=quote.path,
        )
        self.trade_history.append(record)
        if record.shortfall:
            logger.error(
                f"Withdrawal under-filled by venue: {account} received {actual} {asset}, "
                f"minimum was {minimum_out}; debit of {amount} {reference} stands"
            )
        else:
            logger.info(
                f"Withdrawal settled: {account} {amount} {reference} -> {actual} {asset} "
                f"(quoted={quote.expected_out}, min={minimum_out}, path={format_path(quote.path)})"
            )
        return record

    # ----- helpers -----

    def _swap(
        self,
        quote: RouteQuote,
        minimum_out: int,
        *,
        asset_in: str,
        asset_out: str,
        recipient: str,
        native_in: bool = False,
        native_out: bool = False,
    ) -> int:
        """
        Execute a quoted trade and return what the recipient actually received.

        Raises only when the venue refused the trade or moved nothing, so a
        raise means no assets moved. The received amount is measured on the
        recipient's balance, not taken from the venue's report.
        """
        bank = self.config.identity
        venue = self.config.venue
        amount_in = quote.amount_in
        paid = NATIVE_ASSET if native_in else asset_in
        delivered = NATIVE_ASSET if native_out else asset_out

        if not native_in:
            self._move(self.transfers.approve, asset_in, bank, venue, amount_in)

        try:
            held_before = self.transfers.balance_of(paid, bank)
            received_before = self.transfers.balance_of(delivered, recipient)
            try:
                amounts = self.executor.swap_exact_in(
                    amount_in,
                    minimum_out,
                    list(quote.path),
                    recipient,
                    self.deadline(),
                    sender=bank,
                    native_in=native_in,
                    native_out=native_out,
                )
            except BankError:
                raise
            except Exception as e:
                logger.warning(f"Venue rejected swap via {format_path(quote.path)}: {e}")
                raise SwapFailed(str(e), minimum_out=minimum_out, original=e) from e
            spent = max(0, held_before - self.transfers.balance_of(paid, bank))
            received = max(0, self.transfers.balance_of(delivered, recipient) - received_before)
            if spent == 0 and received == 0:
                raise SwapFailed("venue_did_not_execute", minimum_out=minimum_out)
        finally:
            self._clear_approval(asset_in, native_in)

        reported = amounts[-1] if amounts else None
        if reported != received:
            logger.warning(
                f"Venue reported {reported!r} {delivered} via {format_path(quote.path)} "
                f"but {recipient} received {received}"
            )
        if spent != amount_in:
            logger.warning(f"Venue consumed {spent} of {amount_in} {paid} via {format_path(quote.path)}")
        if received < minimum_out:
            logger.warning(f"Venue filled {received} below minimum {minimum_out} via {format_path(quote.path)}")
        return received

    def _clear_approval(self, asset: str, native: bool) -> None:
        if native:
            return
        try:
            self.transfers.approve(asset, self.config.identity, self.config.venue, 0)
        except Exception as e:
            logger.warning(f"Failed to reset {asset} allowance for venue: {e}")

    def _move(self, operation: Callable[..., None], asset: str, *args) -> None:
        try:
            operation(asset, *args)
        except BankError:
            raise
        except Exception as e:
            raise TransferFailed(asset, str(e), original=e) from e

    def _refund(self, error: BankError, asset: str, account: str, amount: int) -> None:
        """Return ``amount`` of ``asset`` from custody; the original error still propagates."""
        try:
            self._move(self.transfers.transfer, asset, self.config.identity, account, amount)
            logger.info(f"Refunded {amount} {asset} to {account} after {error.code}")
        except TransferFailed as refund_error:
            error.details["refund_error"] = refund_error.reason
            if isinstance(error, DepositCapExceeded):
                error.refunded_amount = None
            if "refunded_amount" in error.details:
                error.details["refunded_amount"] = None
            logger.error(
                f"Refund of {amount} {asset} to {account} failed after {error.code}: "
                f"{refund_error.reason}; funds remain in custody"
            )
