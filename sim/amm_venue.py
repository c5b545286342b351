"""
SwapBank Sim: Constant-Product Venue

Simulated exchange venue implementing QuoteOracle and TradeExecutor on top of
an InMemoryAssetBook.

Pricing: x * y = k per pool, input fee taken before the curve
(default 997/1000, i.e. 30 bps). Quotes and executions use the same math,
so an untouched pool fills exactly at the quote.

Simulation features:
- multi-hop paths through any listed pools
- wrapped-native in/out (the book wraps and unwraps one-for-one)
- deadline checks against an injectable clock
- minimum-output enforcement like a real router
- optional pre-swap callback invoked with the caller's funds already approved,
  to model venues or tokens that call back into their caller
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence
import logging

from core.assets import NATIVE_ASSET, format_path, normalize_identity
from core.interfaces import QuoteOracle, TradeExecutor
from sim.asset_book import InMemoryAssetBook

logger = logging.getLogger(__name__)


class VenueError(RuntimeError):
    """Simulated venue rejection (expired, insufficient output, unknown pair)."""


@dataclass(frozen=True)
class Pool:
    """Constant-product pool; reserves live in the asset book under ``pair_id``."""
    pair_id: str
    asset_a: str
    asset_b: str


class ConstantProductVenue(QuoteOracle, TradeExecutor):
    """
    In-memory AMM router.

    Usage:
        venue = ConstantProductVenue(book, "0xrouter", wrapped_native="0xweth")
        venue.add_pool("0xweth", "0xusdc", 1_000 * 10**18, 2_000_000 * 10**6)
        amounts = venue.get_amounts_out(10**18, ["0xweth", "0xusdc"])
    """

    def __init__(
        self,
        book: InMemoryAssetBook,
        address: str,
        wrapped_native: str,
        fee_numerator: int = 997,
        fee_denominator: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize venue.

        Args:
            book: Asset book holding pool reserves and trader balances
            address: Venue identity (spender for token approvals)
            wrapped_native: Wrapped-native token used for native in/out
            fee_numerator: Share of input kept after fees (numerator)
            fee_denominator: Share of input kept after fees (denominator)
            clock: Time source for deadline checks
        """
        if not 0 < fee_numerator <= fee_denominator:
            raise ValueError(f"invalid fee {fee_numerator}/{fee_denominator}")
        self.book = book
        self.address = normalize_identity(address)
        self.wrapped_native = normalize_identity(wrapped_native)
        self.fee_numerator = fee_numerator
        self.fee_denominator = fee_denominator
        self.clock = clock
        self.pre_swap_hook: Optional[Callable[[], None]] = None

        self.pools: Dict[FrozenSet[str], Pool] = {}
        self.swaps_count = 0
        self.rejections_count = 0

        logger.info(
            f"ConstantProductVenue initialized: address={self.address}, "
            f"fee={fee_numerator}/{fee_denominator}"
        )

    # ----- liquidity -----

    def add_pool(self, asset_a: str, asset_b: str, reserve_a: int, reserve_b: int) -> str:
        """List a pool seeded with the given reserves; returns the pair identity."""
        a, b = normalize_identity(asset_a), normalize_identity(asset_b)
        if a == b or NATIVE_ASSET in (a, b):
            raise ValueError(f"invalid pool {a}/{b}")
        key = frozenset((a, b))
        if key in self.pools:
            raise ValueError(f"pool {a}/{b} already listed")
        first, second = sorted((a, b))
        pool = Pool(pair_id=f"pair:{first}/{second}", asset_a=a, asset_b=b)
        for asset, reserve in ((a, reserve_a), (b, reserve_b)):
            if asset == self.wrapped_native:
                self.book.mint_wrapped(asset, pool.pair_id, reserve)
            else:
                self.book.mint(asset, pool.pair_id, reserve)
        self.pools[key] = pool
        logger.info(f"Listed pool {pool.pair_id} ({reserve_a} {a} / {reserve_b} {b})")
        return pool.pair_id

    def reserves(self, asset_in: str, asset_out: str) -> tuple:
        pool = self._pool(asset_in, asset_out)
        return (
            self.book.balance_of(asset_in, pool.pair_id),
            self.book.balance_of(asset_out, pool.pair_id),
        )

    # ----- QuoteOracle -----

    def resolve_pair(self, asset_a: str, asset_b: str) -> Optional[str]:
        pool = self.pools.get(frozenset((normalize_identity(asset_a), normalize_identity(asset_b))))
        return pool.pair_id if pool else None

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        if amount_in <= 0:
            raise VenueError("INSUFFICIENT_INPUT_AMOUNT")
        if reserve_in <= 0 or reserve_out <= 0:
            raise VenueError("INSUFFICIENT_LIQUIDITY")
        amount_in_with_fee = amount_in * self.fee_numerator
        numerator = amount_in_with_fee * reserve_out
        denominator = reserve_in * self.fee_denominator + amount_in_with_fee
        return numerator // denominator

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        path = [normalize_identity(p) for p in path]
        if len(path) < 2:
            raise VenueError("INVALID_PATH")
        amounts = [amount_in]
        for asset_in, asset_out in zip(path, path[1:]):
            reserve_in, reserve_out = self.reserves(asset_in, asset_out)
            amounts.append(self.get_amount_out(amounts[-1], reserve_in, reserve_out))
        return amounts

    # ----- TradeExecutor -----

    def swap_exact_in(
        self,
        amount_in: int,
        minimum_out: int,
        path: Sequence[str],
        recipient: str,
        deadline: float,
        *,
        sender: str,
        native_in: bool = False,
        native_out: bool = False,
    ) -> List[int]:
        path = [normalize_identity(p) for p in path]
        try:
            if self.clock() > deadline:
                raise VenueError("EXPIRED")
            if native_in and path[0] != self.wrapped_native:
                raise VenueError("INVALID_PATH")
            if native_out and path[-1] != self.wrapped_native:
                raise VenueError("INVALID_PATH")

            if self.pre_swap_hook is not None:
                self.pre_swap_hook()

            amounts = self.get_amounts_out(amount_in, path)
            if amounts[-1] < minimum_out or any(a <= 0 for a in amounts[1:]):
                raise VenueError("INSUFFICIENT_OUTPUT_AMOUNT")
        except VenueError as e:
            self.rejections_count += 1
            logger.warning(f"Swap rejected via {format_path(path)}: {e}")
            raise

        first_pair = self._pool(path[0], path[1]).pair_id
        if native_in:
            self.book.wrap(self.wrapped_native, sender, amount_in)
            self.book.transfer(self.wrapped_native, sender, first_pair, amount_in)
        else:
            self.book.transfer_from(path[0], sender, first_pair, amount_in, spender=self.address)

        final_receiver = self.address if native_out else recipient
        for i, (asset_in, asset_out) in enumerate(zip(path, path[1:])):
            pair = self._pool(asset_in, asset_out).pair_id
            if i + 2 < len(path):
                to = self._pool(path[i + 1], path[i + 2]).pair_id
            else:
                to = final_receiver
            self.book.transfer(asset_out, pair, to, amounts[i + 1])

        if native_out:
            self.book.unwrap(self.wrapped_native, self.address, amounts[-1])
            self.book.transfer(NATIVE_ASSET, self.address, recipient, amounts[-1])

        self.swaps_count += 1
        logger.debug(f"Swapped {amount_in} via {format_path(path)} -> {amounts[-1]} to {recipient}")
        return amounts

    def _pool(self, asset_a: str, asset_b: str) -> Pool:
        pool = self.pools.get(frozenset((normalize_identity(asset_a), normalize_identity(asset_b))))
        if pool is None:
            raise VenueError(f"PAIR_NOT_LISTED: {asset_a}/{asset_b}")
        return pool
