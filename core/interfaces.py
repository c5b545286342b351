"""
SwapBank Core: External Collaborator Interfaces

Narrow contracts for everything the bank consumes but does not own:
- QuoteOracle: best-effort quotes and pair discovery
- TradeExecutor: real trades with a minimum-output bound
- AssetTransfer: fungible asset movement in and out of custody
- AccessController: named-role storage

The bank never reaches past these methods. Implementations are treated as
untrusted: they may fail, return less than quoted, or call back into the bank.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

# Role names the bank checks. ROOT_ROLE manages role membership; ADMIN_ROLE
# gates bank operations. Holding ROOT_ROLE does not imply ADMIN_ROLE.
ROOT_ROLE = "root"
ADMIN_ROLE = "admin"


class QuoteOracle(ABC):
    """Read-only quoting side of an exchange venue."""

    @abstractmethod
    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        """
        Quote a trade along ``path``.

        Args:
            amount_in: Input amount in the smallest unit of ``path[0]``
            path: Ordered asset identities, at least two

        Returns:
            One amount per hop including the input; the last element is the
            estimated output
        """

    @abstractmethod
    def resolve_pair(self, asset_a: str, asset_b: str) -> Optional[str]:
        """Return the pair identity trading ``asset_a`` against ``asset_b``, or None."""


class TradeExecutor(ABC):
    """Executing side of an exchange venue."""

    @abstractmethod
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
        """
        Trade exactly ``amount_in`` of ``path[0]`` for at least ``minimum_out`` of ``path[-1]``.

        Args:
            amount_in: Exact input amount
            minimum_out: Smallest acceptable output; the venue must fail below it
            path: Ordered asset identities (wrapped-native stands in for native)
            recipient: Account that receives the output
            deadline: Unix timestamp after which the venue must refuse the trade
            sender: Account paying the input (pre-approved for token input)
            native_in: Input is paid in the native coin rather than a token
            native_out: Output is delivered in the native coin rather than a token

        Returns:
            Amounts actually transferred per hop; the last element is what the
            recipient received

        Raises:
            Any exception when the trade cannot be executed
        """


class AssetTransfer(ABC):
    """Standard fungible asset movement. The native coin uses the NATIVE_ASSET identity."""

    @abstractmethod
    def transfer_from(self, asset: str, owner: str, recipient: str, amount: int) -> None:
        """Move ``amount`` from ``owner`` to ``recipient`` (pull into custody)."""

    @abstractmethod
    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` out of ``sender``'s own holdings."""

    @abstractmethod
    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        """Allow ``spender`` to pull up to ``amount`` from ``owner``."""

    @abstractmethod
    def balance_of(self, asset: str, account: str) -> int:
        """Current holdings of ``account``."""


class AccessController(ABC):
    """Role storage. Revocation is owned by the implementation, not the bank."""

    @abstractmethod
    def has_role(self, account: str, role: str) -> bool:
        """Check whether ``account`` holds ``role``."""

    @abstractmethod
    def grant_role(self, actor: str, target: str, role: str) -> None:
        """Grant ``role`` to ``target`` on behalf of ``actor`` (who must be allowed to)."""

    @abstractmethod
    def bootstrap_role(self, target: str, role: str) -> None:
        """Unchecked grant made while a bank initializes; one holder per role."""
