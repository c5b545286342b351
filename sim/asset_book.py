"""
SwapBank Sim: Asset Book

In-memory fungible asset balances implementing the AssetTransfer contract.

Tracks balances per (asset, account) and token allowances per
(asset, owner, spender). The native coin is an ordinary entry under the
NATIVE_ASSET identity and needs no allowance; wrapping moves native coin
into a vault and mints the wrapped token one-for-one.
"""

from collections import defaultdict
from typing import Dict, Optional, Tuple
import logging

from core.assets import NATIVE_ASSET, normalize_identity
from core.interfaces import AssetTransfer

logger = logging.getLogger(__name__)

WRAP_VAULT = "vault:wrapped-native"


class AssetBookError(RuntimeError):
    """Simulated transfer failure (insufficient funds, allowance, bad amount)."""


class InMemoryAssetBook(AssetTransfer):
    """
    Simulated ledger of fungible assets.

    Usage:
        book = InMemoryAssetBook()
        book.mint("0xusdc", "0xalice", 1_000_000)
        book.approve("0xusdc", "0xalice", "0xbank", 500_000)
        book.transfer_from("0xusdc", "0xalice", "0xbank", 500_000)
    """

    def __init__(self):
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)
        self._supply: Dict[str, int] = defaultdict(int)
        self.transfers_count = 0

    # ----- reads -----

    def balance_of(self, asset: str, account: str) -> int:
        return self._balances.get((self._key(asset), self._key(account)), 0)

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        return self._allowances.get((self._key(asset), self._key(owner), self._key(spender)), 0)

    def total_supply(self, asset: str) -> int:
        return self._supply.get(self._key(asset), 0)

    # ----- AssetTransfer -----

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self._check_amount(amount)
        self._move(self._key(asset), self._key(sender), self._key(recipient), amount)

    def transfer_from(
        self,
        asset: str,
        owner: str,
        recipient: str,
        amount: int,
        spender: Optional[str] = None,
    ) -> None:
        """
        Pull ``amount`` from ``owner`` on behalf of ``spender``.

        ``spender`` defaults to ``recipient`` (custody pulling into itself).
        Native coin arrives attached to the call and needs no allowance.
        """
        self._check_amount(amount)
        asset_key = self._key(asset)
        owner_key = self._key(owner)
        if asset_key != NATIVE_ASSET:
            spender_key = self._key(spender if spender is not None else recipient)
            allowed = self._allowances[(asset_key, owner_key, spender_key)]
            if allowed < amount:
                raise AssetBookError(
                    f"allowance {allowed} < {amount} for {spender_key} on {owner_key}/{asset_key}"
                )
            self._allowances[(asset_key, owner_key, spender_key)] = allowed - amount
        self._move(asset_key, owner_key, self._key(recipient), amount)

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise AssetBookError(f"invalid allowance {amount!r}")
        self._allowances[(self._key(asset), self._key(owner), self._key(spender))] = amount

    # ----- supply management -----

    def mint(self, asset: str, account: str, amount: int) -> None:
        self._check_amount(amount)
        asset_key = self._key(asset)
        self._balances[(asset_key, self._key(account))] += amount
        self._supply[asset_key] += amount

    def burn(self, asset: str, account: str, amount: int) -> None:
        self._check_amount(amount)
        asset_key = self._key(asset)
        account_key = self._key(account)
        held = self._balances[(asset_key, account_key)]
        if held < amount:
            raise AssetBookError(f"cannot burn {amount} {asset_key}: {account_key} holds {held}")
        self._balances[(asset_key, account_key)] = held - amount
        self._supply[asset_key] -= amount

    def wrap(self, wrapped_asset: str, account: str, amount: int) -> None:
        """Convert native coin held by ``account`` into the wrapped token."""
        self.transfer(NATIVE_ASSET, account, WRAP_VAULT, amount)
        self.mint(wrapped_asset, account, amount)

    def mint_wrapped(self, wrapped_asset: str, account: str, amount: int) -> None:
        """Mint fully backed wrapped-native tokens (native coin is locked in the vault)."""
        self.mint(NATIVE_ASSET, account, amount)
        self.wrap(wrapped_asset, account, amount)

    def unwrap(self, wrapped_asset: str, account: str, amount: int) -> None:
        self.burn(wrapped_asset, account, amount)
        self.transfer(NATIVE_ASSET, WRAP_VAULT, account, amount)

    # ----- internals -----

    def _move(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        held = self._balances[(asset, sender)]
        if held < amount:
            raise AssetBookError(f"insufficient {asset}: {sender} holds {held}, needs {amount}")
        self._balances[(asset, sender)] = held - amount
        self._balances[(asset, recipient)] += amount
        self.transfers_count += 1
        logger.debug(f"Moved {amount} {asset}: {sender} -> {recipient}")

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise AssetBookError(f"invalid amount {amount!r}")

    @staticmethod
    def _key(identity: str) -> str:
        return normalize_identity(identity)
