"""Account and asset identity helpers.

Single source of truth for identity normalization so the ledger, the
conversion pipeline and the config loader agree on what `0xABC...` and
`0xabc...` mean, and on which identities are placeholders.
"""

from __future__ import annotations

from typing import Any, Iterable, Tuple

from core.exceptions import InvalidAddress, InvalidAmount, InvalidAsset

ZERO_ADDRESS = "0x" + "0" * 40

# The chain's native coin has no contract identity; trades route it through
# the wrapped-native asset configured for the venue.
NATIVE_ASSET = "native"

_PLACEHOLDERS: Tuple[str, ...] = ("", "0")


def normalize_identity(value: Any) -> str:
    """Return the canonical (stripped, lowercase) form of an identity."""

    if value is None:
        return ""
    return str(value).strip().lower()


def is_placeholder(value: Any) -> bool:
    """Empty identities and any all-zero hex identity (0x0, 0x000...)."""

    identity = normalize_identity(value)
    if identity in _PLACEHOLDERS:
        return True
    return identity.startswith("0x") and set(identity[2:]) <= {"0"}


def require_address(value: Any) -> str:
    """Normalize an account identity, rejecting placeholders."""

    if not isinstance(value, str) or is_placeholder(value):
        raise InvalidAddress(value)
    return normalize_identity(value)


def require_asset(value: Any, *, allow_native: bool = False) -> str:
    """Normalize an asset identity, rejecting placeholders.

    The native sentinel is only accepted where the caller opts in; deposit
    and withdrawal of the native coin have dedicated entry points.
    """

    if not isinstance(value, str) or is_placeholder(value):
        raise InvalidAsset(value)
    asset = normalize_identity(value)
    if asset == NATIVE_ASSET and not allow_native:
        raise InvalidAsset(value)
    return asset


def require_amount(amount: Any) -> int:
    """Amounts are positive integers in the asset's smallest unit."""

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)
    return amount


def format_path(path: Iterable[str]) -> str:
    return " -> ".join(path)
