"""
SwapBank Core: Configuration

Immutable bank parameters loaded from config/bank.yaml.

Caps, identities and slippage tolerance are fixed for the lifetime of a bank
instance. Only the venue adapter objects can be rotated, and only by an admin.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import logging

from core.assets import NATIVE_ASSET, require_address, require_asset
from core.exceptions import InvalidAmount, InvalidAsset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankConfig:
    """Frozen custody parameters"""
    reference_asset: str
    venue: str
    admin: str
    deployer: str
    identity: str
    wrapped_native_asset: str
    per_transaction_cap: int
    bank_cap: int
    slippage_numerator: int = 98
    slippage_denominator: int = 100
    deadline_seconds: int = 300
    bridge_asset: Optional[str] = None

    def __post_init__(self):
        # Normalize identities in place; frozen dataclasses need object.__setattr__
        for name in ("reference_asset", "wrapped_native_asset"):
            object.__setattr__(self, name, require_asset(getattr(self, name)))
        for name in ("venue", "admin", "deployer", "identity"):
            object.__setattr__(self, name, require_address(getattr(self, name)))
        bridge = self.bridge_asset or self.wrapped_native_asset
        object.__setattr__(self, "bridge_asset", require_asset(bridge))

        if self.bridge_asset == self.reference_asset:
            raise InvalidAsset(self.bridge_asset)
        for name in ("per_transaction_cap", "bank_cap", "slippage_numerator",
                     "slippage_denominator", "deadline_seconds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidAmount(value)
        if self.slippage_numerator > self.slippage_denominator:
            raise ValueError(
                f"slippage_numerator ({self.slippage_numerator}) must be <= "
                f"slippage_denominator ({self.slippage_denominator})"
            )
        if self.per_transaction_cap > self.bank_cap:
            raise ValueError(
                f"per_transaction_cap ({self.per_transaction_cap}) must be <= bank_cap ({self.bank_cap})"
            )

    @property
    def slippage_bps(self) -> int:
        """Worst-case negative slippage accepted, in basis points."""
        return (self.slippage_denominator - self.slippage_numerator) * 10_000 // self.slippage_denominator

    def minimum_output(self, expected_output: int) -> int:
        """Slippage-bounded minimum for a quoted output (integer floor)."""
        return expected_output * self.slippage_numerator // self.slippage_denominator

    def route_asset(self, asset: str) -> str:
        """Identity used on the venue for ``asset`` (native trades as wrapped native)."""
        return self.wrapped_native_asset if asset == NATIVE_ASSET else asset

    def config_hash(self) -> str:
        """
        SHA256 of the immutable parameters.

        Recorded in audit entries for configuration drift detection.

        Returns:
            Hex-encoded SHA256 hash (first 16 chars for brevity)
        """
        payload = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BankConfig":
        """Build from the parsed ``bank`` + ``trading`` sections of bank.yaml."""
        bank = data.get("bank", {}) or {}
        trading = data.get("trading", {}) or {}
        return cls(
            reference_asset=bank["reference_asset"],
            venue=bank["venue"],
            admin=bank["admin"],
            deployer=bank["deployer"],
            identity=bank["identity"],
            wrapped_native_asset=bank["wrapped_native_asset"],
            bridge_asset=bank.get("bridge_asset"),
            per_transaction_cap=int(bank["per_transaction_cap"]),
            bank_cap=int(bank["bank_cap"]),
            slippage_numerator=int(trading.get("slippage_numerator", 98)),
            slippage_denominator=int(trading.get("slippage_denominator", 100)),
            deadline_seconds=int(trading.get("deadline_seconds", 300)),
        )


@dataclass
class AppSettings:
    """Ambient settings that do not affect custody semantics"""
    log_level: str = "INFO"
    log_file: str = "logs/swapbank.log"
    metrics_enabled: bool = True
    metrics_port: int = 9100
    audit_file: str = "logs/audit.jsonl"
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        log_cfg = data.get("logging", {}) or {}
        monitoring_cfg = data.get("monitoring", {}) or {}
        audit_cfg = data.get("audit", {}) or {}
        return cls(
            log_level=str(log_cfg.get("level", "INFO")).upper(),
            log_file=log_cfg.get("file", "logs/swapbank.log"),
            metrics_enabled=bool(monitoring_cfg.get("metrics_enabled", True)),
            metrics_port=int(monitoring_cfg.get("metrics_port", 9100)),
            audit_file=audit_cfg.get("file", "logs/audit.jsonl"),
            raw=data,
        )


def load_bank_config(path: str = "config/bank.yaml") -> Tuple[BankConfig, AppSettings]:
    """
    Load and validate bank.yaml.

    Raises:
        ValueError: if schema or sanity validation fails

    Returns:
        (BankConfig, AppSettings)
    """
    from tools.config_validator import load_yaml_file, validate_bank_config

    config_path = Path(path)
    validation_errors = validate_bank_config(str(config_path))
    if validation_errors:
        logger.error("=" * 80)
        logger.error("CONFIGURATION VALIDATION FAILED")
        logger.error("=" * 80)
        for idx, error in enumerate(validation_errors, start=1):
            lines = str(error).splitlines()
            if not lines:
                continue
            logger.error(f"{idx:>2}. {lines[0]}")
        logger.error("=" * 80)
        raise ValueError(f"Invalid configuration: {len(validation_errors)} error(s) found")

    data = load_yaml_file(config_path)
    bank_config = BankConfig.from_dict(data)
    settings = AppSettings.from_dict(data)
    logger.info(
        f"Loaded bank config from {config_path}: reference={bank_config.reference_asset}, "
        f"per_tx_cap={bank_config.per_transaction_cap}, bank_cap={bank_config.bank_cap}, "
        f"slippage={bank_config.slippage_numerator}/{bank_config.slippage_denominator}, "
        f"hash={bank_config.config_hash()}"
    )
    return bank_config, settings
