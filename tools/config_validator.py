"""
Configuration Validation Module

Validates bank.yaml against Pydantic schemas and cross-field sanity rules.
Ensures the bank refuses to start with caps, identities or slippage settings
that would break its invariants.

Usage:
    from tools.config_validator import validate_bank_config

    errors = validate_bank_config("config/bank.yaml")
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        sys.exit(1)
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.assets import NATIVE_ASSET, is_placeholder

logger = logging.getLogger(__name__)


def _check_identity(value: str) -> str:
    if is_placeholder(value):
        raise ValueError(f"placeholder identity not allowed: {value!r}")
    return value.strip().lower()


# ===== Bank Schema =====
class BankSection(BaseModel):
    """Immutable custody parameters"""
    model_config = ConfigDict(extra="forbid")

    reference_asset: str = Field(min_length=1, description="Settlement asset all balances are denominated in")
    venue: str = Field(min_length=1, description="Exchange venue identity")
    admin: str = Field(min_length=1, description="Account granted the admin role at startup")
    deployer: str = Field(min_length=1, description="Account granted the root role at startup")
    identity: str = Field(min_length=1, description="Custody account the bank holds assets under")
    wrapped_native_asset: str = Field(min_length=1, description="Token standing in for the native coin on the venue")
    bridge_asset: Optional[str] = Field(default=None, description="Intermediate hop when no direct pair exists (default: wrapped native)")
    per_transaction_cap: int = Field(gt=0, description="Max reference value per operation")
    bank_cap: int = Field(gt=0, description="Max aggregate reference value under custody")

    @field_validator("reference_asset", "venue", "admin", "deployer", "identity", "wrapped_native_asset")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        """Reject zero/placeholder identities"""
        return _check_identity(v)

    @field_validator("bridge_asset")
    @classmethod
    def validate_bridge(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_identity(v)


class TradingSection(BaseModel):
    """Slippage and deadline parameters"""
    model_config = ConfigDict(extra="forbid")

    slippage_numerator: int = Field(gt=0, description="Accepted fraction of the quote (numerator)")
    slippage_denominator: int = Field(gt=0, description="Accepted fraction of the quote (denominator)")
    deadline_seconds: int = Field(gt=0, description="Advisory trade deadline window")

    @field_validator("slippage_denominator")
    @classmethod
    def validate_ratio(cls, v: int, info) -> int:
        """Ensure the accepted fraction is at most 1"""
        numerator = info.data.get("slippage_numerator", 0)
        if numerator > v:
            raise ValueError(f"slippage_numerator ({numerator}) must be <= slippage_denominator ({v})")
        return v


class LoggingSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str = "logs/swapbank.log"


class MonitoringSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    metrics_enabled: bool = True
    metrics_port: int = Field(default=9100, ge=0)


class AuditSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    file: str = "logs/audit.jsonl"


class BankConfigSchema(BaseModel):
    """Complete bank.yaml schema"""
    bank: BankSection
    trading: TradingSection
    logging: LoggingSection = Field(default_factory=LoggingSection)
    monitoring: MonitoringSection = Field(default_factory=MonitoringSection)
    audit: AuditSection = Field(default_factory=AuditSection)


# ===== Validation Functions =====
def _format_yaml_error(file_path: Path, error: yaml.YAMLError) -> str:
    """Return enriched message with line/column context for YAML errors."""

    message = f"Malformed YAML in {file_path}: {error}"
    mark = getattr(error, "problem_mark", None)
    if mark is None:
        return message

    line = getattr(mark, "line", None)
    column = getattr(mark, "column", None)
    if line is None or column is None:
        return message

    raw_lines = file_path.read_text().splitlines()
    start = max(line - 2, 0)
    end = min(line + 3, len(raw_lines))

    snippet_lines: List[str] = []
    for idx in range(start, end):
        pointer = "▶" if idx == line else " "
        snippet_lines.append(f"{pointer} {idx + 1:04d} | {raw_lines[idx]}")

    snippet = "\n".join(snippet_lines)
    problem = getattr(error, "problem", str(error))

    return (
        f"Malformed YAML in {file_path}: line {line + 1}, column {column + 1}: {problem}\n"
        f"Context:\n{snippet}"
    )


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load YAML file and return as dict.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(_format_yaml_error(file_path, e))
    return data or {}


def validate_schema(config: Dict[str, Any], name: str = "bank.yaml") -> List[str]:
    """Validate an already-parsed config dict against the schema."""
    errors = []
    try:
        BankConfigSchema(**config)
    except ValidationError as e:
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append(f"{name}: {field}: {error['msg']}")
    return errors


def validate_sanity_checks(config: Dict[str, Any], name: str = "bank.yaml") -> List[str]:
    """
    Logical consistency checks the schema cannot express.

    Detects:
    - per-transaction cap larger than the bank cap
    - reference asset doubling as the bridge or wrapped-native asset
    - native sentinel used as a token identity
    """
    errors = []
    bank = BankConfigSchema(**config).bank

    if bank.per_transaction_cap > bank.bank_cap:
        errors.append(
            f"{name}: bank.per_transaction_cap ({bank.per_transaction_cap}) "
            f"must be <= bank.bank_cap ({bank.bank_cap})"
        )

    bridge = bank.bridge_asset or bank.wrapped_native_asset
    if bridge == bank.reference_asset:
        errors.append(f"{name}: bridge asset must differ from reference_asset ({bank.reference_asset})")

    for field_name in ("reference_asset", "wrapped_native_asset", "bridge_asset"):
        if getattr(bank, field_name) == NATIVE_ASSET:
            errors.append(f"{name}: bank.{field_name} cannot be the native sentinel '{NATIVE_ASSET}'")

    if bank.identity in (bank.reference_asset, bank.venue):
        errors.append(f"{name}: bank.identity must be a distinct custody account")

    return errors


def validate_bank_config(path: str = "config/bank.yaml") -> List[str]:
    """
    Validate a bank configuration file.

    Performs:
    1. YAML parsing
    2. Schema validation (Pydantic type checks)
    3. Sanity checks (only if schema validation passed)

    Returns:
        List of all error messages (empty if valid)
    """
    config_path = Path(path)
    name = config_path.name

    try:
        config = load_yaml_file(config_path)
    except FileNotFoundError as e:
        return [f"{name}: {e}"]
    except yaml.YAMLError as e:
        return [f"{name}: Invalid YAML - {e}"]

    if not isinstance(config, dict):
        return [f"{name}: top level must be a mapping"]

    all_errors = validate_schema(config, name)
    if not all_errors:
        all_errors.extend(validate_sanity_checks(config, name))

    if not all_errors:
        logger.info(f"✅ {name} validated successfully")
    else:
        logger.error(f"❌ {len(all_errors)} validation error(s) found in {name}")

    return all_errors


if __name__ == "__main__":
    """Run validation from command line"""
    import sys

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config_path = sys.argv[1] if len(sys.argv) > 1 else "config/bank.yaml"

    errors = validate_bank_config(config_path)

    if errors:
        print("\n❌ Configuration Validation Failed:\n")
        for error in errors:
            print(f"  • {error}")
        print()
        sys.exit(1)

    print(f"\n✅ {config_path} is valid\n")
