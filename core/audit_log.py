"""
SwapBank Core: Audit Logger

Structured trail of every request outcome and every executed trade, for
reconciliation, debugging, and analysis.
"""

import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Structured audit trail logger.

    Logs:
    - Request outcomes (operation, caller, amount, status, error payload)
    - Trade-executed facts (asset in/out, amount in/out, quote, minimum)
    - Ledger aggregate after settlement

    Output format: JSONL (one JSON object per line)
    """

    def __init__(self, audit_file: Optional[str] = None, config_hash: Optional[str] = None):
        """
        Initialize audit logger.

        Args:
            audit_file: Path to audit log file (default: logs/audit.jsonl)
            config_hash: Hash of the bank configuration stamped on every entry
        """
        if audit_file:
            self.audit_file = Path(audit_file)
        else:
            self.audit_file = Path("logs/audit.jsonl")
        self.config_hash = config_hash

        # Ensure directory exists
        self.audit_file.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized AuditLogger at {self.audit_file}")

    def log_request(self,
                    operation: str,
                    caller: Optional[str],
                    amount: Any = None,
                    asset: Optional[str] = None,
                    error: Optional[Dict[str, Any]] = None,
                    result: Optional[Dict[str, Any]] = None,
                    aggregate_balance: Optional[int] = None,
                    ts: Optional[datetime] = None) -> None:
        """
        Log a completed or rejected request.

        Args:
            operation: Public operation name (deposit_native, withdraw_as_asset, ...)
            caller: Account that issued the request
            amount: Requested amount
            asset: Asset involved, if any
            error: Structured failure payload (BankError.to_dict()) when rejected
            result: Outcome details when settled
            aggregate_balance: Aggregate balance after the request
            ts: Request timestamp
        """
        entry = {
            "timestamp": (ts or datetime.now(timezone.utc)).isoformat(),
            "type": "request",
            "operation": operation,
            "caller": caller,
            "amount": amount if isinstance(amount, int) else repr(amount),
            "asset": asset,
            "status": "REJECTED" if error else "SETTLED",
            "config_hash": self.config_hash,
        }
        if error:
            entry["error"] = {k: self._jsonable(v) for k, v in error.items()}
        if result:
            entry["result"] = result
        if aggregate_balance is not None:
            entry["aggregate_balance"] = aggregate_balance
        self._write(entry)

    def log_trade(self, trade: Any) -> None:
        """Log a trade-executed fact (TradeRecord or dict)."""
        if hasattr(trade, "to_dict"):
            payload = trade.to_dict()
        elif isinstance(trade, dict):
            payload = dict(trade)
        else:
            payload = {"raw": str(trade)}
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": "trade",
            "config_hash": self.config_hash,
            **payload,
        }
        self._write(entry)

    def _write(self, entry: Dict[str, Any]) -> None:
        try:
            # Write JSONL (one JSON per line)
            with open(self.audit_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
            logger.debug(f"Audited {entry['type']}: {entry.get('operation') or entry.get('direction')}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write audit log: {e}")

    @staticmethod
    def _jsonable(value: Any) -> Any:
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        return repr(value)

    def get_recent_entries(self, n: int = 10) -> List[Dict[str, Any]]:
        """
        Get the N most recent audit entries.

        Returns:
            List of entries (most recent first)
        """
        if not self.audit_file.exists():
            return []

        with open(self.audit_file, "r", encoding="utf-8") as f:
            lines = f.readlines()

        entries = []
        for line in lines[-n:]:
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue

        return list(reversed(entries))  # Most recent first
