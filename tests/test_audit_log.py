"""
Tests for AuditLogger and its wiring into SwapBank.

Coverage:
- JSONL request and trade entries
- Rejections carry the structured error payload
- Config hash stamped on every entry
- Unwritable audit file does not break requests
"""

import json

import pytest

from core.assets import NATIVE_ASSET
from core.audit_log import AuditLogger
from core.conversion import TradeRecord
from core.exceptions import InsufficientBalance, TransactionAmountExceeded
from tests.helpers import ALICE, DAI, USDC, WETH, fund


def _read(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_request_entry_format(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.jsonl"), config_hash="abc123")

    audit.log_request("deposit_asset", ALICE, 100, DAI, result={"amount_out": 99}, aggregate_balance=99)

    (entry,) = _read(audit.audit_file)
    assert entry["type"] == "request"
    assert entry["operation"] == "deposit_asset"
    assert entry["status"] == "SETTLED"
    assert entry["result"] == {"amount_out": 99}
    assert entry["aggregate_balance"] == 99
    assert entry["config_hash"] == "abc123"


def test_rejection_entry_carries_error_payload(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.jsonl"))

    audit.log_request("withdraw_reference", ALICE, 5, USDC, error=InsufficientBalance(5, 0).to_dict())

    (entry,) = _read(audit.audit_file)
    assert entry["status"] == "REJECTED"
    assert entry["error"]["error"] == "insufficient_balance"
    assert entry["error"]["requested"] == 5
    assert entry["error"]["available"] == 0


def test_non_json_values_are_stringified(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.jsonl"))

    audit.log_request("deposit_native", ALICE, 1.5, NATIVE_ASSET, error={"error": "x", "value": object()})

    (entry,) = _read(audit.audit_file)
    assert entry["amount"] == "1.5"
    assert entry["error"]["value"].startswith("<object")


def test_trade_entry(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.jsonl"))
    record = TradeRecord(
        direction="deposit",
        account=ALICE,
        asset_in=NATIVE_ASSET,
        asset_out=USDC,
        amount_in=25,
        amount_out=50_500,
        expected_out=50_000,
        minimum_out=49_000,
        path=(WETH, USDC),
    )

    audit.log_trade(record)

    (entry,) = _read(audit.audit_file)
    assert entry["type"] == "trade"
    assert entry["amount_out"] == 50_500
    assert entry["path"] == [WETH, USDC]
    assert entry["slippage_bps"] == -100.0


def test_recent_entries_most_recent_first(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.jsonl"))
    for i in range(5):
        audit.log_request("deposit_asset", ALICE, i + 1, DAI)

    recent = audit.get_recent_entries(2)

    assert [e["amount"] for e in recent] == [5, 4]


def test_recent_entries_without_file(tmp_path):
    audit = AuditLogger(str(tmp_path / "nested" / "audit.jsonl"))
    assert audit.get_recent_entries() == []


def test_bank_audits_settlements_and_rejections(bank_factory, book, audit):
    bank = bank_factory(audit=audit)
    fund(book, ALICE, DAI, 10_000)

    bank.deposit_asset(ALICE, DAI, 10_000)
    with pytest.raises(TransactionAmountExceeded):
        bank.deposit_native(ALICE, 100)

    entries = _read(audit.audit_file)
    assert [e["type"] for e in entries] == ["trade", "request", "request"]
    trade, settled, rejected = entries
    assert trade["direction"] == "deposit"
    assert settled["status"] == "SETTLED"
    assert settled["result"]["balance_after"] == 10_000
    assert settled["aggregate_balance"] == 10_000
    assert rejected["status"] == "REJECTED"
    assert rejected["error"]["error"] == "transaction_amount_exceeded"
    assert rejected["error"]["requested"] == 200_000
    assert all(e["config_hash"] == "testhash" for e in entries)


def test_audit_write_failure_does_not_fail_request(bank_factory, book, tmp_path):
    target = tmp_path / "audit-dir"
    audit = AuditLogger(str(target / "audit.jsonl"))
    (target / "audit.jsonl").mkdir()  # a directory where the file should be
    bank = bank_factory(audit=audit)
    fund(book, ALICE, DAI, 100)

    assert bank.deposit_asset(ALICE, DAI, 100) == 100
