"""
Pytest configuration and fixtures for swapbank tests.

This conftest.py wires a bank to an in-memory asset book, a scripted venue
and an in-memory access controller. Individual tests bend the venue
(slippage, failures, callbacks) through its knobs.
"""
import pytest

from core.audit_log import AuditLogger
from core.bank import SwapBank
from infra.access_control import InMemoryAccessController
from infra.metrics import MetricsRecorder
from sim.asset_book import InMemoryAssetBook
from tests.helpers import DAI, FIXED_NOW, LINK, USDC, WETH, ScriptedVenue, make_config


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def bank_config():
    return make_config()


@pytest.fixture
def book():
    return InMemoryAssetBook()


@pytest.fixture
def venue(book):
    """
    Scripted venue with:
    - WETH/USDC direct (1 WETH = 2,000 USDC units)
    - DAI/USDC direct (1:1)
    - LINK/WETH only (200 LINK = 1 WETH), so LINK routes through the bridge
    """
    v = ScriptedVenue(book)
    v.list_pair(WETH, USDC, 2_000)
    v.list_pair(DAI, USDC, 1)
    v.list_pair(LINK, WETH, 1, 200)
    return v


@pytest.fixture
def access():
    return InMemoryAccessController()


@pytest.fixture
def metrics():
    return MetricsRecorder(enabled=True)


@pytest.fixture
def audit(tmp_path):
    return AuditLogger(str(tmp_path / "audit.jsonl"), config_hash="testhash")


@pytest.fixture
def bank_factory(venue, book, metrics, clock):
    """Build a bank on the shared book/venue with config overrides."""

    def _build(audit=None, **overrides) -> SwapBank:
        return SwapBank(
            make_config(**overrides),
            venue,
            venue,
            book,
            InMemoryAccessController(),
            audit=audit,
            metrics=metrics,
            clock=clock,
        )

    return _build


@pytest.fixture
def bank(bank_config, venue, book, access, metrics, clock):
    return SwapBank(bank_config, venue, venue, book, access, metrics=metrics, clock=clock)
