"""
Tests for TradeRouter and ConversionPipeline.

Coverage:
- Path resolution (identity, direct, bridged, unroutable)
- Quote failure mapping
- Minimum output, deadline and approval handling on trades
- Compensation when the venue fails or misbehaves
"""

import pytest

from core.assets import NATIVE_ASSET
from core.conversion import ConversionPipeline, TradeRouter
from core.exceptions import InvalidAmount, PairNotFound, SwapFailed, TransferFailed
from core.ledger import Ledger
from core.validation import ValidationEngine
from sim.asset_book import AssetBookError
from tests.helpers import ALICE, BANK, DAI, FIXED_NOW, LINK, ORPHAN, USDC, VENUE, WETH, fund


@pytest.fixture
def router(bank_config, venue):
    return TradeRouter(bank_config, venue)


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def pipeline(bank_config, ledger, router, venue, book, clock):
    validator = ValidationEngine(bank_config, ledger, router)
    return ConversionPipeline(bank_config, ledger, router, venue, book, validator, clock=clock)


# Routing

def test_identity_conversion_has_single_hop_path(router, venue):
    quote = router.quote(500, USDC, USDC)
    assert quote.path == (USDC,)
    assert quote.expected_out == 500
    assert quote.hops == 0
    assert venue.quotes == []


def test_native_routes_as_wrapped_native(router):
    assert router.resolve_path(NATIVE_ASSET, USDC) == (WETH, USDC)
    assert router.resolve_path(USDC, NATIVE_ASSET) == (USDC, WETH)


def test_direct_pair_preferred(router):
    assert router.resolve_path(DAI, USDC) == (DAI, USDC)


def test_bridge_path_when_no_direct_pair(router, venue):
    quote = router.quote(2_000, LINK, USDC)

    assert quote.path == (LINK, WETH, USDC)
    assert quote.amounts == (2_000, 10, 20_000)
    assert quote.hops == 2
    assert venue.quotes == [(2_000, (LINK, WETH, USDC))]


def test_unroutable_asset_raises_pair_not_found(router):
    with pytest.raises(PairNotFound) as exc:
        router.resolve_path(ORPHAN, USDC)
    assert (exc.value.asset_in, exc.value.asset_out) == (ORPHAN, USDC)


def test_bridge_is_not_used_when_it_is_an_endpoint(router, venue):
    # No DAI/WETH pair and WETH cannot bridge to itself
    with pytest.raises(PairNotFound):
        router.resolve_path(DAI, WETH)


def test_quote_errors_become_swap_failed(router, venue):
    venue.quote_error = ConnectionError("rpc timeout")
    with pytest.raises(SwapFailed) as exc:
        router.quote(10, DAI, USDC)
    assert "quote_unavailable" in exc.value.reason
    assert isinstance(exc.value.original, ConnectionError)


def test_malformed_quote_rejected(router, venue, monkeypatch):
    monkeypatch.setattr(venue, "get_amounts_out", lambda amount, path: [amount])
    with pytest.raises(SwapFailed, match="malformed_quote"):
        router.quote(10, DAI, USDC)


# Deposit direction

def test_deposit_trade_parameters(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 10_000)

    record = pipeline.deposit(ALICE, DAI, 10_000)

    call = venue.calls[0]
    assert call.minimum_out == 9_800
    assert call.deadline == FIXED_NOW + 300
    assert call.recipient == BANK
    assert call.sender == BANK
    assert call.path == (DAI, USDC)
    assert not call.native_in
    assert record.amount_out == 10_000
    assert record.expected_out == 10_000
    assert ledger.balance_of(ALICE) == 10_000
    assert book.balance_of(USDC, BANK) == 10_000
    # approval fully consumed by the trade
    assert book.allowance(DAI, BANK, VENUE) == 0


def test_deposit_credits_executed_not_quoted_amount(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 10_000)
    venue.fill_ratio = (99, 100)

    record = pipeline.deposit(ALICE, DAI, 10_000)

    assert record.amount_out == 9_900
    assert record.slippage_bps == 100.0
    assert ledger.balance_of(ALICE) == 9_900


def test_native_deposit_skips_approval(pipeline, venue, book):
    fund(book, ALICE, NATIVE_ASSET, 5)

    pipeline.deposit(ALICE, NATIVE_ASSET, 5)

    assert venue.calls[0].native_in
    assert venue.calls[0].path == (WETH, USDC)
    assert book.allowance(WETH, BANK, VENUE) == 0
    assert book.balance_of(NATIVE_ASSET, ALICE) == 0


def test_failed_deposit_swap_refunds_input(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 5_000)
    venue.swap_error = RuntimeError("pool paused")

    with pytest.raises(SwapFailed) as exc:
        pipeline.deposit(ALICE, DAI, 5_000)

    assert exc.value.minimum_out == 4_900
    assert book.balance_of(DAI, ALICE) == 5_000
    assert book.balance_of(DAI, BANK) == 0
    assert book.allowance(DAI, BANK, VENUE) == 0
    assert ledger.aggregate_balance == 0
    assert pipeline.trade_history == []


def test_under_filled_deposit_refunds_proceeds(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 10_000)
    venue.enforce_minimum = False
    venue.fill_ratio = (90, 100)

    with pytest.raises(SwapFailed, match="below minimum") as exc:
        pipeline.deposit(ALICE, DAI, 10_000)

    # input was consumed by the venue; what came back goes to the depositor
    assert exc.value.details["refunded_amount"] == 9_000
    assert "refund_error" not in exc.value.details
    assert book.balance_of(USDC, ALICE) == 9_000
    assert book.balance_of(USDC, BANK) == 0
    assert book.balance_of(DAI, ALICE) == 0
    assert ledger.aggregate_balance == 0
    assert ledger.deposit_count == 0


def test_failed_refund_is_reported_on_the_original_error(pipeline, venue, book, monkeypatch):
    fund(book, ALICE, DAI, 10_000)
    venue.enforce_minimum = False
    venue.fill_ratio = (90, 100)

    def frozen(*args, **kwargs):
        raise AssetBookError("account frozen")

    monkeypatch.setattr(book, "transfer", frozen)

    with pytest.raises(SwapFailed) as exc:
        pipeline.deposit(ALICE, DAI, 10_000)

    assert "account frozen" in exc.value.details["refund_error"]
    assert exc.value.details["refunded_amount"] is None
    assert book.balance_of(USDC, BANK) == 9_000


def test_received_amount_comes_from_balances_not_venue_report(pipeline, venue, book, ledger, monkeypatch):
    fund(book, ALICE, DAI, 10_000)
    executed = venue.swap_exact_in

    def boastful(*args, **kwargs):
        amounts = executed(*args, **kwargs)
        return amounts[:-1] + [amounts[-1] * 2]

    monkeypatch.setattr(venue, "swap_exact_in", boastful)

    record = pipeline.deposit(ALICE, DAI, 10_000)

    assert record.amount_out == 10_000
    assert ledger.balance_of(ALICE) == 10_000


def test_venue_that_moves_nothing_counts_as_refused(pipeline, venue, book, ledger, monkeypatch):
    fund(book, ALICE, DAI, 10_000)
    monkeypatch.setattr(venue, "swap_exact_in", lambda *args, **kwargs: [])

    with pytest.raises(SwapFailed, match="venue_did_not_execute"):
        pipeline.deposit(ALICE, DAI, 10_000)

    assert book.allowance(DAI, BANK, VENUE) == 0
    assert book.balance_of(DAI, ALICE) == 10_000
    assert ledger.aggregate_balance == 0


def test_unpulled_input_raises_transfer_failed(pipeline, book, venue):
    book.mint(DAI, ALICE, 100)  # no approval for the bank

    with pytest.raises(TransferFailed) as exc:
        pipeline.deposit(ALICE, DAI, 100)

    assert exc.value.asset == DAI
    assert venue.calls == []


# Withdrawal direction

def test_withdrawal_swap_sends_output_to_account(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 40_000)
    pipeline.deposit(ALICE, DAI, 40_000)

    with ledger.transaction():
        record = pipeline.withdraw(ALICE, 20_000, NATIVE_ASSET)

    call = venue.calls[-1]
    assert call.path == (USDC, WETH)
    assert call.native_out
    assert call.recipient == ALICE
    assert call.minimum_out == 9
    assert record.amount_out == 10
    assert book.balance_of(NATIVE_ASSET, ALICE) == 10
    assert ledger.balance_of(ALICE) == 20_000


def test_failed_withdrawal_swap_restores_debit(pipeline, venue, book, ledger):
    fund(book, ALICE, DAI, 40_000)
    pipeline.deposit(ALICE, DAI, 40_000)
    venue.swap_error = RuntimeError("EXPIRED")

    with pytest.raises(SwapFailed):
        with ledger.transaction():
            pipeline.withdraw(ALICE, 10_000, DAI)

    assert ledger.balance_of(ALICE) == 40_000
    assert ledger.withdrawal_count == 0
    assert book.balance_of(USDC, BANK) == 40_000
    assert book.allowance(USDC, BANK, VENUE) == 0


def test_under_filled_withdrawal_keeps_debit(pipeline, venue, book, ledger):
    fund(book, ALICE, USDC, 10_000)
    pipeline.deposit(ALICE, USDC, 10_000)
    venue.enforce_minimum = False
    venue.fill_ratio = (90, 100)

    with ledger.transaction():
        record = pipeline.withdraw(ALICE, 10_000, DAI)

    # the venue spent the bank's USDC and paid out; the debit must stand
    assert record.amount_out == 9_000
    assert record.minimum_out == 9_800
    assert record.shortfall == 800
    assert book.balance_of(DAI, ALICE) == 9_000
    assert ledger.balance_of(ALICE) == 0
    assert ledger.aggregate_balance == book.balance_of(USDC, BANK) == 0
    assert book.allowance(USDC, BANK, VENUE) == 0


@pytest.mark.parametrize("amount", [0, -5, True, 1.5])
def test_estimate_rejects_invalid_amounts(pipeline, venue, amount):
    with pytest.raises(InvalidAmount):
        pipeline.estimate(amount, USDC, USDC)
    assert venue.quotes == []
