"""
Accounting invariants under mixed traffic.

Runs seeded sequences of deposits and withdrawals (many of them rejected)
against the constant-product venue and checks after every request that:
- aggregate balance equals the sum of account balances
- aggregate balance stays within [0, bank_cap]
- reference assets held in custody equal the aggregate balance
- rejected requests leave the ledger exactly as it was
"""

import random

import pytest

from core.assets import NATIVE_ASSET
from core.bank import SwapBank
from core.exceptions import BankError
from infra.access_control import InMemoryAccessController
from sim.amm_venue import ConstantProductVenue
from tests.helpers import ALICE, BANK, BOB, DAI, LINK, MALLORY, USDC, VENUE, WETH, fund, make_config

ACCOUNTS = (ALICE, BOB, MALLORY)


@pytest.fixture
def amm(book, clock):
    venue = ConstantProductVenue(book, VENUE, WETH, clock=clock)
    venue.add_pool(WETH, USDC, 50_000, 100_000_000)
    venue.add_pool(DAI, USDC, 100_000_000, 100_000_000)
    venue.add_pool(LINK, WETH, 10_000_000, 50_000)
    return venue


@pytest.fixture
def funded_book(book):
    for account in ACCOUNTS:
        fund(book, account, NATIVE_ASSET, 1_000)
        for asset in (DAI, LINK, USDC):
            fund(book, account, asset, 5_000_000)
    return book


def _random_request(bank: SwapBank, rng: random.Random):
    account = rng.choice(ACCOUNTS)
    kind = rng.randrange(7)
    amount = rng.choice([0, 1, rng.randint(1, 60_000), rng.randint(60_000, 250_000)])
    if kind == 0:
        return lambda: bank.deposit_native(account, amount // 2_000)
    if kind == 1:
        return lambda: bank.deposit_asset(account, DAI, amount)
    if kind == 2:
        return lambda: bank.deposit_asset(account, LINK, amount // 10)
    if kind == 3:
        return lambda: bank.deposit_asset(account, USDC, amount)
    if kind == 4:
        return lambda: bank.withdraw_reference(account, amount)
    if kind == 5:
        return lambda: bank.withdraw_as_native(account, amount)
    return lambda: bank.withdraw_as_asset(account, amount, rng.choice([DAI, LINK]))


@pytest.mark.parametrize("seed", [7, 42, 1337])
def test_invariants_hold_for_random_traffic(amm, funded_book, clock, seed):
    bank = SwapBank(
        make_config(bank_cap=600_000), amm, amm, funded_book, InMemoryAccessController(), clock=clock
    )
    rng = random.Random(seed)
    settled = rejected = 0

    for _ in range(150):
        before = bank.ledger.snapshot()
        try:
            _random_request(bank, rng)()
            settled += 1
        except BankError:
            rejected += 1
            assert bank.ledger.snapshot() == before

        bank.verify_invariants()
        assert sum(bank.ledger.accounts().values()) == bank.aggregate_balance
        assert funded_book.balance_of(USDC, BANK) == bank.aggregate_balance

    assert settled > 0
    assert rejected > 0


@pytest.mark.parametrize("asset", [DAI, LINK])
def test_round_trip_never_returns_more_than_deposited(amm, funded_book, clock, asset):
    bank = SwapBank(make_config(), amm, amm, funded_book, InMemoryAccessController(), clock=clock)
    deposit = 20_000 if asset == DAI else 2_000
    held_before = funded_book.balance_of(asset, ALICE)

    credited = bank.deposit_asset(ALICE, asset, deposit)
    returned = bank.withdraw_as_asset(ALICE, credited, asset)

    assert returned <= deposit
    assert funded_book.balance_of(asset, ALICE) == held_before - deposit + returned
    assert bank.query_balance(ALICE) == 0


def test_withdrawal_debits_exactly_the_requested_amount(amm, funded_book, clock):
    bank = SwapBank(make_config(), amm, amm, funded_book, InMemoryAccessController(), clock=clock)
    bank.deposit_asset(ALICE, USDC, 90_000)

    bank.withdraw_as_asset(ALICE, 12_345, DAI)
    bank.withdraw_as_native(ALICE, 20_000)
    bank.withdraw_reference(ALICE, 1)

    assert bank.query_balance(ALICE) == 90_000 - 12_345 - 20_000 - 1
    assert bank.withdrawal_count == 3
