"""Test helpers for the swapbank test suite"""

from tests.helpers.venue_stubs import (
    ADMIN,
    ALICE,
    BANK,
    BOB,
    DAI,
    DEPLOYER,
    FIXED_NOW,
    LINK,
    MALLORY,
    ORPHAN,
    USDC,
    VENUE,
    WETH,
    ScriptedVenue,
    SwapCall,
    fund,
    make_config,
)

__all__ = [
    "ADMIN",
    "ALICE",
    "BANK",
    "BOB",
    "DAI",
    "DEPLOYER",
    "FIXED_NOW",
    "LINK",
    "MALLORY",
    "ORPHAN",
    "USDC",
    "VENUE",
    "WETH",
    "ScriptedVenue",
    "SwapCall",
    "fund",
    "make_config",
]
