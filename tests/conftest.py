"""Shared fixtures for scanner tests."""

import copy

import pytest

from dex_arbitrage.config import ScannerConfig
from dex_arbitrage.exceptions import QuoteUnavailableError

USDC_ADDR = "0x" + "11" * 20
WETH_ADDR = "0x" + "22" * 20
WBTC_ADDR = "0x" + "33" * 20
ROUTER_A = "0x" + "aa" * 20
ROUTER_B = "0x" + "bb" * 20
ROUTER_C = "0x" + "cc" * 20
QUOTER_C = "0x" + "cd" * 20

BASE_CONFIG = {
    "rpc_url": "https://polygon-rpc.com",
    "database_url": "arbitrage.db",
    "check_interval_seconds": 1,
    "reference_token": "USDC",
    "trade_amount": 1000,
    "min_profit_threshold": 5.0,
    "simulated_gas_cost": 1.0,
    "tokens": {
        "USDC": {"address": USDC_ADDR, "decimals": 6},
        "WETH": {"address": WETH_ADDR, "decimals": 18},
    },
    "exchanges": [
        {"name": "A", "kind": "constant_product", "router": ROUTER_A},
        {"name": "B", "kind": "constant_product", "router": ROUTER_B},
    ],
}


class FakeQuoter:
    """
    Async stand-in for get_amount_out_async.

    quotes maps (exchange, token_in, token_out) to an int, an exception to
    raise, or a callable of amount_in. Unknown routes raise
    QuoteUnavailableError.
    """

    def __init__(self, quotes=None):
        self.quotes = quotes or {}
        self.calls = []

    async def __call__(self, web3, exchange, amount_in, token_in, token_out, max_retries=3):
        key = (exchange.name, token_in.symbol, token_out.symbol)
        self.calls.append(key + (amount_in,))
        result = self.quotes.get(key)
        if result is None:
            raise QuoteUnavailableError(f"no route {key}", exchange=exchange.name)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(amount_in)
        return result


@pytest.fixture
def config_dict():
    """Two constant-product DEXes, USDC reference, WETH volatile."""
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def make_config(config_dict):
    """Factory building a ScannerConfig from the base dict plus overrides."""

    def _make(**overrides):
        d = copy.deepcopy(config_dict)
        d.update(overrides)
        return ScannerConfig(d)

    return _make
