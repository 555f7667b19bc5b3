"""
Core data types for cross-DEX arbitrage detection.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from web3 import Web3


@dataclass(frozen=True)
class ConstantProduct:
    """
    Uniswap V2 style router priced by the x*y=k invariant.

    Quoted with a path-based ``getAmountsOut`` call against the router.
    """

    kind = "constant_product"

    def quote(self, web3: "Web3", exchange: "Exchange", request: "QuoteRequest") -> int:
        from .quoting import quote_constant_product

        return quote_constant_product(web3, exchange, request)


@dataclass(frozen=True)
class ConcentratedLiquidity:
    """
    Uniswap V3 style pool quoted through a Quoter contract.

    Attributes:
        quoter_address: Checksum address of the Quoter contract
        fee: Pool fee tier (e.g., 3000 for 0.30%)
    """

    quoter_address: str
    fee: int

    kind = "concentrated_liquidity"

    def quote(self, web3: "Web3", exchange: "Exchange", request: "QuoteRequest") -> int:
        from .quoting import quote_concentrated_liquidity

        return quote_concentrated_liquidity(web3, exchange, request)


PricingMechanism = Union[ConstantProduct, ConcentratedLiquidity]


@dataclass(frozen=True)
class Exchange:
    """
    A DEX venue.

    Attributes:
        name: Display name (e.g., "QuickSwap")
        router_address: Checksum address of the router contract
        mechanism: Pricing mechanism that decides which quote call is issued
    """

    name: str
    router_address: str
    mechanism: PricingMechanism = field(default_factory=ConstantProduct)

    @property
    def kind(self) -> str:
        return self.mechanism.kind


@dataclass(frozen=True)
class Token:
    """
    ERC-20 token descriptor.

    Attributes:
        symbol: Token symbol from config (e.g., "WETH")
        address: Checksum address of the token contract
        decimals: On-chain decimal precision (0-255)
    """

    symbol: str
    address: str
    decimals: int

    def __post_init__(self):
        if (
            isinstance(self.decimals, bool)
            or not isinstance(self.decimals, int)
            or not 0 <= self.decimals <= 255
        ):
            raise ValueError(
                f"Token '{self.symbol}' decimals must be an int in [0, 255]: {self.decimals}"
            )


@dataclass(frozen=True)
class QuoteRequest:
    """A single 'amount out for amount in' query against one exchange."""

    exchange: Exchange
    amount_in: int
    token_in: Token
    token_out: Token

    def describe(self) -> str:
        return f"{self.token_in.symbol}->{self.token_out.symbol} on {self.exchange.name}"


@dataclass(frozen=True)
class Opportunity:
    """
    A round trip whose net profit cleared the configured threshold.

    Decimal amounts are in human units. ``amount_in`` and ``amount_out`` are
    both denominated in the buy token (the reference asset), while
    ``intermediate_amount`` is in the sell token and is informational only.

    Attributes:
        buy_exchange: Exchange where the sell token was bought
        sell_exchange: Exchange where it was sold back
        buy_token_symbol: Reference asset symbol (e.g., "USDC")
        sell_token_symbol: Volatile asset symbol (e.g., "WETH")
        amount_in: Reference asset spent
        amount_out: Reference asset received after the round trip
        net_profit: Gross profit minus the simulated fixed cost
        intermediate_amount: Volatile asset received on the first leg
        gross_profit: amount_out - amount_in
    """

    buy_exchange: str
    sell_exchange: str
    buy_token_symbol: str
    sell_token_symbol: str
    amount_in: Decimal
    amount_out: Decimal
    net_profit: Decimal
    intermediate_amount: Decimal = Decimal(0)
    gross_profit: Decimal = Decimal(0)

    @property
    def path(self) -> str:
        return (
            f"{self.buy_token_symbol} -> {self.sell_token_symbol} -> "
            f"{self.buy_token_symbol}"
        )
