"""
Quote provider for heterogeneous DEX pricing mechanisms.

Gives callers a uniform "amount out for amount in" query whether the venue
is a constant-product router (path-based getAmountsOut) or a
concentrated-liquidity quoter (quoteExactInputSingle with a fee tier).
All amounts are raw integer token units.
"""

import asyncio
import functools
from typing import Any

from web3 import Web3

from .abi import UNISWAP_V2_ROUTER_ABI, UNISWAP_V3_QUOTER_ABI
from .exceptions import QuoteUnavailableError
from .types import Exchange, QuoteRequest, Token
from .utils import get_logger

logger = get_logger(__name__)

# Price limit of zero: the quoter is only simulating, so no limit applies
NO_PRICE_LIMIT = 0


def _checked_amount(value: Any, request: QuoteRequest) -> int:
    """Validate a raw amount returned by a contract call."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise QuoteUnavailableError(
            f"Malformed quote from {request.exchange.name}: {value!r}",
            exchange=request.exchange.name,
            token_in=request.token_in.symbol,
            token_out=request.token_out.symbol,
        )
    return value


def quote_constant_product(web3: Web3, exchange: Exchange, request: QuoteRequest) -> int:
    """
    Quote a direct swap on a Uniswap V2 style router.

    Calls ``getAmountsOut(amount_in, [token_in, token_out])`` and keeps the
    output of the final hop. The router must be able to route the pair
    directly; otherwise the call reverts.
    """
    router = web3.eth.contract(
        address=exchange.router_address, abi=UNISWAP_V2_ROUTER_ABI
    )
    path = [request.token_in.address, request.token_out.address]
    amounts = router.functions.getAmountsOut(request.amount_in, path).call()
    if not amounts:
        raise QuoteUnavailableError(
            f"Empty getAmountsOut result from {exchange.name}",
            exchange=exchange.name,
            token_in=request.token_in.symbol,
            token_out=request.token_out.symbol,
        )
    return _checked_amount(amounts[-1], request)


def quote_concentrated_liquidity(
    web3: Web3, exchange: Exchange, request: QuoteRequest
) -> int:
    """
    Quote a single-hop exact-input swap on a Uniswap V3 style quoter.

    The declared ABI is the original Quoter, which returns a bare
    ``amountOut``. If a quoter ABI decodes to a tuple, only its first
    element (the output amount) is kept.
    """
    mechanism = exchange.mechanism
    quoter = web3.eth.contract(
        address=mechanism.quoter_address, abi=UNISWAP_V3_QUOTER_ABI
    )
    result = quoter.functions.quoteExactInputSingle(
        request.token_in.address,
        request.token_out.address,
        mechanism.fee,
        request.amount_in,
        NO_PRICE_LIMIT,
    ).call()

    if isinstance(result, (list, tuple)):
        if not result:
            raise QuoteUnavailableError(
                f"Empty quoteExactInputSingle result from {exchange.name}",
                exchange=exchange.name,
                token_in=request.token_in.symbol,
                token_out=request.token_out.symbol,
            )
        result = result[0]
    return _checked_amount(result, request)


def quote(web3: Web3, request: QuoteRequest) -> int:
    """
    Get the raw output amount for a quote request.

    Args:
        web3: Web3 instance connected to the chain
        request: Exchange, raw input amount and token direction

    Returns:
        Raw output amount in token_out's native units (0 is a valid result)

    Raises:
        ValueError: If amount_in is not a positive integer
        QuoteUnavailableError: If the underlying contract call fails
    """
    if isinstance(request.amount_in, bool) or not isinstance(request.amount_in, int):
        raise ValueError(f"amount_in must be an int: {request.amount_in!r}")
    if request.amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {request.amount_in}")

    exchange = request.exchange
    try:
        return exchange.mechanism.quote(web3, exchange, request)
    except QuoteUnavailableError:
        raise
    except Exception as e:
        raise QuoteUnavailableError(
            f"Quote {request.describe()} failed: {e}",
            exchange=exchange.name,
            token_in=request.token_in.symbol,
            token_out=request.token_out.symbol,
        ) from e


def get_amount_out(
    web3: Web3, exchange: Exchange, amount_in: int, token_in: Token, token_out: Token
) -> int:
    """Fetch the output amount for a given input amount and direction from a DEX."""
    return quote(web3, QuoteRequest(exchange, amount_in, token_in, token_out))


def is_rate_limit_error(error: BaseException) -> bool:
    """Check an error (and its cause) for common RPC rate limit patterns."""
    messages = [str(error)]
    if error.__cause__ is not None:
        messages.append(str(error.__cause__))

    for msg in messages:
        if (
            "429" in msg
            or "Too Many Requests" in msg
            or "-32005" in msg  # BSC/Ethereum rate limit code
            or "limit exceeded" in msg.lower()
        ):
            return True
    return False


async def get_amount_out_async(
    web3: Web3,
    exchange: Exchange,
    amount_in: int,
    token_in: Token,
    token_out: Token,
    max_retries: int = 3,
) -> int:
    """
    Async version of get_amount_out.

    Runs the synchronous RPC call in a thread pool to avoid blocking the
    event loop. Rate limit errors are retried with exponential backoff;
    any other failure is raised immediately.

    Args:
        web3: Web3 instance connected to the chain
        exchange: Exchange to quote on
        amount_in: Raw input amount (> 0)
        token_in: Token being sold
        token_out: Token being bought
        max_retries: Maximum number of attempts (default: 3)

    Returns:
        Raw output amount in token_out's native units

    Raises:
        QuoteUnavailableError: If the quote fails or retries are exhausted
    """
    loop = asyncio.get_running_loop()
    call = functools.partial(get_amount_out, web3, exchange, amount_in, token_in, token_out)

    attempt = 0
    while True:
        try:
            return await loop.run_in_executor(None, call)
        except QuoteUnavailableError as e:
            attempt += 1
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            # Exponential backoff: 1s, 2s, 4s
            wait_time = 2 ** (attempt - 1)
            logger.debug(
                f"Rate limited quoting {token_in.symbol}->{token_out.symbol} on "
                f"{exchange.name}, retrying in {wait_time}s"
            )
            await asyncio.sleep(wait_time)
