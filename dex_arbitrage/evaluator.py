"""
Cross-DEX round-trip opportunity evaluator.

For every volatile token and every ordered pair of distinct exchanges, buys
the volatile token with a fixed notional of the reference token on the first
exchange, sells the proceeds back on the second, and records the round trip
if its net profit clears the configured threshold.

Profit is computed purely from the two quoted leg outputs and a static
simulated cost. There is no gas estimation, depth model or slippage buffer:
this detects quoted arbitrage, not guaranteed-executable arbitrage.
"""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal
from itertools import permutations
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from web3 import Web3

from .config import ScannerConfig, checksum_address
from .exceptions import ConfigurationError, PersistenceError, QuoteUnavailableError
from .interfaces import OpportunitySink, SystemTimeProvider, TimeProvider
from .quoting import get_amount_out_async
from .types import ConcentratedLiquidity, Exchange, Opportunity, Token
from .units import from_raw, to_raw
from .utils import format_duration, get_logger

logger = get_logger(__name__)

QuoteFn = Callable[..., Awaitable[int]]


@dataclass
class CycleReport:
    """
    Outcome of one detection cycle.

    Attributes:
        pairs_attempted: Round-trip evaluations started
        quote_failures: Evaluations abandoned because a leg could not be quoted
        zero_quotes: Evaluations abandoned because the first leg quoted zero
        round_trips: Evaluations where both legs were quoted
        opportunities: Round trips whose net profit cleared the threshold
        recorded: Opportunities durably recorded by the sink
        persistence_failures: Errors raised while recording opportunities
        duration_s: Wall time of the cycle in seconds
    """

    pairs_attempted: int = 0
    quote_failures: int = 0
    zero_quotes: int = 0
    round_trips: int = 0
    opportunities: List[Opportunity] = field(default_factory=list)
    recorded: int = 0
    persistence_failures: List[PersistenceError] = field(default_factory=list)
    duration_s: float = 0.0


@dataclass(frozen=True)
class CyclePlan:
    """Validated, read-only inputs for one detection cycle."""

    reference: Token
    volatile: Tuple[Token, ...]
    exchanges: Tuple[Exchange, ...]
    amount_in_raw: int


def directed_pairs(exchanges: Sequence[Exchange]) -> List[Tuple[Exchange, Exchange]]:
    """All N*(N-1) ordered (buy, sell) exchange pairs, self-pairs excluded."""
    return list(permutations(exchanges, 2))


def _checked_token(token: Token) -> Token:
    return dataclasses.replace(
        token, address=checksum_address(token.address, f"Token '{token.symbol}'")
    )


def _checked_exchange(exchange: Exchange) -> Exchange:
    label = f"Exchange '{exchange.name}'"
    mechanism = exchange.mechanism
    if isinstance(mechanism, ConcentratedLiquidity):
        mechanism = dataclasses.replace(
            mechanism,
            quoter_address=checksum_address(
                mechanism.quoter_address, f"{label} quoter"
            ),
        )
    return dataclasses.replace(
        exchange,
        router_address=checksum_address(exchange.router_address, f"{label} router"),
        mechanism=mechanism,
    )


class OpportunityEvaluator:
    """
    Runs detection cycles over a fixed universe of exchanges and tokens.

    The configuration is read-only input and results flow one way into the
    sink, so cycles can be interrupted between quote calls and simply rerun
    on the next tick.
    """

    def __init__(
        self,
        web3: Web3,
        sink: OpportunitySink,
        config: ScannerConfig,
        quote_fn: Optional[QuoteFn] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Args:
            web3: Web3 instance used for read-only contract calls
            sink: Where qualifying opportunities are recorded
            config: Validated scanner configuration
            quote_fn: Async quote function (default: get_amount_out_async)
            time_provider: Clock used for cycle timing
        """
        self.web3 = web3
        self.sink = sink
        self.config = config
        self.quote_fn = quote_fn or get_amount_out_async
        self.time_provider = time_provider or SystemTimeProvider()

    def prepare(self) -> CyclePlan:
        """
        Validate static inputs before any quote is issued.

        Raises:
            ConfigurationError: If addresses or the notional amount are invalid
        """
        config = self.config
        reference = _checked_token(config.reference)
        volatile = tuple(_checked_token(t) for t in config.volatile)
        for token in volatile:
            if token.symbol == reference.symbol or token.address == reference.address:
                raise ConfigurationError(
                    f"Volatile token '{token.symbol}' cannot be the reference token"
                )
        exchanges = tuple(_checked_exchange(ex) for ex in config.exchanges)

        amount_in_raw = to_raw(Decimal(str(config.trade_amount)), reference.decimals)
        if amount_in_raw <= 0:
            raise ConfigurationError(
                f"Trade amount {config.trade_amount} {reference.symbol} "
                f"is zero in raw units"
            )

        return CyclePlan(
            reference=reference,
            volatile=volatile,
            exchanges=exchanges,
            amount_in_raw=amount_in_raw,
        )

    async def _quote_leg(
        self, exchange: Exchange, amount_in: int, token_in: Token, token_out: Token
    ) -> Optional[int]:
        try:
            return await self.quote_fn(
                self.web3,
                exchange,
                amount_in,
                token_in,
                token_out,
                max_retries=self.config.quote_max_retries,
            )
        except QuoteUnavailableError as e:
            logger.warning(
                f"Could not get price from {token_in.symbol}->{token_out.symbol} "
                f"on {exchange.name}: {e}"
            )
            return None

    async def evaluate_round_trip(
        self,
        buy_exchange: Exchange,
        sell_exchange: Exchange,
        reference: Token,
        volatile: Token,
        amount_in_raw: int,
        report: Optional[CycleReport] = None,
    ) -> Optional[Opportunity]:
        """
        Evaluate buying `volatile` on buy_exchange and selling it on sell_exchange.

        The two legs run strictly in order since the second leg spends the
        first leg's output.

        Returns:
            The opportunity if it qualified (and was recorded), else None

        Raises:
            PersistenceError: If the opportunity qualified but could not be recorded
        """
        report = report if report is not None else CycleReport()
        report.pairs_attempted += 1

        # 1. How much volatile token the notional buys on buy_exchange
        intermediate_raw = await self._quote_leg(
            buy_exchange, amount_in_raw, reference, volatile
        )
        if intermediate_raw is None:
            report.quote_failures += 1
            return None
        if intermediate_raw == 0:
            report.zero_quotes += 1
            logger.debug(
                f"Zero quote for {reference.symbol}->{volatile.symbol} "
                f"on {buy_exchange.name}"
            )
            return None

        # 2. How much reference token selling it back on sell_exchange returns
        final_raw = await self._quote_leg(
            sell_exchange, intermediate_raw, volatile, reference
        )
        if final_raw is None:
            report.quote_failures += 1
            return None
        report.round_trips += 1

        # 3. Both ends are in the reference token, so one decimal scale applies
        initial_amount = from_raw(amount_in_raw, reference.decimals)
        final_amount = from_raw(final_raw, reference.decimals)
        gross_profit = final_amount - initial_amount
        net_profit = gross_profit - Decimal(str(self.config.simulated_gas_cost))

        if not net_profit > Decimal(str(self.config.min_profit_threshold)):
            return None

        opportunity = Opportunity(
            buy_exchange=buy_exchange.name,
            sell_exchange=sell_exchange.name,
            buy_token_symbol=reference.symbol,
            sell_token_symbol=volatile.symbol,
            amount_in=initial_amount,
            amount_out=final_amount,
            net_profit=net_profit,
            intermediate_amount=from_raw(intermediate_raw, volatile.decimals),
            gross_profit=gross_profit,
        )
        report.opportunities.append(opportunity)
        self._log_opportunity(opportunity)

        await self._record(opportunity)
        report.recorded += 1
        return opportunity

    async def _record(self, opportunity: Opportunity) -> None:
        try:
            await self.sink.record_opportunity(opportunity)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Sink failed to record {opportunity.path} "
                f"({opportunity.buy_exchange} -> {opportunity.sell_exchange}): {e}"
            ) from e

    @staticmethod
    def _log_opportunity(opp: Opportunity) -> None:
        ref, vol = opp.buy_token_symbol, opp.sell_token_symbol
        logger.info(
            "🚀 Arbitrage opportunity found\n"
            f"  - Path: {opp.path}\n"
            f"  - Buy on: {opp.buy_exchange} -> Sell on: {opp.sell_exchange}\n"
            f"  - Amount In: {opp.amount_in:.4f} {ref}\n"
            f"  - Intermediate Amount: {opp.intermediate_amount:.4f} {vol}\n"
            f"  - Amount Out: {opp.amount_out:.4f} {ref}\n"
            f"  - Gross Profit: {opp.gross_profit:.4f} {ref}\n"
            f"  - Net Profit (after gas): {opp.net_profit:.4f} {ref}"
        )

    async def run_cycle(self) -> CycleReport:
        """
        Run one detection cycle over every volatile token and directed exchange pair.

        Quote failures only skip the affected pair. Recording failures do not
        stop the remaining evaluations; they are raised together once every
        evaluation has finished.

        Returns:
            CycleReport for the cycle

        Raises:
            ConfigurationError: If the cycle cannot start (bad static inputs)
            PersistenceError: If any qualifying opportunity could not be recorded
        """
        plan = self.prepare()
        report = CycleReport()
        started = self.time_provider.monotonic()

        pairs = directed_pairs(plan.exchanges)
        if not pairs:
            logger.warning(
                f"Need at least two exchanges to compare, got {len(plan.exchanges)}"
            )

        logger.info(
            f"Checking {len(plan.volatile)} token(s) across {len(pairs)} "
            f"exchange pair(s) with {self.config.trade_amount} {plan.reference.symbol}"
        )

        jobs = [
            (buy, sell, token) for token in plan.volatile for buy, sell in pairs
        ]

        async def evaluate(buy: Exchange, sell: Exchange, token: Token) -> None:
            try:
                await self.evaluate_round_trip(
                    buy, sell, plan.reference, token, plan.amount_in_raw, report
                )
            except PersistenceError as e:
                logger.error(f"Failed to record opportunity: {e}")
                report.persistence_failures.append(e)

        if self.config.max_concurrency <= 1:
            for buy, sell, token in jobs:
                await evaluate(buy, sell, token)
        else:
            semaphore = asyncio.Semaphore(self.config.max_concurrency)

            async def bounded(buy: Exchange, sell: Exchange, token: Token) -> None:
                async with semaphore:
                    await evaluate(buy, sell, token)

            await asyncio.gather(*(bounded(b, s, t) for b, s, t in jobs))

        report.duration_s = self.time_provider.monotonic() - started
        logger.info(
            f"Cycle complete in {format_duration(report.duration_s)}: "
            f"{report.pairs_attempted} pairs, {report.round_trips} round trips, "
            f"{report.quote_failures} quote failures, "
            f"{len(report.opportunities)} opportunities"
        )

        if report.persistence_failures:
            raise PersistenceError(
                f"{len(report.persistence_failures)} opportunities could not be recorded",
                failures=list(report.persistence_failures),
                report=report,
            )
        return report


async def run_detection_cycle(
    web3: Web3,
    sink: OpportunitySink,
    config: ScannerConfig,
    quote_fn: Optional[QuoteFn] = None,
) -> CycleReport:
    """Run one detection cycle with the given chain client, sink and config."""
    evaluator = OpportunityEvaluator(web3, sink, config, quote_fn=quote_fn)
    return await evaluator.run_cycle()
