"""
Periodic detection loop.

Connects to the RPC endpoint, opens the opportunity store and runs one
detection cycle per tick. A cycle that fails on the network or on
persistence is logged and the loop keeps ticking; retry policy is simply
"try again next tick". Invalid configuration stops the loop.
"""

import asyncio
from typing import Optional

from web3 import Web3

from .config import ScannerConfig
from .evaluator import CycleReport, OpportunityEvaluator, QuoteFn
from .exceptions import ConfigurationError, NetworkError, PersistenceError
from .interfaces import OpportunitySink, SystemTimeProvider, TimeProvider
from .storage import OpportunityStore
from .utils import fee_tier_to_pct, get_logger, short_address

logger = get_logger(__name__)


class DetectionRunner:
    """
    Drives detection cycles on a fixed interval.

    The chain client and sink are created on demand from the config unless
    injected (tests inject fakes for both).
    """

    def __init__(
        self,
        config: ScannerConfig,
        sink: Optional[OpportunitySink] = None,
        web3: Optional[Web3] = None,
        quote_fn: Optional[QuoteFn] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        self.config = config
        self.sink = sink
        self.web3 = web3
        self.quote_fn = quote_fn
        self.time_provider = time_provider or SystemTimeProvider()

        self._owns_sink = sink is None
        self._stopping = False
        self.cycles_run = 0
        self.cycles_failed = 0

    def connect(self) -> Web3:
        """
        Connect to the configured RPC endpoint.

        Raises:
            NetworkError: If the endpoint is malformed or unreachable
        """
        rpc_url = self.config.rpc_url
        if not rpc_url.startswith(("http://", "https://")):
            raise NetworkError(f"Invalid RPC URL format: {rpc_url}", endpoint=rpc_url)

        logger.info(f"Connecting to RPC: {rpc_url}")
        web3 = Web3(
            Web3.HTTPProvider(
                rpc_url, request_kwargs={"timeout": self.config.request_timeout}
            )
        )
        if not web3.is_connected():
            raise NetworkError(f"Failed to connect to RPC at {rpc_url}", endpoint=rpc_url)

        self.web3 = web3
        logger.info(f"Connected to RPC at {rpc_url}")
        return web3

    async def _ensure_sink(self) -> OpportunitySink:
        if self.sink is None:
            store = OpportunityStore(self.config.database_url)
            await store.initialize()
            logger.info(f"Database ready at {store.db_path}")
            self.sink = store
        return self.sink

    def print_banner(self) -> None:
        """Log the scanned universe once at startup."""
        config = self.config
        logger.info(
            f"Reference: {config.trade_amount} {config.reference.symbol} | "
            f"min profit {config.min_profit_threshold} | "
            f"simulated gas {config.simulated_gas_cost}"
        )
        for exchange in config.exchanges:
            mechanism = exchange.mechanism
            if exchange.kind == "concentrated_liquidity":
                detail = (
                    f"quoter {short_address(mechanism.quoter_address)}, "
                    f"fee {fee_tier_to_pct(mechanism.fee):.2f}%"
                )
            else:
                detail = f"router {short_address(exchange.router_address)}"
            logger.info(f"  {exchange.name:<12} {exchange.kind:<24} {detail}")
        logger.info(
            f"Tokens: {', '.join(t.symbol for t in config.volatile)} "
            f"vs {config.reference.symbol}"
        )

    async def run_once(self) -> CycleReport:
        """
        Run a single detection cycle.

        Raises:
            ConfigurationError: If the cycle could not start
            PersistenceError: If a detected opportunity was not recorded
        """
        if self.web3 is None:
            self.connect()
        sink = await self._ensure_sink()

        evaluator = OpportunityEvaluator(
            self.web3,
            sink,
            self.config,
            quote_fn=self.quote_fn,
            time_provider=self.time_provider,
        )
        return await evaluator.run_cycle()

    async def run(self, iterations: Optional[int] = None) -> None:
        """
        Tick every check_interval_seconds until stopped.

        Args:
            iterations: Stop after this many cycles (None = run forever;
                config.once forces a single cycle)

        Raises:
            ConfigurationError: If a cycle cannot start; the loop stops
        """
        if self.config.once:
            iterations = 1

        self.print_banner()
        logger.info("Starting arbitrage detection loop...")

        try:
            while not self._stopping:
                started = self.time_provider.monotonic()
                await self._tick()

                if iterations is not None and self.cycles_run >= iterations:
                    break
                if self._stopping:
                    break

                elapsed = self.time_provider.monotonic() - started
                await asyncio.sleep(max(0.0, self.config.check_interval_seconds - elapsed))
        finally:
            await self.close()

    async def _tick(self) -> None:
        self.cycles_run += 1
        try:
            await self.run_once()
        except ConfigurationError as e:
            # Static inputs do not change between ticks
            self.cycles_failed += 1
            logger.error(f"Cycle {self.cycles_run} could not start, stopping: {e}")
            raise
        except PersistenceError as e:
            self.cycles_failed += 1
            logger.error(f"Cycle {self.cycles_run} lost opportunities: {e}")
        except NetworkError as e:
            self.cycles_failed += 1
            logger.error(f"Cycle {self.cycles_run} could not reach the chain: {e}")
        except Exception:
            self.cycles_failed += 1
            logger.exception(f"Cycle {self.cycles_run} failed unexpectedly")

    def stop(self) -> None:
        """Stop the loop after the current tick."""
        self._stopping = True

    async def close(self) -> None:
        if self._owns_sink and isinstance(self.sink, OpportunityStore):
            await self.sink.close()
            self.sink = None
