"""Tests for the periodic detection loop."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import FakeQuoter
from dex_arbitrage.exceptions import ConfigurationError, NetworkError
from dex_arbitrage.interfaces import DeterministicTimeProvider, MemorySink
from dex_arbitrage.runner import DetectionRunner
from dex_arbitrage.storage import OpportunityStore
from dex_arbitrage.types import Token

PROFITABLE_QUOTES = {
    ("A", "USDC", "WETH"): 5 * 10**17,
    ("B", "WETH", "USDC"): 1_010_000_000,
}


def _runner(config, sink=None, quotes=None):
    return DetectionRunner(
        config,
        sink=sink if sink is not None else MemorySink(),
        web3=MagicMock(),
        quote_fn=FakeQuoter(quotes if quotes is not None else PROFITABLE_QUOTES),
        time_provider=DeterministicTimeProvider(),
    )


@pytest.mark.asyncio
async def test_run_once_records_opportunity(make_config):
    sink = MemorySink()
    runner = _runner(make_config(), sink=sink)

    report = await runner.run_once()

    assert report.pairs_attempted == 2
    assert report.recorded == 1
    assert len(sink) == 1
    assert sink.opportunities[0].buy_exchange == "A"


@pytest.mark.asyncio
async def test_run_ticks_on_interval(make_config):
    sink = MemorySink()
    runner = _runner(make_config(check_interval_seconds=30), sink=sink)

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock()) as sleep:
        await runner.run(iterations=2)

    assert runner.cycles_run == 2
    assert runner.cycles_failed == 0
    assert len(sink) == 2
    sleep.assert_awaited_once_with(30)


@pytest.mark.asyncio
async def test_once_forces_single_cycle(make_config):
    runner = _runner(make_config(once=True))

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock()) as sleep:
        await runner.run(iterations=5)

    assert runner.cycles_run == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_configuration_error_stops_loop(make_config):
    config = make_config()
    config.tokens["WETH"] = Token("WETH", "0x1234", 18)
    quoter = FakeQuoter(PROFITABLE_QUOTES)
    runner = DetectionRunner(
        config,
        sink=MemorySink(),
        web3=MagicMock(),
        quote_fn=quoter,
        time_provider=DeterministicTimeProvider(),
    )

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(ConfigurationError):
            await runner.run(iterations=3)

    assert runner.cycles_run == 1
    assert runner.cycles_failed == 1
    sleep.assert_not_awaited()
    # No quote is issued when static inputs are invalid
    assert quoter.calls == []


@pytest.mark.asyncio
async def test_persistence_failure_counts_as_failed_cycle(make_config):
    sink = MagicMock()
    sink.record_opportunity = AsyncMock(side_effect=OSError("disk full"))
    runner = _runner(make_config(), sink=sink)

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock()):
        await runner.run(iterations=1)

    assert runner.cycles_failed == 1
    sink.record_opportunity.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_error_is_logged_and_counted(make_config):
    quoter = FakeQuoter({("A", "USDC", "WETH"): RuntimeError("boom")})
    runner = DetectionRunner(
        make_config(),
        sink=MemorySink(),
        web3=MagicMock(),
        quote_fn=quoter,
        time_provider=DeterministicTimeProvider(),
    )

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock()):
        await runner.run(iterations=2)

    # Non-configuration failures are retried on the next tick
    assert runner.cycles_run == 2
    assert runner.cycles_failed == 2


@pytest.mark.asyncio
async def test_stop_ends_loop_after_current_tick(make_config):
    runner = _runner(make_config())

    async def stop_on_sleep(_seconds):
        runner.stop()

    with patch("dex_arbitrage.runner.asyncio.sleep", new=AsyncMock(side_effect=stop_on_sleep)):
        await runner.run()

    assert runner.cycles_run == 1


@pytest.mark.asyncio
async def test_runner_opens_store_from_database_url(make_config, tmp_path):
    db_path = tmp_path / "opps.db"
    runner = DetectionRunner(
        make_config(database_url=str(db_path)),
        web3=MagicMock(),
        quote_fn=FakeQuoter(PROFITABLE_QUOTES),
        time_provider=DeterministicTimeProvider(),
    )

    await runner.run(iterations=1)

    assert runner.cycles_failed == 0
    # Runner closed its own store; reopen to check the row landed
    async with OpportunityStore(str(db_path)) as store:
        assert await store.count() == 1


def test_connect_rejects_non_http_url(make_config):
    runner = DetectionRunner(make_config(rpc_url="ws://localhost:8546"))

    with pytest.raises(NetworkError) as exc_info:
        runner.connect()

    assert exc_info.value.endpoint == "ws://localhost:8546"


def test_connect_unreachable_endpoint(make_config):
    with patch("dex_arbitrage.runner.Web3") as web3_cls:
        web3_cls.return_value.is_connected.return_value = False
        runner = DetectionRunner(make_config())

        with pytest.raises(NetworkError):
            runner.connect()


def test_connect_passes_request_timeout(make_config):
    with patch("dex_arbitrage.runner.Web3") as web3_cls:
        web3_cls.return_value.is_connected.return_value = True
        runner = DetectionRunner(make_config(request_timeout=7))

        web3 = runner.connect()

    assert web3 is runner.web3
    web3_cls.HTTPProvider.assert_called_once_with(
        "https://polygon-rpc.com", request_kwargs={"timeout": 7}
    )
