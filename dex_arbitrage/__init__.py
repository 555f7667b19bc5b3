"""
Cross-DEX Arbitrage Scanner.

Periodically quotes token swaps on several decentralized exchanges, detects
round trips (buy on one DEX, sell on another) that are profitable after a
simulated fixed cost, and records them.
"""

from dex_arbitrage.version import __version__

PROJECT_NAME = "dex-arbitrage-scanner"
VERSION = __version__

from dex_arbitrage.config import ConfigError, ScannerConfig, load_config
from dex_arbitrage.evaluator import (
    CycleReport,
    OpportunityEvaluator,
    directed_pairs,
    run_detection_cycle,
)
from dex_arbitrage.exceptions import (
    ConfigurationError,
    DexArbitrageError,
    NetworkError,
    PersistenceError,
    QuoteUnavailableError,
)
from dex_arbitrage.quoting import get_amount_out, get_amount_out_async
from dex_arbitrage.storage import OpportunityStore
from dex_arbitrage.types import (
    ConcentratedLiquidity,
    ConstantProduct,
    Exchange,
    Opportunity,
    QuoteRequest,
    Token,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ConfigError",
    "ScannerConfig",
    "load_config",
    "CycleReport",
    "OpportunityEvaluator",
    "directed_pairs",
    "run_detection_cycle",
    "ConfigurationError",
    "DexArbitrageError",
    "NetworkError",
    "PersistenceError",
    "QuoteUnavailableError",
    "get_amount_out",
    "get_amount_out_async",
    "OpportunityStore",
    "ConcentratedLiquidity",
    "ConstantProduct",
    "Exchange",
    "Opportunity",
    "QuoteRequest",
    "Token",
]
