"""
Configuration loading and validation for the DEX arbitrage scanner.

Settings come from a YAML file and may be overridden by environment
variables (a local .env file is loaded first). Token and router addresses
are deployment data and live in the config file, never in code.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from web3 import Web3

from .exceptions import ConfigurationError
from .types import ConcentratedLiquidity, ConstantProduct, Exchange, Token
from .units import to_raw

CONSTANT_PRODUCT_KINDS = ("constant_product", "v2")
CONCENTRATED_LIQUIDITY_KINDS = ("concentrated_liquidity", "v3")

# Environment variable -> config key
ENV_OVERRIDES = {
    "RPC_URL": "rpc_url",
    "DATABASE_URL": "database_url",
    "CHECK_INTERVAL_SECONDS": "check_interval_seconds",
    "TRADE_AMOUNT": "trade_amount",
    "TRADE_AMOUNT_USDC": "trade_amount",
    "MIN_PROFIT_THRESHOLD_USD": "min_profit_threshold",
    "SIMULATED_GAS_COST_USD": "simulated_gas_cost",
    "MAX_CONCURRENCY": "max_concurrency",
}


class ConfigError(ConfigurationError):
    """Raised when config is invalid or missing required fields."""

    pass


def checksum_address(value: Any, label: str) -> str:
    """
    Validate a hex address and return its checksummed form.

    Raises:
        ConfigError: If value is not a 20-byte hex address
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigError(f"{label} has invalid address: {value!r}")
    return Web3.to_checksum_address(value)


class ScannerConfig:
    """
    Parsed and validated configuration for cross-DEX opportunity detection.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        database_url: SQLite database path for recorded opportunities
        check_interval_seconds: Seconds between detection cycles
        once: If True, run a single cycle and exit
        trade_amount: Notional of the reference token spent per round trip
        min_profit_threshold: Net profit must be strictly above this
        simulated_gas_cost: Fixed cost subtracted from gross profit
        max_concurrency: Max round trips evaluated concurrently (1 = sequential)
        quote_max_retries: Attempts per quote when the RPC rate limits
        request_timeout: HTTP timeout in seconds for RPC requests
        reference_token: Symbol of the asset every round trip starts and ends in
        tokens: Dict of {symbol -> Token}
        volatile_tokens: Symbols traded against the reference token
        exchanges: List of Exchange descriptors
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Parse and validate config from dictionary.

        Args:
            config_dict: Loaded YAML config (after environment overrides)

        Raises:
            ConfigError: If required fields missing or invalid
        """
        self.rpc_url: str = self._get_required(config_dict, "rpc_url", str)
        self.database_url: str = str(config_dict.get("database_url", "arbitrage.db"))
        self.check_interval_seconds: int = self._get_int(
            config_dict, "check_interval_seconds", 60, minimum=1
        )
        self.once: bool = bool(config_dict.get("once", False))

        # Trading parameters
        self.trade_amount: Decimal = self._get_decimal(config_dict, "trade_amount", "1000")
        if self.trade_amount <= 0:
            raise ConfigError(f"trade_amount must be positive: {self.trade_amount}")
        self.min_profit_threshold: Decimal = self._get_decimal(
            config_dict, "min_profit_threshold", "5.0"
        )
        self.simulated_gas_cost: Decimal = self._get_decimal(
            config_dict, "simulated_gas_cost", "1.0"
        )

        # Network behaviour
        self.max_concurrency: int = self._get_int(
            config_dict, "max_concurrency", 1, minimum=1
        )
        self.quote_max_retries: int = self._get_int(
            config_dict, "quote_max_retries", 3, minimum=1
        )
        self.request_timeout: int = self._get_int(
            config_dict, "request_timeout", 20, minimum=1
        )

        # Tokens
        self.reference_token: str = self._get_required(
            config_dict, "reference_token", str
        )
        self.tokens: Dict[str, Token] = self._parse_tokens(config_dict.get("tokens", {}))
        if self.reference_token not in self.tokens:
            raise ConfigError(
                f"reference_token '{self.reference_token}' not found in tokens config"
            )
        self.volatile_tokens: List[str] = self._parse_volatile(
            config_dict.get("volatile_tokens"), self.tokens, self.reference_token
        )

        # DEXes
        self.exchanges: List[Exchange] = self._parse_exchanges(
            config_dict.get("exchanges", [])
        )
        if not self.exchanges:
            raise ConfigError("At least one exchange must be configured")

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d or d[key] is None:
            raise ConfigError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    @staticmethod
    def _get_decimal(d: Dict, key: str, default: str) -> Decimal:
        raw = d.get(key, default)
        if isinstance(raw, bool):
            raise ConfigError(f"Config field '{key}' must be a number, got bool")
        try:
            value = Decimal(str(raw))
        except InvalidOperation as e:
            raise ConfigError(f"Config field '{key}' must be a number: {raw!r}") from e
        if not value.is_finite():
            raise ConfigError(f"Config field '{key}' must be finite: {raw!r}")
        return value

    @staticmethod
    def _get_int(d: Dict, key: str, default: int, minimum: int = 0) -> int:
        raw = d.get(key, default)
        if isinstance(raw, bool):
            raise ConfigError(f"Config field '{key}' must be an integer, got bool")
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config field '{key}' must be an integer: {raw!r}") from e
        if value < minimum:
            raise ConfigError(f"Config field '{key}' must be >= {minimum}: {value}")
        return value

    @staticmethod
    def _parse_tokens(tokens_raw: Any) -> Dict[str, Token]:
        """Parse and validate tokens config."""
        if not isinstance(tokens_raw, dict):
            raise ConfigError("tokens must be a dict of {symbol: {address, decimals}}")

        tokens = {}
        for symbol, info in tokens_raw.items():
            if not isinstance(info, dict):
                raise ConfigError(f"Token '{symbol}' config must be a dict")
            if "address" not in info:
                raise ConfigError(f"Token '{symbol}' missing 'address'")
            if "decimals" not in info:
                raise ConfigError(f"Token '{symbol}' missing 'decimals'")

            decimals = info["decimals"]
            if isinstance(decimals, bool) or not isinstance(decimals, int):
                raise ConfigError(f"Token '{symbol}' decimals must be an integer")
            if not 0 <= decimals <= 255:
                raise ConfigError(
                    f"Token '{symbol}' decimals must be in [0, 255]: {decimals}"
                )

            tokens[symbol] = Token(
                symbol=symbol,
                address=checksum_address(info["address"], f"Token '{symbol}'"),
                decimals=decimals,
            )
        return tokens

    @staticmethod
    def _parse_volatile(
        volatile_raw: Optional[Any], tokens: Dict[str, Token], reference: str
    ) -> List[str]:
        """Parse volatile token symbols; default to every non-reference token."""
        if volatile_raw is None:
            return [symbol for symbol in tokens if symbol != reference]

        if not isinstance(volatile_raw, list):
            raise ConfigError("volatile_tokens must be a list of symbols")

        volatile = []
        for symbol in volatile_raw:
            if symbol not in tokens:
                raise ConfigError(f"volatile token '{symbol}' not found in tokens config")
            if symbol == reference:
                raise ConfigError(
                    f"volatile token '{symbol}' cannot be the reference token"
                )
            if symbol not in volatile:
                volatile.append(symbol)
        return volatile

    @staticmethod
    def _parse_exchanges(exchanges_raw: Any) -> List[Exchange]:
        """Parse and validate exchanges config."""
        if not isinstance(exchanges_raw, list):
            raise ConfigError("exchanges must be a list")

        exchanges = []
        seen = set()
        for i, ex in enumerate(exchanges_raw):
            if not isinstance(ex, dict):
                raise ConfigError(f"Exchange config {i} must be a dict")

            name = ex.get("name")
            if not name:
                raise ConfigError(f"Exchange config {i} missing 'name'")
            if name in seen:
                raise ConfigError(f"Duplicate exchange name '{name}'")
            seen.add(name)

            kind = ex.get("kind", "constant_product")
            if kind in CONSTANT_PRODUCT_KINDS:
                if "router" not in ex:
                    raise ConfigError(f"Exchange '{name}' missing 'router'")
                router = checksum_address(ex["router"], f"Exchange '{name}' router")
                mechanism = ConstantProduct()
            elif kind in CONCENTRATED_LIQUIDITY_KINDS:
                if "quoter" not in ex:
                    raise ConfigError(f"Exchange '{name}' missing 'quoter'")
                fee = ex.get("fee")
                if isinstance(fee, bool) or not isinstance(fee, int) or fee <= 0:
                    raise ConfigError(
                        f"Exchange '{name}' needs a positive integer 'fee' tier, got {fee!r}"
                    )
                quoter = checksum_address(ex["quoter"], f"Exchange '{name}' quoter")
                router = checksum_address(
                    ex.get("router", quoter), f"Exchange '{name}' router"
                )
                mechanism = ConcentratedLiquidity(quoter_address=quoter, fee=fee)
            else:
                raise ConfigError(
                    f"Exchange '{name}' has invalid kind '{kind}' "
                    f"(must be one of {CONSTANT_PRODUCT_KINDS + CONCENTRATED_LIQUIDITY_KINDS})"
                )

            exchanges.append(
                Exchange(name=name, router_address=router, mechanism=mechanism)
            )

        return exchanges

    @property
    def reference(self) -> Token:
        """Reference asset every round trip starts and ends in."""
        return self.tokens[self.reference_token]

    @property
    def volatile(self) -> List[Token]:
        """Tokens traded against the reference asset."""
        return [self.tokens[symbol] for symbol in self.volatile_tokens]

    @property
    def trade_amount_raw(self) -> int:
        """Notional trade amount in raw reference-token units."""
        return to_raw(self.trade_amount, self.reference.decimals)


def apply_env_overrides(
    config_dict: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Return a copy of config_dict with environment variable overrides applied.

    Args:
        config_dict: Config loaded from YAML
        environ: Environment mapping (default: os.environ)
    """
    environ = os.environ if environ is None else environ
    merged = dict(config_dict)
    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            merged[key] = value
    return merged


def load_config(
    config_path: str, environ: Optional[Mapping[str, str]] = None
) -> ScannerConfig:
    """
    Load and validate config from YAML file.

    A .env file in the working directory is loaded first, then environment
    variables override values from the file.

    Args:
        config_path: Path to config YAML file
        environ: Environment mapping (default: os.environ)

    Returns:
        Validated ScannerConfig instance

    Raises:
        ConfigError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    if environ is None:
        load_dotenv()
    return ScannerConfig(apply_env_overrides(config_dict, environ))
