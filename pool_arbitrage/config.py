"""
Configuration loading and validation.

The YAML file is parsed with yaml.safe_load and validated with pydantic
models; every problem surfaces as a ConfigurationError before the scanner
starts. Helpers turn the validated model into the runtime objects
(TokenRegistry, PoolConfig list, thresholds and trade sizes).
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .constants import DEFAULT_CONFIG, DEX_TYPE_ALIASES, PRICE_SCALE, DexType
from .exceptions import ConfigurationError
from .profitability import DEFAULT_THRESHOLD_KEY, ProfitSettings
from .tokens import TokenRegistry
from .types import PoolConfig, Token
from .utils import multiplier_to_scaled

# dex_type spellings that name a mechanic rather than a venue
_GENERIC_DEX_TYPES = {
    "v2",
    "v3",
    "constant_product",
    "concentrated_liquidity",
    "pmm",
}

Number = Union[int, float, str]


def _to_decimal(value: Number, what: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{what} is not a number: {value}") from e
    if not result.is_finite():
        raise ValueError(f"{what} is not a finite number: {value}")
    return result


class TokenModel(BaseModel):
    """Token entry under `tokens:`"""

    address: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=36)


class NativeTokenModel(BaseModel):
    """Native currency profits and gas are measured in."""

    symbol: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=36, default=18)


class PoolModel(BaseModel):
    """Pool entry under `pools:`"""

    name: str = ""
    address: str = Field(min_length=1)
    dex_type: str
    dex: str = ""
    token0: str = Field(min_length=1)
    token1: str = Field(min_length=1)
    fee_bps: int = Field(ge=0, lt=10000)
    base_token: Optional[str] = None

    @field_validator("dex_type")
    @classmethod
    def validate_dex_type(cls, v):
        if v.lower() not in DEX_TYPE_ALIASES:
            raise ValueError(
                f"Unknown dex_type '{v}' (expected one of {sorted(DEX_TYPE_ALIASES)})"
            )
        return v.lower()

    @model_validator(mode="after")
    def validate_tokens(self):
        if self.token0.upper() == self.token1.upper():
            raise ValueError(f"Pool {self.address} has identical tokens")
        if DEX_TYPE_ALIASES[self.dex_type] is DexType.PMM:
            if not self.base_token:
                raise ValueError(f"PMM pool {self.address} requires base_token")
            if self.base_token.upper() not in (self.token0.upper(), self.token1.upper()):
                raise ValueError(
                    f"PMM pool {self.address} base_token {self.base_token} is not one "
                    f"of its tokens"
                )
        return self

    @property
    def mechanics(self) -> DexType:
        return DEX_TYPE_ALIASES[self.dex_type]

    @property
    def venue(self) -> str:
        if self.dex:
            return self.dex
        return "" if self.dex_type in _GENERIC_DEX_TYPES else self.dex_type


class ArbitrageConfig(BaseModel):
    """Top-level scanner configuration."""

    chain_id: int = Field(ge=1, default=42161)
    rpc_url: Optional[str] = None
    poll_interval_sec: float = Field(gt=0, default=DEFAULT_CONFIG["POLL_INTERVAL_SEC"])
    native_token: NativeTokenModel
    profit_multiplier: Number = DEFAULT_CONFIG["PROFIT_MULTIPLIER"]
    min_profit_thresholds: Dict[str, int] = Field(
        default_factory=lambda: {DEFAULT_THRESHOLD_KEY: 0}
    )
    profit_buffer_bps: int = Field(
        ge=0, lt=10000, default=DEFAULT_CONFIG["PROFIT_BUFFER_BPS"]
    )
    flash_loan_fee_bps: int = Field(
        ge=0, lt=10000, default=DEFAULT_CONFIG["FLASH_LOAN_FEE_BPS"]
    )
    tithe_bps: int = Field(ge=0, lt=10000, default=DEFAULT_CONFIG["TITHE_BPS"])
    gas_estimate_buffer_pct: int = Field(
        ge=0, le=500, default=DEFAULT_CONFIG["GAS_ESTIMATE_BUFFER_PCT"]
    )
    fallback_gas_limit: int = Field(gt=0, default=DEFAULT_CONFIG["FALLBACK_GAS_LIMIT"])
    max_concurrent_fetches: int = Field(
        ge=1, le=256, default=DEFAULT_CONFIG["MAX_CONCURRENT_FETCHES"]
    )
    tick_cache_ttl_sec: float = Field(
        ge=0, default=DEFAULT_CONFIG["TICK_CACHE_TTL_SEC"]
    )
    trade_amounts: Dict[str, Number] = Field(default_factory=dict)
    static_prices: Dict[str, Number] = Field(default_factory=dict)
    coingecko_fallback: bool = True
    tokens: Dict[str, TokenModel]
    pools: List[PoolModel]

    @field_validator("profit_multiplier")
    @classmethod
    def validate_profit_multiplier(cls, v):
        if _to_decimal(v, "profit_multiplier") < 1:
            raise ValueError(f"profit_multiplier must be at least 1: {v}")
        return v

    @field_validator("min_profit_thresholds")
    @classmethod
    def validate_thresholds(cls, v):
        thresholds = {symbol.upper(): amount for symbol, amount in v.items()}
        for symbol, amount in thresholds.items():
            if amount < 0:
                raise ValueError(f"Threshold for {symbol} cannot be negative: {amount}")
        thresholds.setdefault(DEFAULT_THRESHOLD_KEY, 0)
        return thresholds

    @field_validator("tokens")
    @classmethod
    def validate_tokens(cls, v):
        if not v:
            raise ValueError("tokens cannot be empty")
        return {symbol.upper(): token for symbol, token in v.items()}

    @field_validator("pools")
    @classmethod
    def validate_pools(cls, v):
        if not v:
            raise ValueError("pools cannot be empty")
        seen = set()
        for pool in v:
            if pool.address.lower() in seen:
                raise ValueError(f"Duplicate pool address: {pool.address}")
            seen.add(pool.address.lower())
        return v

    @model_validator(mode="after")
    def validate_references(self):
        native = self.native_token.symbol.upper()
        if native not in self.tokens:
            raise ValueError(f"native_token {native} is not listed under tokens")
        if self.tokens[native].decimals != self.native_token.decimals:
            raise ValueError(
                f"native_token decimals {self.native_token.decimals} do not match "
                f"token {native} ({self.tokens[native].decimals})"
            )
        for pool in self.pools:
            for symbol in (pool.token0, pool.token1):
                if symbol.upper() not in self.tokens:
                    raise ValueError(
                        f"Pool {pool.name or pool.address} uses unknown token {symbol}"
                    )
        for section in ("trade_amounts", "static_prices"):
            for symbol, value in getattr(self, section).items():
                if symbol.upper() not in self.tokens:
                    raise ValueError(f"{section} references unknown token {symbol}")
                if _to_decimal(value, f"{section}.{symbol}") <= 0:
                    raise ValueError(f"{section}.{symbol} must be positive: {value}")
        return self

    @property
    def resolved_rpc_url(self) -> Optional[str]:
        """rpc_url from the file, else the RPC_URL environment variable."""
        return self.rpc_url or os.getenv("RPC_URL")


def parse_config(data: Dict[str, Any]) -> ArbitrageConfig:
    """
    Validate an already-parsed config mapping.

    Raises:
        ConfigurationError: If the mapping fails validation
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")
    try:
        return ArbitrageConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}", details={"errors": e.errors()}
        ) from e


def load_config(config_path: str) -> ArbitrageConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated ArbitrageConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    return parse_config(data)


def build_token_registry(config: ArbitrageConfig) -> TokenRegistry:
    tokens = [
        Token(
            address=token.address,
            symbol=symbol,
            decimals=token.decimals,
            chain_id=config.chain_id,
        )
        for symbol, token in config.tokens.items()
    ]
    return TokenRegistry(tokens, native_symbol=config.native_token.symbol)


def build_pool_configs(config: ArbitrageConfig) -> List[PoolConfig]:
    return [
        PoolConfig(
            name=pool.name or f"{pool.venue or pool.dex_type} {pool.token0}/{pool.token1}",
            address=pool.address,
            dex_type=pool.mechanics,
            token0=pool.token0.upper(),
            token1=pool.token1.upper(),
            fee_bps=pool.fee_bps,
            base_token=pool.base_token.upper() if pool.base_token else None,
            dex=pool.venue,
        )
        for pool in config.pools
    ]


def profit_threshold_scaled(config: ArbitrageConfig) -> int:
    """Finder threshold: profit_multiplier scaled by 10^36."""
    return multiplier_to_scaled(config.profit_multiplier)


def trade_amounts_in_units(
    config: ArbitrageConfig, registry: TokenRegistry
) -> Dict[str, int]:
    """
    Convert whole-unit trade sizes to smallest units.

    Key order is preserved; finders use it as the start-token preference.
    """
    amounts: Dict[str, int] = {}
    for symbol, value in config.trade_amounts.items():
        token = registry.require(symbol)
        amount = int(_to_decimal(value, symbol) * token.unit)
        if amount <= 0:
            raise ConfigurationError(
                f"trade_amounts.{symbol} rounds to zero smallest units: {value}"
            )
        amounts[token.symbol.upper()] = amount
    return amounts


def static_price_table(config: ArbitrageConfig) -> Dict[str, int]:
    """Native price of one whole token per symbol, scaled by 10^18."""
    return {
        symbol.upper(): int(_to_decimal(value, symbol) * PRICE_SCALE)
        for symbol, value in config.static_prices.items()
    }


def profit_settings(config: ArbitrageConfig) -> ProfitSettings:
    return ProfitSettings(
        flash_loan_fee_bps=config.flash_loan_fee_bps,
        profit_buffer_bps=config.profit_buffer_bps,
        tithe_bps=config.tithe_bps,
        min_profit_thresholds=dict(config.min_profit_thresholds),
    )
