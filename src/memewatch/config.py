"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for memewatch,
loading and validating environment variables at startup. Each concern gets
its own settings group with an env prefix so that deployments can override
a single threshold without touching the rest.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_SOLANA_PROGRAMS = (
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",  # Pump.fun
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # Raydium V4
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",  # Raydium CPMM
)


def _check_http_url(v: str | None) -> str | None:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be an HTTP(S) endpoint")
    return v.rstrip("/")


class RedisSettings(BaseSettings):
    """Redis connection settings.

    Redis is optional. Without it the dedup set lives in process memory.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string for the shared dedup set",
    )
    key_prefix: str = Field(
        default="memewatch:",
        alias="REDIS_KEY_PREFIX",
        description="Prefix applied to every Redis key",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class BaseChainSettings(BaseSettings):
    """Base (EVM) push-stream ingestion and market filter settings."""

    model_config = SettingsConfigDict(env_prefix="BASE_", extra="ignore")

    enabled: bool = Field(default=True, alias="BASE_ENABLED")
    ws_url: str = Field(
        default="wss://base-rpc.publicnode.com",
        alias="BASE_WS_URL",
        description="WebSocket RPC endpoint used for the log subscription",
    )
    rpc_url: str = Field(
        default="https://mainnet.base.org",
        alias="BASE_RPC_URL",
        description="HTTP RPC endpoint used for contract reads",
    )
    chain_id: int = Field(default=8453, alias="BASE_CHAIN_ID")
    min_buy_usd: float = Field(
        default=300.0,
        alias="BASE_MIN_BUY_USD",
        ge=0,
        description="Minimum buy size (USD) counted as a whale buy",
    )
    min_liquidity_usd: float = Field(default=5_000.0, alias="BASE_MIN_LIQUIDITY_USD", ge=0)
    max_liquidity_usd: float = Field(default=500_000.0, alias="BASE_MAX_LIQUIDITY_USD", ge=0)
    min_market_cap_usd: float = Field(default=10_000.0, alias="BASE_MIN_MARKET_CAP_USD", ge=0)
    max_market_cap_usd: float = Field(default=5_000_000.0, alias="BASE_MAX_MARKET_CAP_USD", ge=0)
    max_age_hours: float | None = Field(
        default=48.0,
        alias="BASE_MAX_AGE_HOURS",
        gt=0,
        description="Maximum pool age; unset disables the age filter",
    )
    fallback_native_price_usd: float = Field(
        default=3000.0,
        alias="BASE_FALLBACK_NATIVE_PRICE_USD",
        gt=0,
        description="ETH price used until the first successful price refresh",
    )
    pair_cache_size: int = Field(default=5000, alias="BASE_PAIR_CACHE_SIZE", ge=1)

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC URL format."""
        return _check_http_url(v) or v

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Validate WebSocket URL format."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("BASE_WS_URL must be a WebSocket URL")
        return v


class SolanaSettings(BaseSettings):
    """Solana poll-loop ingestion and market filter settings."""

    model_config = SettingsConfigDict(env_prefix="SOLANA_", extra="ignore")

    enabled: bool = Field(default=True, alias="SOLANA_ENABLED")
    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        alias="SOLANA_RPC_URL",
        description="Solana JSON-RPC endpoint",
    )
    programs: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_SOLANA_PROGRAMS,
        alias="SOLANA_PROGRAMS",
        description="Comma-separated program ids polled for swaps",
    )
    poll_interval_seconds: float = Field(default=20.0, alias="SOLANA_POLL_INTERVAL_SECONDS", gt=0)
    signature_limit: int = Field(default=10, alias="SOLANA_SIGNATURE_LIMIT", ge=1, le=1000)
    max_pages_per_scan: int = Field(
        default=5,
        alias="SOLANA_MAX_PAGES_PER_SCAN",
        ge=1,
        description="Signature pages fetched per program per scan when catching up",
    )
    request_delay_seconds: float = Field(default=0.3, alias="SOLANA_REQUEST_DELAY_SECONDS", ge=0)
    program_delay_seconds: float = Field(default=1.0, alias="SOLANA_PROGRAM_DELAY_SECONDS", ge=0)
    max_event_age_seconds: float = Field(
        default=30.0,
        alias="SOLANA_MAX_EVENT_AGE_SECONDS",
        gt=0,
        description="Transactions older than this are dropped",
    )
    seen_cache_size: int = Field(default=10_000, alias="SOLANA_SEEN_CACHE_SIZE", ge=1)
    min_buy_usd: float = Field(default=200.0, alias="SOLANA_MIN_BUY_USD", ge=0)
    min_liquidity_usd: float = Field(default=3_000.0, alias="SOLANA_MIN_LIQUIDITY_USD", ge=0)
    max_liquidity_usd: float = Field(default=300_000.0, alias="SOLANA_MAX_LIQUIDITY_USD", ge=0)
    min_market_cap_usd: float = Field(default=10_000.0, alias="SOLANA_MIN_MARKET_CAP_USD", ge=0)
    max_market_cap_usd: float = Field(default=10_000_000.0, alias="SOLANA_MAX_MARKET_CAP_USD", ge=0)
    max_age_hours: float | None = Field(default=None, alias="SOLANA_MAX_AGE_HOURS", gt=0)
    fallback_native_price_usd: float = Field(
        default=140.0,
        alias="SOLANA_FALLBACK_NATIVE_PRICE_USD",
        gt=0,
    )

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC URL format."""
        return _check_http_url(v) or v

    @field_validator("programs", mode="before")
    @classmethod
    def _parse_programs(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return DEFAULT_SOLANA_PROGRAMS
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",")]
            return tuple(p for p in parts if p)
        if isinstance(v, (list, tuple, set)):
            return tuple(str(p).strip() for p in v if str(p).strip())
        raise TypeError("SOLANA_PROGRAMS must be a comma-separated string")


class WindowSettings(BaseSettings):
    """Whale window and trigger policy settings."""

    model_config = SettingsConfigDict(env_prefix="WINDOW_", extra="ignore")

    duration_seconds: float = Field(
        default=300.0,
        alias="WINDOW_DURATION_SECONDS",
        gt=0,
        description="Length of the per-asset accumulation window",
    )
    big_buy_usd: float = Field(
        default=2000.0,
        alias="WINDOW_BIG_BUY_USD",
        ge=0,
        description="Single buy size that triggers review on its own",
    )
    min_whales: int = Field(
        default=2,
        alias="WINDOW_MIN_WHALES",
        ge=1,
        description="Distinct buyers in one window that trigger review",
    )
    idle_multiplier: float = Field(
        default=3.0,
        alias="WINDOW_IDLE_MULTIPLIER",
        ge=1,
        description="Windows idle longer than duration x multiplier are evicted",
    )


class SafetySettings(BaseSettings):
    """Safety cascade settings."""

    model_config = SettingsConfigDict(env_prefix="SAFETY_", extra="ignore")

    min_score: float = Field(
        default=50.0,
        alias="SAFETY_MIN_SCORE",
        ge=0,
        le=100,
        description="Minimum composite safety score required to alert",
    )
    max_tax_percent: float = Field(
        default=10.0,
        alias="SAFETY_MAX_TAX_PERCENT",
        ge=0,
        le=100,
        description="Buy or sell tax above this is an absolute blocker",
    )
    deep_analysis: bool = Field(
        default=False,
        alias="SAFETY_DEEP_ANALYSIS",
        description="Run holder/LP/creator/momentum/social checks",
    )
    check_timeout_seconds: float = Field(default=5.0, alias="SAFETY_CHECK_TIMEOUT_SECONDS", ge=1, le=10)
    neutral_score: float = Field(default=50.0, alias="SAFETY_NEUTRAL_SCORE", ge=0, le=100)
    weight_honeypot: float = Field(default=0.30, alias="SAFETY_WEIGHT_HONEYPOT", ge=0)
    weight_holders: float = Field(default=0.20, alias="SAFETY_WEIGHT_HOLDERS", ge=0)
    weight_lp_lock: float = Field(default=0.20, alias="SAFETY_WEIGHT_LP_LOCK", ge=0)
    weight_social: float = Field(default=0.15, alias="SAFETY_WEIGHT_SOCIAL", ge=0)
    weight_creator: float = Field(default=0.15, alias="SAFETY_WEIGHT_CREATOR", ge=0)
    result_ttl_seconds: float = Field(default=600.0, alias="SAFETY_RESULT_TTL_SECONDS", gt=0)
    creator_scan_limit: int = Field(default=20, alias="SAFETY_CREATOR_SCAN_LIMIT", ge=1, le=100)
    min_alpha_score: int = Field(
        default=0,
        alias="SAFETY_MIN_ALPHA_SCORE",
        ge=0,
        le=100,
        description="Optional alpha-score gate; 0 disables it",
    )


class ProviderSettings(BaseSettings):
    """Third-party data provider endpoints."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_", extra="ignore")

    dexscreener_url: str = Field(default="https://api.dexscreener.com", alias="PROVIDER_DEXSCREENER_URL")
    coingecko_url: str = Field(default="https://api.coingecko.com/api/v3", alias="PROVIDER_COINGECKO_URL")
    honeypot_url: str = Field(default="https://api.honeypot.is/v2", alias="PROVIDER_HONEYPOT_URL")
    rugcheck_url: str = Field(default="https://api.rugcheck.xyz/v1", alias="PROVIDER_RUGCHECK_URL")
    blockscout_url: str = Field(default="https://base.blockscout.com/api/v2", alias="PROVIDER_BLOCKSCOUT_URL")
    min_request_interval_seconds: float = Field(
        default=0.2,
        alias="PROVIDER_MIN_REQUEST_INTERVAL_SECONDS",
        ge=0,
        description="Minimum delay between calls to the same provider host",
    )
    request_timeout_seconds: float = Field(default=4.0, alias="PROVIDER_REQUEST_TIMEOUT_SECONDS", ge=1, le=10)

    @field_validator("dexscreener_url", "coingecko_url", "honeypot_url", "rugcheck_url", "blockscout_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate provider URL format."""
        return _check_http_url(v) or v


class CacheSettings(BaseSettings):
    """In-process cache bounds."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")

    metadata_ttl_seconds: float = Field(default=120.0, alias="CACHE_METADATA_TTL_SECONDS", gt=0)
    price_ttl_seconds: float = Field(default=60.0, alias="CACHE_PRICE_TTL_SECONDS", gt=0)
    max_entries: int = Field(default=5000, alias="CACHE_MAX_ENTRIES", ge=1)


class AlertSettings(BaseSettings):
    """Outbound alert queue settings."""

    model_config = SettingsConfigDict(env_prefix="ALERT_", extra="ignore")

    min_delay_seconds: float = Field(
        default=3.0,
        alias="ALERT_MIN_DELAY_SECONDS",
        ge=0,
        description="Minimum delay between two deliveries",
    )
    startup_notice: bool = Field(default=True, alias="ALERT_STARTUP_NOTICE")


class HousekeepingSettings(BaseSettings):
    """Housekeeping scheduler settings."""

    model_config = SettingsConfigDict(env_prefix="HOUSEKEEPING_", extra="ignore")

    interval_seconds: float = Field(default=60.0, alias="HOUSEKEEPING_INTERVAL_SECONDS", gt=0)
    dedup_max_size: int = Field(
        default=1000,
        alias="HOUSEKEEPING_DEDUP_MAX_SIZE",
        ge=1,
        description="Dedup set is cleared wholesale once it exceeds this size",
    )
    status_every_events: int = Field(default=500, alias="HOUSEKEEPING_STATUS_EVERY_EVENTS", ge=1)


class SniperSettings(BaseSettings):
    """Serial buyer (sniper) tracking settings."""

    model_config = SettingsConfigDict(env_prefix="SNIPER_", extra="ignore")

    min_assets: int = Field(
        default=3,
        alias="SNIPER_MIN_ASSETS",
        ge=2,
        description="Distinct assets bought before a wallet counts as a sniper",
    )
    ttl_seconds: float = Field(default=3600.0, alias="SNIPER_TTL_SECONDS", gt=0)
    max_wallets: int = Field(default=20_000, alias="SNIPER_MAX_WALLETS", ge=1)
    alerts_enabled: bool = Field(default=True, alias="SNIPER_ALERTS_ENABLED")


class TelegramSettings(BaseSettings):
    """Telegram notification settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )
    chat_id: str | None = Field(
        default=None,
        alias="TELEGRAM_CHAT_ID",
        description="Telegram chat ID for alerts",
    )
    api_url: str = Field(default="https://api.telegram.org", alias="TELEGRAM_API_URL")

    @property
    def enabled(self) -> bool:
        """Check if Telegram notifications are enabled."""
        return self.bot_token is not None and self.chat_id is not None


def _group(cls: type[BaseSettings]) -> BaseSettings:
    # Nested groups must be handed the env file explicitly, otherwise they
    # only read the process environment.
    return cls(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from memewatch.config import get_settings

        settings = get_settings()
        print(settings.window.duration_seconds)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    redis: RedisSettings = Field(default_factory=lambda: _group(RedisSettings))
    base: BaseChainSettings = Field(default_factory=lambda: _group(BaseChainSettings))
    solana: SolanaSettings = Field(default_factory=lambda: _group(SolanaSettings))
    window: WindowSettings = Field(default_factory=lambda: _group(WindowSettings))
    safety: SafetySettings = Field(default_factory=lambda: _group(SafetySettings))
    providers: ProviderSettings = Field(default_factory=lambda: _group(ProviderSettings))
    cache: CacheSettings = Field(default_factory=lambda: _group(CacheSettings))
    alerts: AlertSettings = Field(default_factory=lambda: _group(AlertSettings))
    housekeeping: HousekeepingSettings = Field(default_factory=lambda: _group(HousekeepingSettings))
    sniper: SniperSettings = Field(default_factory=lambda: _group(SniperSettings))
    telegram: TelegramSettings = Field(default_factory=lambda: _group(TelegramSettings))

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log alerts instead of delivering them",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> Settings:
        for name, group in (("BASE", self.base), ("SOLANA", self.solana)):
            if group.min_liquidity_usd > group.max_liquidity_usd:
                raise ValueError(f"{name}_MIN_LIQUIDITY_USD exceeds {name}_MAX_LIQUIDITY_USD")
            if group.min_market_cap_usd > group.max_market_cap_usd:
                raise ValueError(f"{name}_MIN_MARKET_CAP_USD exceeds {name}_MAX_MARKET_CAP_USD")
        return self

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "base": {
                "enabled": str(self.base.enabled),
                "ws_url": self._redact_url(self.base.ws_url),
                "rpc_url": self._redact_url(self.base.rpc_url),
                "min_buy_usd": str(self.base.min_buy_usd),
            },
            "solana": {
                "enabled": str(self.solana.enabled),
                "rpc_url": self._redact_url(self.solana.rpc_url),
                "programs": ",".join(self.solana.programs),
                "poll_interval_seconds": str(self.solana.poll_interval_seconds),
                "min_buy_usd": str(self.solana.min_buy_usd),
            },
            "window": {
                "duration_seconds": str(self.window.duration_seconds),
                "big_buy_usd": str(self.window.big_buy_usd),
                "min_whales": str(self.window.min_whales),
            },
            "safety": {
                "min_score": str(self.safety.min_score),
                "max_tax_percent": str(self.safety.max_tax_percent),
                "deep_analysis": str(self.safety.deep_analysis),
            },
            "alerts": {
                "min_delay_seconds": str(self.alerts.min_delay_seconds),
            },
            "telegram_enabled": str(self.telegram.enabled),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    def validate_requirements(self, *, command: Literal["run", "config"]) -> None:
        """Validate command-specific requirements.

        Refuses to run when no network is enabled, or when alerts would be
        silently discarded because no transport is configured.
        """
        if command != "run":
            return
        if not (self.base.enabled or self.solana.enabled):
            raise ValueError("At least one of BASE_ENABLED / SOLANA_ENABLED must be true")
        if not self.dry_run and not self.telegram.enabled:
            raise ValueError("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are required unless DRY_RUN=true")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and API keys embedded in a URL."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        if "api-key=" in url or "api_key=" in url:
            return url.split("?", 1)[0] + "?***"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
