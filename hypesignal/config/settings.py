# hypesignal/config/settings.py

import math
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


MAINNET_API_URL = "https://api.hyperliquid.xyz"
TESTNET_API_URL = "https://api.hyperliquid-testnet.xyz"

# Wrapped and aliased tickers route to the market that actually trades.
SYMBOL_ROUTING = {
    "WETH": "ETH",
    "ETH": "ETH",
    "SOL": "SOL",
    "BTC": "BTC",
    "EIGEN": "EIGEN",
    "ENA": "ENA",
}


class TradingConfigError(ValueError):
    """Deployment misconfiguration that must stop a trade outright."""


def _parse_market_list(val: Optional[str]) -> List[str]:
    if not val:
        return []
    val = val.strip()
    if val in ("", "*"):
        return []
    return [x.strip().upper() for x in val.split(",") if x.strip()]


class Settings(BaseSettings):
    # --- Modes ---
    testing: bool = Field(default=False)
    hyperliquid_disabled: bool = Field(default=False)
    hyperliquid_environment: str = Field(default="testnet")

    # --- Credentials ---
    hyperliquid_private_key: Optional[str] = None

    # --- Trading ---
    max_trade_amount_usd: float = Field(default=30.0)
    hyperliquid_max_trade_usd: Optional[float] = None
    hyperliquid_allowed_markets: Optional[str] = None
    hyperliquid_slippage_bps: float = Field(default=50.0)
    hyperliquid_time_in_force: str = Field(default="Ioc")
    hyperliquid_explorer_url: str = Field(default="https://app.hyperliquid.xyz/exchange")
    minimum_confidence: int = Field(default=70)
    tweet_max_age_hours: int = Field(default=6)

    # --- Oracle ---
    eigenai_api_key: Optional[str] = None
    eigenai_base_url: str = Field(default="https://eigenai-sepolia.eigencloud.xyz/v1")
    openai_api_key: Optional[str] = None
    openai_model: str = Field(default="gpt-4o-mini")
    oracle_model: str = Field(default="gemma-3-27b-it-q4")

    # --- Timeouts (seconds) ---
    oracle_timeout_sec: float = Field(default=30.0)
    exchange_timeout_sec: float = Field(default=10.0)

    # --- Storage + sources ---
    hypesignal_data_dir: str = Field(default="./data")
    twitter_accounts: Optional[str] = None

    # --- Helpers ---
    def max_trade_usd(self) -> float:
        if self.hyperliquid_max_trade_usd is not None:
            return self.hyperliquid_max_trade_usd
        return self.max_trade_amount_usd

    def validated_max_trade_usd(self) -> float:
        usd = self.max_trade_usd()
        if not math.isfinite(usd) or usd <= 0:
            raise TradingConfigError(
                "Invalid trading configuration: max trade USD must be a positive number"
            )
        return usd

    def allowed_markets(self) -> List[str]:
        return _parse_market_list(self.hyperliquid_allowed_markets)

    def is_mainnet(self) -> bool:
        return self.hyperliquid_environment.strip().lower() == "mainnet"

    def api_url(self) -> str:
        return MAINNET_API_URL if self.is_mainnet() else TESTNET_API_URL

    def trading_enabled(self) -> bool:
        return not self.hyperliquid_disabled


# Global settings instance
settings = Settings()
