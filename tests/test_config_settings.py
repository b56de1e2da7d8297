import importlib
import math

import pytest
cfgmod = importlib.import_module("hypesignal.config.settings")
from hypesignal.config.settings import Settings, TradingConfigError, _parse_market_list
from hypesignal.config import influencers


def test_defaults(monkeypatch):
    for var in ("TESTING", "HYPERLIQUID_ENVIRONMENT", "HYPERLIQUID_MAX_TRADE_USD", "MAX_TRADE_AMOUNT_USD"):
        monkeypatch.delenv(var, raising=False)
    s = Settings()
    assert s.testing is False
    assert s.is_mainnet() is False
    assert s.api_url() == cfgmod.TESTNET_API_URL
    assert s.max_trade_usd() == 30.0
    assert s.hyperliquid_slippage_bps == 50.0
    assert s.hyperliquid_time_in_force == "Ioc"
    assert s.minimum_confidence == 70


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HYPERLIQUID_ENVIRONMENT", " Mainnet ")
    monkeypatch.setenv("HYPERLIQUID_MAX_TRADE_USD", "12.5")
    monkeypatch.setenv("MAX_TRADE_AMOUNT_USD", "99")
    monkeypatch.setenv("HYPERLIQUID_DISABLED", "true")
    s = Settings()
    assert s.api_url() == cfgmod.MAINNET_API_URL
    assert s.max_trade_usd() == 12.5
    assert s.trading_enabled() is False


@pytest.mark.parametrize("bad", [0.0, -5.0, math.nan, math.inf])
def test_validated_max_trade_usd_rejects_bad_values(bad):
    s = Settings(hyperliquid_max_trade_usd=bad)
    with pytest.raises(TradingConfigError):
        s.validated_max_trade_usd()


def test_allowed_markets_parsing():
    assert _parse_market_list(None) == []
    assert _parse_market_list(" * ") == []
    assert _parse_market_list("eth, sol,,") == ["ETH", "SOL"]
    assert Settings(hyperliquid_allowed_markets="eth").allowed_markets() == ["ETH"]


def test_tracked_accounts(monkeypatch):
    monkeypatch.setattr(influencers.settings, "twitter_accounts", None)
    assert influencers.tracked_accounts() == influencers.DEFAULT_INFLUENCERS
    monkeypatch.setattr(influencers.settings, "twitter_accounts", "@foo, bar ,")
    assert influencers.tracked_accounts() == ["foo", "bar"]
