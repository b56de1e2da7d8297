# hypesignal/config/__init__.py
"""Configuration package for HypeSignal."""

from .settings import settings, Settings, SYMBOL_ROUTING, TradingConfigError
from .influencers import tracked_accounts

__all__ = ["settings", "Settings", "SYMBOL_ROUTING", "TradingConfigError", "tracked_accounts"]
