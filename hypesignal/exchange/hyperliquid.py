import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests
from eth_account import Account
from hyperliquid.exchange import Exchange

from hypesignal.config import settings, Settings, TradingConfigError
from hypesignal.types import MarketMetadata

logger = logging.getLogger("hypesignal.hyperliquid")

SPOT_ASSET_OFFSET = 10_000
DEFAULT_SZ_DECIMALS = 3

T = TypeVar("T")


class ExchangeError(RuntimeError):
    """Upstream exchange call failed or timed out."""


async def call_with_timeout(fn: Callable[..., T], *args, timeout: float = 10.0) -> T:
    """Run a blocking exchange call off the event loop with a hard deadline."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ExchangeError(f"{getattr(fn, '__name__', 'call')} timed out after {timeout}s") from e


def normalize_private_key(value: str) -> str:
    value = value.strip()
    return value if value.startswith("0x") else f"0x{value}"


def derive_address(private_key: Optional[str]) -> Optional[str]:
    if not private_key:
        logger.warning("[hl] HYPERLIQUID_PRIVATE_KEY not set; unable to derive account address.")
        return None
    try:
        return Account.from_key(normalize_private_key(private_key)).address
    except Exception as e:
        logger.error(f"[hl] failed to derive address from private key: {e}")
        return None


class InfoClient:
    """Read-only ``/info`` endpoint reader."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _post(self, payload: Dict[str, Any]) -> Any:
        try:
            r = self.session.post(f"{self.base_url}/info", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExchangeError(f"info {payload.get('type')} failed: {e}") from e
        if r.status_code != 200:
            raise ExchangeError(f"info {payload.get('type')} HTTP {r.status_code} {r.text}")
        try:
            return r.json()
        except ValueError as e:
            raise ExchangeError(f"info {payload.get('type')} returned non-JSON body: {r.text[:200]}") from e

    def meta(self) -> Dict[str, Any]:
        return self._post({"type": "meta"})

    def spot_meta(self) -> Dict[str, Any]:
        return self._post({"type": "spotMeta"})

    def l2_book(self, coin: str) -> Dict[str, Any]:
        return self._post({"type": "l2Book", "coin": coin})

    def clearinghouse_state(self, user: str) -> Dict[str, Any]:
        return self._post({"type": "clearinghouseState", "user": user})

    def all_mids(self) -> Dict[str, str]:
        return self._post({"type": "allMids"}) or {}

    def best_ask(self, coin: str) -> Optional[float]:
        book = self.l2_book(coin) or {}
        levels = book.get("levels") or []
        if len(levels) < 2 or not levels[1]:
            return None
        try:
            return float(levels[1][0]["px"])
        except (KeyError, TypeError, ValueError):
            return None

    def open_position_sizes(self, user: str) -> Dict[str, float]:
        """Nonzero position sizes keyed by upper-cased coin."""
        state = self.clearinghouse_state(user) or {}
        out: Dict[str, float] = {}
        for item in state.get("assetPositions") or []:
            pos = item.get("position") or {}
            coin = str(pos.get("coin") or "").upper()
            try:
                size = float(pos.get("szi", 0))
            except (TypeError, ValueError):
                continue
            if coin and math.isfinite(size) and size != 0:
                out[coin] = size
        return out


class SymbolDirectory:
    """Maps market symbols to asset ids and lot precision. ``refresh()`` reloads it."""

    def __init__(self, info: InfoClient):
        self.info = info
        self.raw_meta: Optional[Dict[str, Any]] = None
        self.raw_spot_meta: Optional[Dict[str, Any]] = None
        self._perps: Dict[str, MarketMetadata] = {}
        self._spots: Dict[str, MarketMetadata] = {}

    @property
    def loaded(self) -> bool:
        return self.raw_meta is not None

    def refresh(self) -> None:
        meta = self.info.meta() or {}
        spot = self.info.spot_meta() or {}

        perps: Dict[str, MarketMetadata] = {}
        for idx, asset in enumerate(meta.get("universe") or []):
            name = str(asset.get("name", "")).upper()
            if not name:
                continue
            perps[name] = MarketMetadata(
                symbol=name,
                asset_id=idx,
                size_decimals=int(asset.get("szDecimals", DEFAULT_SZ_DECIMALS)),
                info_symbol=asset["name"],
                is_spot=False,
            )

        tokens = {t.get("index"): t for t in spot.get("tokens") or []}
        spots: Dict[str, MarketMetadata] = {}
        for pair in spot.get("universe") or []:
            pair_tokens = pair.get("tokens") or []
            if len(pair_tokens) < 2:
                continue
            base, quote = tokens.get(pair_tokens[0]), tokens.get(pair_tokens[1])
            if not base or not quote:
                continue
            symbol = f"{base['name']}/{quote['name']}".upper()
            spots[symbol] = MarketMetadata(
                symbol=symbol,
                asset_id=SPOT_ASSET_OFFSET + int(pair["index"]),
                size_decimals=int(base.get("szDecimals", DEFAULT_SZ_DECIMALS)),
                info_symbol=pair.get("name") or f"@{pair['index']}",
                is_spot=True,
            )

        self.raw_meta, self.raw_spot_meta = meta, spot
        self._perps, self._spots = perps, spots
        logger.info(f"[hl] symbol directory loaded: {len(perps)} perps, {len(spots)} spot pairs")

    def resolve(self, symbol: str) -> Optional[MarketMetadata]:
        if not self.loaded:
            self.refresh()
        sym = symbol.strip().upper()
        if "/" in sym:
            return self._spots.get(sym)
        return self._perps.get(sym)


class OrderClient:
    """Signs and submits orders through the Hyperliquid SDK."""

    def __init__(self, exchange: Exchange):
        self.exchange = exchange

    def buy(self, market: MarketMetadata, size: float, limit_px: float, tif: str) -> Dict[str, Any]:
        return self.exchange.order(
            market.info_symbol,
            True,
            size,
            limit_px,
            {"limit": {"tif": tif}},
            reduce_only=False,
        )


@dataclass
class HyperliquidClients:
    transport: requests.Session
    info: InfoClient
    orders: OrderClient
    symbols: SymbolDirectory
    address: str


def extract_statuses(response: Any) -> List[Any]:
    if not isinstance(response, dict):
        return []
    if response.get("status") == "err":
        return [{"error": str(response.get("response"))}]
    data = ((response.get("response") or {}).get("data")) or {}
    return list(data.get("statuses") or [])


class HyperliquidClientFactory:
    """
    Builds the client bundle once per process. Concurrent first callers
    share the same construction.
    """

    def __init__(self, cfg: Optional[Settings] = None, builder: Optional[Callable[[], HyperliquidClients]] = None):
        self.cfg = cfg or settings
        self._builder = builder or self._build
        self._lock = asyncio.Lock()
        self._clients: Optional[HyperliquidClients] = None
        self.builds = 0

    async def get(self) -> HyperliquidClients:
        if self._clients is not None:
            return self._clients
        async with self._lock:
            if self._clients is None:
                self._clients = await asyncio.to_thread(self._builder)
                self.builds += 1
        return self._clients

    def _build(self) -> HyperliquidClients:
        key = self.cfg.hyperliquid_private_key
        if not key:
            raise TradingConfigError("HYPERLIQUID_PRIVATE_KEY environment variable is required for live trading")
        wallet = Account.from_key(normalize_private_key(key))
        session = requests.Session()
        info = InfoClient(self.cfg.api_url(), session, timeout=self.cfg.exchange_timeout_sec)
        symbols = SymbolDirectory(info)
        symbols.refresh()
        exchange = Exchange(
            wallet,
            self.cfg.api_url(),
            meta=symbols.raw_meta,
            spot_meta=symbols.raw_spot_meta,
        )
        logger.info(
            f"[hl] clients ready env={'mainnet' if self.cfg.is_mainnet() else 'testnet'} "
            f"address={wallet.address}"
        )
        return HyperliquidClients(
            transport=session,
            info=info,
            orders=OrderClient(exchange),
            symbols=symbols,
            address=wallet.address,
        )
