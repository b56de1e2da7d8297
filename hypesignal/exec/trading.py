import asyncio
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel

from hypesignal.config import settings, Settings, SYMBOL_ROUTING
from hypesignal.exchange.formatting import amount_label, explorer_url, format_price, format_size
from hypesignal.exchange.hyperliquid import (
    ExchangeError,
    HyperliquidClientFactory,
    HyperliquidClients,
    call_with_timeout,
    extract_statuses,
)
from hypesignal.exec.positions import PositionStore
from hypesignal.exec.sim import simulate_fill
from hypesignal.notify import Notifier, notifier as default_notifier
from hypesignal.types import ErrorStatus, FilledStatus, MarketMetadata, TradingPosition, parse_order_status

logger = logging.getLogger("hypesignal.trading")


class TradeExecutionError(RuntimeError):
    """Transient execution failure; the post stays unprocessed so it can be retried."""


class TradeRequest(BaseModel):
    token: str
    tweet: str
    influencer: str
    tweet_id: str
    profile_image_url: Optional[str] = None


def resolve_market_symbol(token: str) -> str:
    normalized = token.strip().upper()
    return SYMBOL_ROUTING.get(normalized, normalized)


def extract_fill(response: Any) -> FilledStatus:
    statuses = extract_statuses(response)
    if not statuses:
        raise TradeExecutionError("Hyperliquid did not return any order status")
    status = parse_order_status(statuses[0])
    if isinstance(status, ErrorStatus):
        raise TradeExecutionError(status.error)
    if not isinstance(status, FilledStatus):
        raise TradeExecutionError("Order was not filled. Consider adjusting size or slippage.")
    if not math.isfinite(status.total_sz) or status.total_sz <= 0:
        raise TradeExecutionError("Hyperliquid did not return a valid fill size")
    return status


def plan_order(best_ask: float, market: MarketMetadata, notional_usd: float, slippage_bps: float) -> Dict[str, Any]:
    """Limit price and lot-rounded size for a buy of ``notional_usd``."""
    limit_raw = best_ask * (1 + slippage_bps / 10_000)
    limit_price = format_price(limit_raw, market.size_decimals, is_perp=not market.is_spot)
    limit_numeric = float(limit_price)
    if not math.isfinite(limit_numeric) or limit_numeric <= 0:
        raise TradeExecutionError(
            f"Limit price for {market.symbol} rounds to {limit_price} at {market.size_decimals} size decimals"
        )
    size_raw = notional_usd / limit_numeric
    size = format_size(size_raw, market.size_decimals)
    numeric = float(size)
    if not math.isfinite(numeric) or numeric <= 0:
        raise TradeExecutionError(
            f"Trade size ({size}) is below Hyperliquid lot size requirements for {market.symbol}"
        )
    return {"limit_price": limit_price, "size": size, "size_raw": size_raw}


class ExecutionEngine:
    def __init__(
        self,
        store: PositionStore,
        cfg: Optional[Settings] = None,
        notify: Optional[Notifier] = None,
        clients: Optional[HyperliquidClientFactory] = None,
    ):
        self.store = store
        self.cfg = cfg or settings
        self.notify = notify or default_notifier
        self.clients = clients or HyperliquidClientFactory(self.cfg)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, symbol: str) -> asyncio.Lock:
        if symbol not in self._locks:
            self._locks[symbol] = asyncio.Lock()
        return self._locks[symbol]

    def _skip(self, request: TradeRequest, why: str) -> None:
        logger.info(f"[trade] skip {request.token} (tweet {request.tweet_id}): {why}")
        self.store.mark_tweet_as_processed(request.tweet_id)

    async def execute(self, request: TradeRequest) -> None:
        logger.info(
            f"[trade] request token={request.token} influencer={request.influencer} "
            f"tweet={request.tweet_id} text={request.tweet[:120]!r}"
        )
        symbol = resolve_market_symbol(request.token)
        if not symbol:
            return self._skip(request, "could not normalize token symbol")

        if not self.cfg.testing and not self.cfg.trading_enabled():
            return self._skip(request, "trading disabled via configuration")

        allowed = self.cfg.allowed_markets()
        if allowed and symbol not in allowed:
            return self._skip(request, f"{symbol} not in allowed markets ({', '.join(allowed)})")

        async with self._lock_for(symbol):
            if self.store.has_holding_position(symbol):
                return self._skip(request, f"already holding {symbol}")

            if self.cfg.testing:
                return self._execute_simulated(request, symbol)

            await self._execute_live(request, symbol)

    async def _execute_live(self, request: TradeRequest, symbol: str) -> None:
        trade_usd = self.cfg.validated_max_trade_usd()
        clients = await self.clients.get()
        timeout = self.cfg.exchange_timeout_sec

        if self.store.has_holding_position(symbol):
            return self._skip(request, f"already holding {symbol} locally")
        if await self._holding_on_exchange(clients, symbol):
            return self._skip(request, f"already holding {symbol} on Hyperliquid")

        market = await call_with_timeout(clients.symbols.resolve, symbol, timeout=timeout)
        if market is None:
            return self._skip(request, f"{symbol} is not listed on Hyperliquid")

        try:
            best_ask = await call_with_timeout(clients.info.best_ask, market.info_symbol, timeout=timeout)
        except ExchangeError as e:
            logger.error(f"[orderbook] failed to fetch order book for {market.symbol}: {e}")
            best_ask = None
        if not best_ask:
            raise TradeExecutionError(f"Unable to fetch order book data for {market.symbol}")

        plan = plan_order(best_ask, market, trade_usd, self.cfg.hyperliquid_slippage_bps)

        self.notify.info(
            "Executing Hyperliquid Order",
            f"Buying {market.symbol} with ~${trade_usd:.2f} notional",
            {
                "token": market.symbol,
                "amount": plan["size"],
                "influencer": request.influencer,
                "price": plan["limit_price"],
            },
        )
        logger.info(
            f"[trade] order market={market.symbol} asset={market.asset_id} ask={best_ask} "
            f"limit={plan['limit_price']} size={plan['size']} slippage={self.cfg.hyperliquid_slippage_bps}bps "
            f"tif={self.cfg.hyperliquid_time_in_force}"
        )

        try:
            response = await call_with_timeout(
                clients.orders.buy,
                market,
                float(plan["size"]),
                float(plan["limit_price"]),
                self.cfg.hyperliquid_time_in_force,
                timeout=timeout,
            )
        except ExchangeError:
            raise
        except Exception as e:
            raise TradeExecutionError(f"order submission failed for {market.symbol}: {e}") from e

        fill = extract_fill(response)

        position = TradingPosition(
            id=uuid.uuid4().hex,
            token=market.symbol,
            amount=fill.total_sz,
            purchase_price=fill.avg_px,
            purchase_time=datetime.now(timezone.utc),
            tweet=request.tweet,
            influencer=request.influencer,
            profile_image_url=request.profile_image_url,
            status="holding",
        )
        self.store.save_position(position)
        self.store.mark_tweet_as_processed(request.tweet_id)

        link = explorer_url(self.cfg.hyperliquid_explorer_url, market.symbol, fill.oid)
        self.notify.trade_buy(
            token=market.symbol,
            amount=amount_label(fill.total_sz, market.symbol, market.size_decimals),
            influencer=request.influencer,
            price=f"{fill.avg_px:.4f}",
            order_id=str(fill.oid) if fill.oid is not None else None,
            explorer_url=link,
        )
        logger.info(
            f"[trade] filled oid={fill.oid} {market.symbol} size={fill.total_sz} avg={fill.avg_px} {link or ''}"
        )

    async def _holding_on_exchange(self, clients: HyperliquidClients, symbol: str) -> bool:
        try:
            sizes = await call_with_timeout(
                clients.info.open_position_sizes, clients.address, timeout=self.cfg.exchange_timeout_sec
            )
        except Exception as e:
            logger.error(f"[trade] failed to check remote holdings: {e}")
            return False
        return symbol.upper() in sizes

    def _execute_simulated(self, request: TradeRequest, symbol: str) -> None:
        fill = simulate_fill(symbol, self.cfg.validated_max_trade_usd())
        position = TradingPosition(
            id=uuid.uuid4().hex,
            token=symbol,
            amount=fill["amount"],
            purchase_price=fill["price"],
            purchase_time=datetime.now(timezone.utc),
            tweet=request.tweet,
            influencer=request.influencer,
            profile_image_url=request.profile_image_url,
            status="holding",
        )
        self.store.save_position(position)
        self.store.mark_tweet_as_processed(request.tweet_id)
        self.notify.trade_buy(
            token=symbol,
            amount=f"{fill['amount']:.6f} {symbol} (simulated)",
            influencer=request.influencer,
            price=f"{fill['price']:.2f}",
            explorer_url=explorer_url(self.cfg.hyperliquid_explorer_url, symbol),
        )
        logger.info(
            f"[sim] simulated fill {symbol} amount={fill['amount']:.6f} price={fill['price']} "
            f"notional=${fill['notional_usd']}"
        )
