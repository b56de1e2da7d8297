import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from hypesignal.config import settings, Settings
from hypesignal.exchange.hyperliquid import InfoClient, call_with_timeout, derive_address
from hypesignal.exec.positions import PositionStore
from hypesignal.types import PositionSummary, PositionsSummary

logger = logging.getLogger("hypesignal.reconcile")


def _hours_since(ts: datetime, now: datetime) -> float:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (now - ts).total_seconds() / 3600.0


class ReconciliationService:
    """Merges the local ledger with live exchange positions for status reporting."""

    def __init__(self, store: PositionStore, cfg: Optional[Settings] = None, info: Optional[InfoClient] = None):
        self.store = store
        self.cfg = cfg or settings
        self._info = info
        self._info_lock = asyncio.Lock()
        self._address: Optional[str] = None
        self._address_loaded = False

    async def _info_client(self) -> InfoClient:
        if self._info is None:
            async with self._info_lock:
                if self._info is None:
                    self._info = InfoClient(self.cfg.api_url(), timeout=self.cfg.exchange_timeout_sec)
        return self._info

    def _account_address(self) -> Optional[str]:
        if not self._address_loaded:
            self._address = derive_address(self.cfg.hyperliquid_private_key)
            self._address_loaded = True
        return self._address

    async def get_market_prices(self, tokens: Iterable[str]) -> Dict[str, float]:
        symbols = sorted({t.upper() for t in tokens})
        if not symbols:
            return {}
        try:
            info = await self._info_client()
            mids = await call_with_timeout(info.all_mids, timeout=self.cfg.exchange_timeout_sec)
        except Exception as e:
            logger.error(f"[sync] error fetching market prices: {e}")
            return {}
        prices: Dict[str, float] = {}
        for sym in symbols:
            px = (mids or {}).get(sym)
            if px is None:
                continue
            try:
                prices[sym] = float(px)
            except (TypeError, ValueError):
                continue
        return prices

    async def get_remote_positions(self, existing: Set[str]) -> List[PositionSummary]:
        address = self._account_address()
        if not address:
            return []
        try:
            info = await self._info_client()
            sizes = await call_with_timeout(
                info.open_position_sizes, address, timeout=self.cfg.exchange_timeout_sec
            )
        except Exception as e:
            logger.error(f"[sync] error syncing Hyperliquid positions: {e}")
            return []

        synced = []
        for token, size in sizes.items():
            if token in existing:
                continue
            existing.add(token)
            synced.append(
                PositionSummary(
                    id=f"hyperliquid-{token}",
                    token=token,
                    influencer="synced",
                    amount=size,
                    source="synced",
                )
            )
        return synced

    async def get_positions_summary(self) -> PositionsSummary:
        # Local ledger failures are fatal; remote/price failures degrade to empty.
        holdings = self.store.get_holding_positions()
        now = datetime.now(timezone.utc)

        local = [
            PositionSummary(
                id=p.id,
                token=p.token.upper(),
                influencer=p.influencer,
                purchase_time=p.purchase_time,
                amount=p.amount,
                hours_held=_hours_since(p.purchase_time, now),
                profile_image_url=p.profile_image_url,
                source="local",
            )
            for p in holdings
        ]
        tokens = {p.token for p in local}
        synced = await self.get_remote_positions(tokens)
        combined = local + synced

        prices = await self.get_market_prices(p.token for p in combined)
        for p in combined:
            p.market_price_usd = prices.get(p.token)

        return PositionsSummary(
            total_positions=len(combined),
            total_value=sum(p.amount or 0 for p in combined),
            positions=combined,
        )
