import logging
import time
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger("hypesignal.notify")

MAX_NOTIFICATIONS = 200


class Notifier:
    """In-memory toast feed read by the dashboard. Never raises into callers."""

    def __init__(self, maxlen: int = MAX_NOTIFICATIONS):
        self._items: Deque[Dict[str, Any]] = deque(maxlen=maxlen)

    def _push(self, kind: str, title: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        try:
            self._items.appendleft(
                {
                    "id": uuid.uuid4().hex,
                    "type": kind,
                    "title": title,
                    "message": message,
                    "data": dict(data or {}),
                    "ts": time.time(),
                }
            )
            logger.info(f"[notify] {kind}: {title} - {message}")
        except Exception as e:
            logger.warning(f"[notify] dropped {kind} notification: {e}")

    def info(self, title: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._push("info", title, message, data)

    def trade_buy(
        self,
        token: str,
        amount: str,
        influencer: str,
        price: str,
        order_id: Optional[str] = None,
        explorer_url: Optional[str] = None,
    ) -> None:
        self._push(
            "trade_buy",
            f"Bought {token}",
            f"{amount} @ ${price} after @{influencer}",
            {
                "token": token,
                "amount": amount,
                "influencer": influencer,
                "price": price,
                "orderId": order_id,
                "explorerUrl": explorer_url,
            },
        )

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(self._items)[:limit]

    def clear(self) -> None:
        self._items.clear()


notifier = Notifier()
