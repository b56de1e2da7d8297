from decimal import Decimal, ROUND_DOWN
from typing import Optional
from urllib.parse import quote

MAX_DECIMALS_PERP = 6
MAX_DECIMALS_SPOT = 8


def _plain(d: Decimal) -> str:
    text = format(d.normalize(), "f")
    return text if text not in ("-0", "") else "0"


def format_price(price: float, sz_decimals: int, is_perp: bool = True) -> str:
    """
    Hyperliquid tick rules: at most 5 significant figures and at most
    (6 for perps, 8 for spot) - szDecimals decimals. Integer prices are always valid.
    """
    if price > 100_000:
        return str(round(price))
    max_decimals = max((MAX_DECIMALS_PERP if is_perp else MAX_DECIMALS_SPOT) - sz_decimals, 0)
    rounded = round(float(f"{price:.5g}"), max_decimals)
    return _plain(Decimal(str(rounded)))


def format_size(size: float, sz_decimals: int) -> str:
    """Truncate to the market's lot precision."""
    d = Decimal(str(size)).quantize(Decimal(1).scaleb(-sz_decimals), rounding=ROUND_DOWN)
    return _plain(d)


def explorer_url(base: str, symbol: str, order_id: Optional[int] = None) -> Optional[str]:
    base = (base or "").rstrip("/")
    if not base:
        return None
    encoded = quote(symbol, safe="") if "/" in symbol else symbol
    if order_id:
        return f"{base}/{encoded}?orderId={order_id}"
    return f"{base}/{encoded}"


def amount_label(amount: float, symbol: str, decimals: int) -> str:
    return f"{amount:.{min(decimals, 6)}f} {symbol}"
