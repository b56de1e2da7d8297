# Deterministic fills for TESTING=true runs; no exchange access.

MOCK_PRICES = {
    "ETH": 2500.0,
    "SOL": 100.0,
    "ADA": 0.45,
    "DOT": 7.2,
    "LINK": 15.0,
    "UNI": 6.5,
    "AAVE": 95.0,
    "MATIC": 0.85,
    "AVAX": 37.0,
    "EIGEN": 3.85,
    "ENA": 0.92,
    "BTC": 60_000.0,
}

MAX_SIMULATED_NOTIONAL_USD = 1.0


def mock_price(symbol: str) -> float:
    return MOCK_PRICES.get(symbol.upper(), 1.0)


def simulate_fill(symbol: str, max_trade_usd: float) -> dict:
    price = mock_price(symbol)
    notional = min(MAX_SIMULATED_NOTIONAL_USD, max_trade_usd)
    return {
        "ok": True,
        "filled": True,
        "symbol": symbol.upper(),
        "price": price,
        "amount": notional / price,
        "notional_usd": notional,
    }
