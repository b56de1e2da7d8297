import pytest
from hypesignal.exchange.formatting import amount_label, explorer_url, format_price, format_size
from hypesignal.exec.trading import TradeExecutionError, plan_order
from hypesignal.types import MarketMetadata


def _market(sz_decimals=4, is_spot=False, symbol="SOL"):
    return MarketMetadata(symbol=symbol, asset_id=5, size_decimals=sz_decimals, info_symbol=symbol, is_spot=is_spot)


def test_format_price_significant_figures_and_decimals():
    assert format_price(100.5, 4) == "100.5"
    assert format_price(1234.5678, 1) == "1234.6"
    assert format_price(0.123456789, 0) == "0.12346"
    assert format_price(0.123456789, 4) == "0.12"
    assert format_price(0.123456789, 4, is_perp=False) == "0.1235"
    assert format_price(123456.7, 2) == "123457"


def test_format_size_truncates():
    assert format_size(0.298507, 4) == "0.2985"
    assert format_size(1.99999, 2) == "1.99"
    assert format_size(5.7, 0) == "5"
    assert format_size(0.00009, 4) == "0"


def test_plan_order_example():
    plan = plan_order(100.0, _market(4), 30.0, 50)
    assert plan["limit_price"] == "100.5"
    assert plan["size"] == "0.2985"


def test_plan_order_below_lot_size():
    with pytest.raises(TradeExecutionError):
        plan_order(100.0, _market(0), 30.0, 50)


def test_explorer_url():
    assert explorer_url("https://app.hyperliquid.xyz/exchange/", "SOL", 42) == "https://app.hyperliquid.xyz/exchange/SOL?orderId=42"
    assert explorer_url("https://app.hyperliquid.xyz/exchange", "HYPE/USDC") == "https://app.hyperliquid.xyz/exchange/HYPE%2FUSDC"
    assert explorer_url("", "SOL") is None


def test_amount_label():
    assert amount_label(0.2985, "SOL", 4) == "0.2985 SOL"
    assert amount_label(1.0, "ETH", 9) == "1.000000 ETH"


def test_plan_order_rejects_price_that_rounds_to_zero():
    with pytest.raises(TradeExecutionError, match="Limit price"):
        plan_order(0.000004, _market(5), 30.0, 50)
