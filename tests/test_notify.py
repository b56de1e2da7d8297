from hypesignal.notify import Notifier


def test_recent_is_newest_first_and_bounded():
    n = Notifier(maxlen=2)
    n.info("a", "first")
    n.info("b", "second")
    n.info("c", "third")
    items = n.recent()
    assert [i["title"] for i in items] == ["c", "b"]
    assert n.recent(limit=1)[0]["title"] == "c"


def test_trade_buy_payload():
    n = Notifier()
    n.trade_buy("SOL", "0.2985 SOL", "alpha", "100.4", order_id="7", explorer_url="https://x/SOL?orderId=7")
    item = n.recent()[0]
    assert item["type"] == "trade_buy"
    assert item["data"]["orderId"] == "7"
    assert item["data"]["explorerUrl"].endswith("orderId=7")
    assert "@alpha" in item["message"]
    n.clear()
    assert n.recent() == []


def test_push_never_raises():
    n = Notifier()
    n.info("bad data", "x", data=[1, 2, 3])  # not a mapping
    assert n.recent() == []
