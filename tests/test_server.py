from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest
from hypesignal import server
from hypesignal.config.settings import Settings
from hypesignal.exec.positions import PositionStore
from hypesignal.exec.reconcile import ReconciliationService
from hypesignal.ingest.stream import TweetStream
from hypesignal.notify import Notifier
from hypesignal.types import RawPost, TradingPosition


class FakeInfo:
    def open_position_sizes(self, user):
        return {}

    def all_mids(self):
        return {"SOL": "101"}


@pytest.fixture
def wired(tmp_path):
    store = PositionStore(tmp_path)
    stream = TweetStream()
    feed = Notifier()
    server.app.dependency_overrides[server.get_store] = lambda: store
    server.app.dependency_overrides[server.get_reconciler] = lambda: ReconciliationService(
        store, Settings(hyperliquid_private_key=None), info=FakeInfo()
    )
    server.app.dependency_overrides[server.get_stream] = lambda: stream
    server.app.dependency_overrides[server.get_notifier] = lambda: feed
    yield SimpleNamespace(store=store, stream=stream, feed=feed)
    server.app.dependency_overrides.clear()


async def _get(path):
    transport = httpx.ASGITransport(app=server.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.get(path)


@pytest.mark.asyncio
async def test_status_when_stopped(wired, monkeypatch):
    monkeypatch.setattr(server, "running_pipeline", None)
    resp = await _get("/status")
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "no-store"
    body = resp.json()
    assert body["isRunning"] is False
    assert body["mode"] == "stopped"
    assert body["positions"]["total_positions"] == 0
    assert body["actionableTweets"] == []
    assert body["startTime"] is None


@pytest.mark.asyncio
async def test_status_reports_positions_and_pipeline(wired, monkeypatch):
    wired.store.save_position(
        TradingPosition(
            id="p1",
            token="SOL",
            amount=0.3,
            purchase_price=100.0,
            purchase_time=datetime.now(timezone.utc),
            tweet="buy $SOL",
            influencer="alpha",
        )
    )
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    monkeypatch.setattr(server, "running_pipeline", SimpleNamespace(is_running=True, mode="polling", start_time=started))

    body = (await _get("/status")).json()
    assert body["isRunning"] is True
    assert body["mode"] == "polling"
    assert body["startTime"] == started.isoformat()
    [pos] = body["positions"]["positions"]
    assert (pos["token"], pos["source"], pos["market_price_usd"]) == ("SOL", "local", 101.0)
    assert body["actionableTweets"][0]["influencer"] == "alpha"


@pytest.mark.asyncio
async def test_tweets_cursor(wired):
    for i in range(3):
        wired.stream.add(RawPost(id=str(i), author_handle="alpha", text="t", created_at=datetime.now(timezone.utc)))
    body = (await _get("/tweets?since=1&limit=10")).json()
    assert [t["sequence"] for t in body["tweets"]] == [3, 2]
    assert body["cursor"] == 3

    body = (await _get("/tweets?since=3")).json()
    assert body == {"tweets": [], "cursor": 3}


@pytest.mark.asyncio
async def test_notifications(wired):
    wired.feed.info("Executing Hyperliquid Order", "Buying SOL")
    body = (await _get("/notifications")).json()
    assert body["notifications"][0]["title"] == "Executing Hyperliquid Order"
