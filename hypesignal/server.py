from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse

from hypesignal.exec.positions import PositionStore
from hypesignal.exec.reconcile import ReconciliationService
from hypesignal.ingest.stream import TweetStream, tweet_stream
from hypesignal.notify import Notifier, notifier
from hypesignal.pipeline import Pipeline

app = FastAPI(title="HypeSignal Status")

# set by the process that runs the pipeline alongside the server
running_pipeline: Optional[Pipeline] = None


@lru_cache
def get_store() -> PositionStore:
    return PositionStore()


def get_reconciler(store: PositionStore = Depends(get_store)) -> ReconciliationService:
    return ReconciliationService(store)


def get_stream() -> TweetStream:
    return tweet_stream


def get_notifier() -> Notifier:
    return notifier


@app.get("/status")
async def status(
    store: PositionStore = Depends(get_store),
    reconciler: ReconciliationService = Depends(get_reconciler),
):
    summary = await reconciler.get_positions_summary()
    actionable = [
        {
            "id": p.id,
            "token": p.token,
            "tweet": p.tweet,
            "influencer": p.influencer,
            "purchaseTime": p.purchase_time.isoformat(),
            "amount": p.amount,
            "status": p.status,
            "profileImageUrl": p.profile_image_url,
        }
        for p in store.get_holding_positions()
    ]
    pipeline = running_pipeline
    body: Dict[str, Any] = {
        "isRunning": bool(pipeline and pipeline.is_running),
        "mode": pipeline.mode if pipeline else "stopped",
        "positions": summary.model_dump(mode="json"),
        "actionableTweets": actionable,
        "startTime": pipeline.start_time.isoformat() if pipeline and pipeline.start_time else None,
    }
    return JSONResponse(body, headers={"Cache-Control": "no-store"})


@app.get("/tweets")
async def tweets(
    since: Optional[int] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    stream: TweetStream = Depends(get_stream),
):
    items = stream.get_recent(limit=limit, since=since)
    cursor = items[0]["sequence"] if items else (since or stream.latest_sequence)
    return JSONResponse({"tweets": items, "cursor": cursor}, headers={"Cache-Control": "no-store"})


@app.get("/notifications")
async def notifications(limit: int = Query(default=50, ge=1, le=200), feed: Notifier = Depends(get_notifier)):
    return {"notifications": feed.recent(limit)}
