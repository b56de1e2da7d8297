import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol

from hypesignal.config import settings, Settings, TradingConfigError
from hypesignal.exchange.hyperliquid import ExchangeError
from hypesignal.exec.positions import PositionStore
from hypesignal.exec.trading import ExecutionEngine, TradeExecutionError, TradeRequest
from hypesignal.ingest.stream import TweetStream, tweet_stream
from hypesignal.strategy.decision import decide
from hypesignal.strategy.sentiment import SignalExtractor
from hypesignal.types import RawPost, TradeDecision

logger = logging.getLogger("hypesignal.pipeline")


class PostSource(Protocol):
    async def poll(self, limit: int = 3) -> List[RawPost]: ...


class Pipeline:
    """post -> decision -> execution, one post at a time or a polling loop."""

    def __init__(
        self,
        extractor: SignalExtractor,
        engine: ExecutionEngine,
        store: PositionStore,
        stream: Optional[TweetStream] = None,
        cfg: Optional[Settings] = None,
    ):
        self.extractor = extractor
        self.engine = engine
        self.store = store
        self.stream = stream or tweet_stream
        self.cfg = cfg or settings
        self.mode = "stopped"
        self.start_time: Optional[datetime] = None
        # posts whose execution failed; re-offered on every poll until they age out
        self.retry_queue: Dict[str, RawPost] = {}

    @property
    def is_running(self) -> bool:
        return self.mode != "stopped"

    def _too_old(self, post: RawPost) -> bool:
        created = post.created_at if post.created_at.tzinfo else post.created_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - created > timedelta(hours=self.cfg.tweet_max_age_hours)

    async def process_post(self, post: RawPost) -> Optional[TradeDecision]:
        if self.store.is_tweet_processed(post.id):
            logger.debug(f"[pipeline] {post.id} already processed")
            self.retry_queue.pop(post.id, None)
            return None
        if self._too_old(post):
            logger.info(f"[pipeline] {post.id} older than {self.cfg.tweet_max_age_hours}h, skipping")
            self.store.mark_tweet_as_processed(post.id)
            self.retry_queue.pop(post.id, None)
            return None

        seeds = await self.extractor.extract_token_mentions(post.text)
        decision = await decide(self.extractor, post.text, seeds)
        if not decision.should_trade:
            self.store.mark_tweet_as_processed(post.id)
            return decision

        failed = False
        for token in decision.tokens:
            request = TradeRequest(
                token=token,
                tweet=post.text,
                influencer=post.author_handle,
                tweet_id=post.id,
                profile_image_url=post.profile_image_url,
            )
            try:
                await self.engine.execute(request)
            except TradingConfigError:
                raise
            except (TradeExecutionError, ExchangeError) as e:
                # left unmarked; the next poll re-offers it until it ages out
                logger.error(f"[pipeline] trade for {token} from {post.id} failed: {e}")
                failed = True
            except Exception as e:
                logger.exception(f"[pipeline] unexpected error trading {token} from {post.id}: {e}")
                failed = True

        if failed and not self.store.is_tweet_processed(post.id):
            self.retry_queue[post.id] = post
        else:
            self.retry_queue.pop(post.id, None)
        return decision

    async def poll_once(self, source: PostSource, limit: int = 3) -> List[Optional[TradeDecision]]:
        fresh = await source.poll(limit=limit)
        for p in fresh:
            self.stream.add(p)
        posts = list(self.retry_queue.values()) + [p for p in fresh if p.id not in self.retry_queue]
        return list(await asyncio.gather(*(self.process_post(p) for p in posts)))

    async def run(self, source: PostSource, poll_interval: float = 60.0, max_polls: int = 0) -> None:
        self.mode = "polling"
        self.start_time = datetime.now(timezone.utc)
        polls = 0
        try:
            while True:
                await self.poll_once(source)
                polls += 1
                if max_polls and polls >= max_polls:
                    return
                await asyncio.sleep(poll_interval)
        finally:
            self.mode = "stopped"
