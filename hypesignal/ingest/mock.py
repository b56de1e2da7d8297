import logging
from datetime import datetime, timezone
from typing import Generator, List

from hypesignal.types import RawPost

logger = logging.getLogger("hypesignal.mock")


def stream_mock_posts() -> Generator[RawPost, None, None]:
    """Fake posts for exercising the pipeline without a post source."""
    logger.info("[mock] starting mock post stream")

    sample = [
        RawPost(
            id="mock-1",
            author_handle="alpha",
            text="Loading up more $SOL here, chart looks strong and going higher",
            created_at=datetime.now(timezone.utc),
        ),
        RawPost(
            id="mock-2",
            author_handle="beta",
            text="Market feels heavy today, staying flat",
            created_at=datetime.now(timezone.utc),
        ),
    ]

    for post in sample:
        logger.debug(f"[mock] captured post: {post.model_dump()}")
        yield post


class MockSource:
    """Post source that hands out the mock posts on the first poll only."""

    def __init__(self):
        self._served = False

    async def poll(self, limit: int = 3) -> List[RawPost]:
        if self._served:
            return []
        self._served = True
        return list(stream_mock_posts())
