import threading
from typing import Any, Dict, List, Optional

from hypesignal.types import RawPost

MAX_STREAM_TWEETS = 500


class TweetStream:
    """Most-recent-first buffer of seen posts with a sequence cursor for pollers."""

    def __init__(self, maxlen: int = MAX_STREAM_TWEETS):
        self.maxlen = maxlen
        self._items: List[Dict[str, Any]] = []
        self._sequence = 0
        self._lock = threading.Lock()

    def add(self, post: RawPost) -> Dict[str, Any]:
        with self._lock:
            self._sequence += 1
            entry = {
                "id": post.id,
                "influencer": post.author_handle,
                "tweet": post.text,
                "createdAt": post.created_at.isoformat(),
                "timestamp": int(post.created_at.timestamp() * 1000),
                "sequence": self._sequence,
            }
            self._items = [entry] + [t for t in self._items if t["id"] != post.id]
            del self._items[self.maxlen:]
            return entry

    def get_recent(self, limit: int = 50, since: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            items = [t for t in self._items if t["sequence"] > since] if since else list(self._items)
        return items[:limit]

    @property
    def latest_sequence(self) -> int:
        return self._sequence


tweet_stream = TweetStream()
