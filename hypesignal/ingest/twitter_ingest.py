import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from twikit import Client

from hypesignal.types import RawPost

logger = logging.getLogger("hypesignal.twitter")

COOKIES_FILE = "twitter_cookies.json"


def _created_at(tweet) -> datetime:
    dt = getattr(tweet, "created_at_datetime", None)
    if isinstance(dt, datetime):
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


class TwitterSource:
    """
    Polls tracked accounts through an authenticated twikit session.
    You must run ``client.login()`` once manually and save cookies to twitter_cookies.json.
    """

    def __init__(self, accounts: List[str], client: Optional[Client] = None, cookies_file: str = COOKIES_FILE):
        self.accounts = accounts
        self.client = client or Client("en-US")
        self.cookies_file = cookies_file
        self.last_seen: Dict[str, str] = {}
        self._logged_in = False

    def ensure_login(self) -> None:
        if self._logged_in:
            return
        try:
            self.client.load_cookies(self.cookies_file)
        except Exception:
            logger.error(f"[twitter] missing or invalid cookies in {self.cookies_file}")
            raise
        self._logged_in = True
        logger.info("[twitter] loaded cookies for authenticated session")

    async def fetch_user_posts(self, handle: str, limit: int = 5) -> List[RawPost]:
        user = await self.client.get_user_by_screen_name(handle)
        tweets = await user.get_tweets("Tweets", count=limit)
        last = self.last_seen.get(handle)
        posts = []
        for t in tweets:
            if last is not None and int(t.id) <= int(last):
                continue
            posts.append(
                RawPost(
                    id=str(t.id),
                    author_handle=handle,
                    text=t.text or "",
                    created_at=_created_at(t),
                    profile_image_url=getattr(user, "profile_image_url", None),
                )
            )
        if posts:
            self.last_seen[handle] = max((p.id for p in posts), key=int)
        return posts

    async def poll(self, limit: int = 3) -> List[RawPost]:
        self.ensure_login()
        out: List[RawPost] = []
        for handle in self.accounts:
            try:
                out.extend(await self.fetch_user_posts(handle, limit=limit))
            except Exception as e:
                logger.error(f"[twitter] error fetching tweets for {handle}: {e}")
        return out
