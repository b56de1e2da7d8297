from hypesignal.config.settings import settings

DEFAULT_INFLUENCERS = [
    "blknoiz06",
    "dabit3",
    "trading_axe",
    "notthreadguy",
    "gwartygwart",
    "tradermayne",
    "loomdart",
    "CryptoHayes",
    "divine_economy",
]


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip().lstrip("@") for v in value.split(",") if v.strip()]


def tracked_accounts() -> list[str]:
    """Handles to poll; TWITTER_ACCOUNTS overrides the built-in list."""
    return _parse_csv(settings.twitter_accounts) or list(DEFAULT_INFLUENCERS)
