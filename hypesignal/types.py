from datetime import datetime
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator

Sentiment = Literal["bullish", "bearish", "neutral"]
MentionType = Literal["cashtag", "ticker", "project", "narrative", "other"]
PositionStatus = Literal["holding", "sold", "failed"]
PositionSource = Literal["local", "synced"]


class RawPost(BaseModel):
    id: str
    author_handle: str
    text: str
    created_at: datetime
    profile_image_url: Optional[str] = None


class TokenSignal(BaseModel):
    token: str
    sentiment: Sentiment = "neutral"
    conviction: int = Field(0, ge=0, le=100)
    reasoning: str = ""
    evidence: str = ""
    mention_type: MentionType = "other"

    @field_validator("token")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class SentimentResult(BaseModel):
    sentiment: Sentiment = "neutral"
    confidence: int = Field(0, ge=0, le=100)
    reasoning: str = ""
    is_positive: bool = False
    tokens: List[str] = Field(default_factory=list)


class TradeDecision(BaseModel):
    should_trade: bool
    reason: str
    tokens: List[str] = Field(default_factory=list)
    sentiment_data: Optional[SentimentResult] = None


class MarketMetadata(BaseModel):
    symbol: str
    asset_id: int
    size_decimals: int
    info_symbol: str
    is_spot: bool


class TradingPosition(BaseModel):
    id: str
    token: str
    amount: float
    purchase_price: float
    purchase_time: datetime
    sell_time: Optional[datetime] = None
    sell_price: Optional[float] = None
    profit: Optional[float] = None
    tweet: str
    influencer: str
    profile_image_url: Optional[str] = None
    status: PositionStatus = "holding"

    @field_validator("token")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class PositionSummary(BaseModel):
    id: str
    token: str
    influencer: Optional[str] = None
    purchase_time: Optional[datetime] = None
    amount: float
    hours_held: Optional[float] = None
    market_price_usd: Optional[float] = None
    profile_image_url: Optional[str] = None
    source: PositionSource


class PositionsSummary(BaseModel):
    total_positions: int
    total_value: float
    positions: List[PositionSummary] = Field(default_factory=list)


# --- Order status variants returned by the exchange ---


class FilledStatus(BaseModel):
    kind: Literal["filled"] = "filled"
    total_sz: float
    avg_px: float
    oid: Optional[int] = None


class RestingStatus(BaseModel):
    kind: Literal["resting"] = "resting"
    oid: Optional[int] = None


class ErrorStatus(BaseModel):
    kind: Literal["error"] = "error"
    error: str


OrderStatus = Union[FilledStatus, RestingStatus, ErrorStatus]


def parse_order_status(raw: object) -> OrderStatus:
    """Map one entry of ``response.data.statuses`` onto a tagged variant."""
    if not isinstance(raw, dict):
        return ErrorStatus(error=f"unrecognised order status: {raw!r}")
    if "error" in raw:
        return ErrorStatus(error=str(raw["error"]))
    if "filled" in raw:
        f = raw["filled"] or {}
        return FilledStatus(
            total_sz=float(f.get("totalSz", 0) or 0),
            avg_px=float(f.get("avgPx", 0) or 0),
            oid=f.get("oid"),
        )
    if "resting" in raw:
        return RestingStatus(oid=(raw["resting"] or {}).get("oid"))
    return ErrorStatus(error=f"unrecognised order status: {raw!r}")
