import asyncio
import logging
from typing import List, Optional

from hypesignal.strategy.sentiment import SignalExtractor
from hypesignal.types import SentimentResult, TokenSignal, TradeDecision

logger = logging.getLogger("hypesignal.decision")

REASON_DELIMITER = " | "


def _strongest(signals: List[TokenSignal]) -> Optional[TokenSignal]:
    best = None
    for s in signals:
        if best is None or s.conviction > best.conviction:
            best = s
    return best


def evaluate(
    sentiment: SentimentResult,
    signals: List[TokenSignal],
    minimum_confidence: int,
) -> TradeDecision:
    """Apply the trade policy to already-extracted oracle output."""
    if not signals:
        return TradeDecision(
            should_trade=False,
            reason="No confident token mentions were found in the tweet",
            sentiment_data=sentiment,
        )

    bullish = [
        s for s in signals if s.sentiment == "bullish" and s.conviction >= minimum_confidence
    ]
    if not bullish:
        best = _strongest(signals)
        if best is not None:
            reason = (
                f"No bullish conviction. Strongest signal was {best.token} "
                f"({best.sentiment} {best.conviction}): {best.reasoning}"
            )
        else:
            reason = "No bullish conviction across tokens"
        return TradeDecision(should_trade=False, reason=reason, sentiment_data=sentiment)

    overall_positive = sentiment.is_positive and sentiment.sentiment != "bearish"
    # confidence 0 means the whole-post pass fell back; token signals still stand
    override = not overall_positive and sentiment.confidence == 0

    if not overall_positive and not override:
        return TradeDecision(
            should_trade=False,
            reason=(
                f"{sentiment.sentiment.upper()} sentiment ({sentiment.confidence}% confidence): "
                f"{sentiment.reasoning}"
            ),
            sentiment_data=sentiment,
        )

    tokens: List[str] = []
    for s in bullish:
        if s.token not in tokens:
            tokens.append(s.token)
    details = REASON_DELIMITER.join(f"{s.token} ({s.conviction}%): {s.reasoning}" for s in bullish)
    return TradeDecision(
        should_trade=True,
        reason=f"Bullish signals: {details}",
        tokens=tokens,
        sentiment_data=sentiment,
    )


async def decide(extractor: SignalExtractor, text: str, seed_tokens: List[str]) -> TradeDecision:
    sentiment, signals = await asyncio.gather(
        extractor.analyze_sentiment(text),
        extractor.derive_token_signals(text, seed_tokens),
    )
    decision = evaluate(sentiment, signals, extractor.minimum_confidence)
    logger.info(
        f"[decision] trade={decision.should_trade} tokens={decision.tokens} reason={decision.reason}"
    )
    return decision
