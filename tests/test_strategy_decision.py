import pytest
from hypesignal.strategy.decision import decide, evaluate
from hypesignal.types import SentimentResult, TokenSignal


def _sent(sentiment="bullish", confidence=80, positive=True):
    return SentimentResult(sentiment=sentiment, confidence=confidence, reasoning="overall", is_positive=positive)


def _sig(token, sentiment="bullish", conviction=85, reasoning="why"):
    return TokenSignal(token=token, sentiment=sentiment, conviction=conviction, reasoning=reasoning)


def test_no_signals_means_no_trade():
    d = evaluate(_sent(), [], 70)
    assert d.should_trade is False
    assert d.tokens == []
    assert d.reason == "No confident token mentions were found in the tweet"


def test_signals_below_threshold_report_strongest():
    d = evaluate(_sent(), [_sig("SOL", conviction=60, reasoning="meh"), _sig("ETH", "bearish", 65, "weak")], 70)
    assert d.should_trade is False
    assert d.tokens == []
    assert d.reason == "No bullish conviction. Strongest signal was ETH (bearish 65): weak"


def test_bearish_overall_blocks_trade():
    d = evaluate(_sent("bearish", 75, False), [_sig("SOL")], 70)
    assert d.should_trade is False
    assert d.reason == "BEARISH sentiment (75% confidence): overall"


def test_neutral_fallback_is_overridden_by_token_signals():
    d = evaluate(_sent("neutral", 0, False), [_sig("SOL", conviction=90, reasoning="breakout")], 70)
    assert d.should_trade is True
    assert d.tokens == ["SOL"]
    assert d.reason == "Bullish signals: SOL (90%): breakout"


def test_low_confidence_neutral_is_not_overridden():
    d = evaluate(_sent("neutral", 40, False), [_sig("SOL")], 70)
    assert d.should_trade is False


def test_bullish_tokens_deduplicated_in_order():
    signals = [_sig("SOL", reasoning="a"), _sig("ETH", conviction=70, reasoning="b"), _sig("SOL", conviction=95, reasoning="c"), _sig("ENA", conviction=69)]
    d = evaluate(_sent(), signals, 70)
    assert d.tokens == ["SOL", "ETH"]
    assert d.reason == "Bullish signals: SOL (85%): a | ETH (70%): b | SOL (95%): c"
    assert d.sentiment_data.confidence == 80


class StubExtractor:
    minimum_confidence = 70

    def __init__(self):
        self.seen = []

    async def analyze_sentiment(self, text):
        return _sent()

    async def derive_token_signals(self, text, seeds):
        self.seen.append(seeds)
        return [_sig(s) for s in seeds]


@pytest.mark.asyncio
async def test_decide_runs_both_passes():
    ex = StubExtractor()
    d = await decide(ex, "buy $SOL", ["SOL"])
    assert d.should_trade is True and d.tokens == ["SOL"]
    assert ex.seen == [["SOL"]]


def test_strongest_signal_tie_names_first_encountered():
    d = evaluate(_sent(), [_sig("SOL", "neutral", 60, "first"), _sig("ETH", "bullish", 60, "second")], 70)
    assert d.should_trade is False
    assert d.reason == "No bullish conviction. Strongest signal was SOL (neutral 60): first"
