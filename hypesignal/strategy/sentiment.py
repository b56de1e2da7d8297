import json
import logging
import re
from typing import List, Optional

from hypesignal.config import settings
from hypesignal.llm.oracle import Oracle, OracleError
from hypesignal.llm.parsing import (
    fallback_sentiment,
    fallback_token_signals,
    parse_sentiment_payload,
    parse_signals_payload,
    parse_string_list,
)
from hypesignal.types import SentimentResult, TokenSignal

logger = logging.getLogger("hypesignal.sentiment")

CASHTAG_PATTERN = re.compile(r"\$([A-Z]{2,10})\b")

GENERIC_PROJECT_KEYWORDS = {
    "crypto",
    "cryptocurrency",
    "cryptocurrencies",
    "market",
    "markets",
    "token",
    "tokens",
    "project",
    "projects",
    "defi",
    "blockchain",
    "web3",
}

EXCLUDED_TICKERS = {"BTC", "BITCOIN"}

SENTIMENT_PROMPT = """You are a cryptocurrency sentiment analysis expert. Analyze tweets for their sentiment regarding cryptocurrencies and trading opportunities.

Rules:
1. Classify sentiment as: "bullish", "bearish", or "neutral"
2. Provide confidence score (0-100)
3. Give brief reasoning (1-2 sentences)
4. Focus on trading implications, not general crypto discussion
5. IMPORTANT: Inside JSON string values, never use raw double quotes. Replace any literal quotes with single quotes.

Response format (JSON):
{
  "sentiment": "bullish|bearish|neutral",
  "confidence": 85,
  "reasoning": "Brief explanation of why this sentiment was chosen"
}"""

PROJECTS_PROMPT = """You are a cryptocurrency and DeFi expert. Extract all cryptocurrency protocols, projects, tokens, and chains mentioned in text.

Rules:
1. Include any crypto-related projects (DeFi, Layer 1s, Layer 2s, tokens, protocols, etc.)
2. Include company names building crypto products (e.g., Coinbase, Circle, etc.)
3. Use the actual project names as mentioned in the text
4. Don't include generic terms like "crypto", "blockchain", "DeFi"
5. Be comprehensive - include lesser-known projects too

Response format (JSON array of strings):
["ProjectName1", "ProjectName2", ...]

Examples:
- "EigenCloud" -> ["EigenCloud"]
- "Bitcoin and Ethereum" -> ["Bitcoin", "Ethereum"]
- "Uniswap V3 on Arbitrum" -> ["Uniswap", "Arbitrum"]
- "AAVE lending protocol" -> ["AAVE"]"""

TICKERS_PROMPT = """You are a cryptocurrency expert. Map project names to their primary trading ticker symbols.

Rules:
1. Return only ticker symbols that are actively traded on major exchanges
2. Use the most common/primary ticker (e.g., WETH -> ETH, USDC -> USDC)
3. Skip projects without tradeable tokens
4. Use uppercase ticker symbols
5. For projects with multiple tokens, return the main one

Response format (JSON array of strings):
["ETH", "SOL", "EIGEN"]

Common mappings:
- Ethereum -> ETH
- EigenLayer -> EIGEN
- Uniswap -> UNI
- Chainlink -> LINK
- Solana -> SOL

IMPORTANT: Do NOT return BTC or Bitcoin - skip Bitcoin-related projects."""

SIGNALS_PROMPT = """You are a meticulous crypto trading analyst. Read the tweet and extract only tokens/projects that the author is explicitly bullish on. Ignore vague hype and generic market commentary.

Requirements:
1. A token/project must be clearly referenced (cashtag, ticker, or full name).
2. Only include the token if the sentiment is bullish with supporting language (e.g., "buy", "going higher", "strong", "accumulating"). If sentiment is mixed or unclear, classify as neutral or omit.
3. Output JSON matching:
{
  "signals": [
    {
      "token": "SOL",
      "sentiment": "bullish|bearish|neutral",
      "conviction": 0-100,
      "reasoning": "short explanation referencing the tweet",
      "evidence": "exact quote or paraphrase from tweet",
      "mentionType": "cashtag|ticker|project|narrative"
    }
  ],
  "notes": "brief summary"
}
4. Use uppercase ticker symbols. If only the project name is given, map it to the most common ticker (e.g., Solana -> SOL).
5. Exclude Bitcoin entirely (return no signal for BTC/Bitcoin)."""


def extract_cashtags(text: str) -> List[str]:
    """Cashtags in order of appearance, de-duplicated. No network needed."""
    seen: List[str] = []
    for m in CASHTAG_PATTERN.finditer(text or ""):
        if m.group(1) not in seen:
            seen.append(m.group(1))
    return seen


def _dedupe(tokens) -> List[str]:
    out: List[str] = []
    for t in tokens:
        t = t.strip().upper()
        if t and t not in out:
            out.append(t)
    return out


class SignalExtractor:
    """Derives per-post and per-token sentiment using the oracle."""

    def __init__(self, oracle: Optional[Oracle], minimum_confidence: Optional[int] = None):
        self.oracle = oracle
        self.minimum_confidence = (
            settings.minimum_confidence if minimum_confidence is None else minimum_confidence
        )

    async def _infer(self, system: str, user: str, max_tokens: int, temperature: float) -> str:
        if self.oracle is None:
            raise OracleError("no oracle configured")
        return await self.oracle.infer(system, user, max_tokens=max_tokens, temperature=temperature)

    async def extract_crypto_projects(self, text: str) -> List[str]:
        try:
            raw = await self._infer(
                PROJECTS_PROMPT, f'Extract crypto projects from: "{text}"', 300, 0.1
            )
            logger.debug(f"[projects] raw oracle response: {raw!r}")
            projects = parse_string_list(raw)
        except Exception as e:
            logger.error(f"[projects] extraction failed, returning none: {e}")
            return []
        logger.info(f"[projects] found {projects or 'none'}")
        return projects

    async def map_projects_to_tickers(self, projects: List[str]) -> List[str]:
        filtered = [p for p in projects if p.lower() not in GENERIC_PROJECT_KEYWORDS]
        if not filtered:
            return []
        try:
            raw = await self._infer(
                TICKERS_PROMPT, f"Map these projects to tickers: {json.dumps(filtered)}", 200, 0.1
            )
            logger.debug(f"[tickers] raw oracle response: {raw!r}")
            tickers = parse_string_list(raw, allow_prose=True)
        except Exception as e:
            logger.error(f"[tickers] mapping failed, returning none: {e}")
            return []
        return [t for t in _dedupe(tickers) if t not in EXCLUDED_TICKERS]

    async def extract_token_mentions(self, text: str) -> List[str]:
        """Cashtags unioned with oracle-mapped project tickers."""
        cashtags = extract_cashtags(text)
        projects = await self.extract_crypto_projects(text)
        tickers = await self.map_projects_to_tickers(projects) if projects else []
        tokens = _dedupe(cashtags + tickers)
        logger.info(f"[tokens] cashtags={cashtags or 'none'} mapped={tickers or 'none'} -> {tokens}")
        return tokens

    async def analyze_sentiment(self, text: str) -> SentimentResult:
        try:
            raw = await self._infer(
                SENTIMENT_PROMPT,
                f'Analyze this tweet for crypto trading sentiment:\n\n"{text}"',
                200,
                0.1,
            )
            logger.debug(f"[sentiment] raw oracle response: {raw!r}")
            result = parse_sentiment_payload(raw, [], self.minimum_confidence)
            result.tokens = await self.extract_token_mentions(text)
        except Exception as e:
            logger.error(f"[sentiment] analysis failed, using neutral fallback: {e}")
            return fallback_sentiment(extract_cashtags(text))

        logger.info(
            f"[sentiment] {result.sentiment} conf={result.confidence} "
            f"positive={result.is_positive} tokens={result.tokens}"
        )
        return result

    async def derive_token_signals(self, text: str, seed_tokens: List[str]) -> List[TokenSignal]:
        seeds = _dedupe(seed_tokens)
        hint = ", ".join(seeds) if seeds else "none"
        user = (
            f'Tweet:\n"""\n{text}\n"""\n'
            f"Detected tickers from cashtags or heuristics: {hint}\n\n"
            "Return the JSON payload only."
        )
        try:
            raw = await self._infer(SIGNALS_PROMPT, user, 450, 0.15)
            logger.debug(f"[signals] raw oracle response: {raw!r}")
            signals = parse_signals_payload(raw)
        except Exception as e:
            logger.error(f"[signals] derivation failed, seeds become neutral: {e}")
            return fallback_token_signals(seeds)

        signals = [s for s in signals if s.token not in EXCLUDED_TICKERS]
        logger.info(
            "[signals] "
            + (", ".join(f"{s.token}:{s.sentiment}:{s.conviction}" for s in signals) or "none")
        )
        return signals
