# hypesignal/llm/oracle.py
import asyncio
import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI

from hypesignal.config import settings, Settings

logger = logging.getLogger("hypesignal.oracle")


class OracleError(RuntimeError):
    """The text-generation service failed or timed out."""


class Oracle(Protocol):
    async def infer(
        self, system: str, user: str, max_tokens: int = 500, temperature: float = 0.1
    ) -> str: ...


class ChatOracle:
    """
    OpenAI-compatible chat completion client.
    Talks to EigenAI when EIGENAI_API_KEY is set, otherwise to OpenAI.
    """

    def __init__(self, client: AsyncOpenAI, model: str, timeout: float = 30.0):
        self.client = client
        self.model = model
        self.timeout = timeout

    async def infer(
        self, system: str, user: str, max_tokens: int = 500, temperature: float = 0.1
    ) -> str:
        try:
            resp = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise OracleError(f"oracle timed out after {self.timeout}s") from e
        except Exception as e:
            raise OracleError(f"oracle request failed: {e}") from e

        if not resp.choices:
            raise OracleError("oracle returned no choices")
        return resp.choices[0].message.content or ""


def build_oracle(cfg: Optional[Settings] = None) -> ChatOracle:
    cfg = cfg or settings
    if cfg.eigenai_api_key:
        client = AsyncOpenAI(
            api_key=cfg.eigenai_api_key,
            base_url=cfg.eigenai_base_url,
            default_headers={"x-api-key": cfg.eigenai_api_key},
        )
        return ChatOracle(client, cfg.oracle_model, timeout=cfg.oracle_timeout_sec)

    if not cfg.openai_api_key:
        raise OracleError("Set either EIGENAI_API_KEY or OPENAI_API_KEY in your environment")

    if cfg.oracle_model != cfg.openai_model:
        logger.warning(
            f"[oracle] EIGENAI_API_KEY not found. Using OpenAI model "
            f"{cfg.openai_model!r} as a fallback for {cfg.oracle_model!r}."
        )
    client = AsyncOpenAI(api_key=cfg.openai_api_key)
    return ChatOracle(client, cfg.openai_model, timeout=cfg.oracle_timeout_sec)
