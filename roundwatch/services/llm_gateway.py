"""
LLM Gateway — advisory oracle backed by the Claude API.

Never a hard dependency: when the key is missing, the oracle is switched
off, or the call fails, generate() returns "" and generate_json() raises
OracleError. Callers always hold a fallback.
"""

import json
from typing import Optional

import httpx
import structlog

from roundwatch.config import settings
from roundwatch.errors import OracleError

logger = structlog.get_logger(__name__)

# Anthropic API constants
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class LLMGateway:
    """Gateway for Claude API — non-streaming, short completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.anthropic_api_key if api_key is None else api_key
        self.model = model or settings.oracle_model
        self.timeout = timeout or settings.oracle_timeout_seconds
        self.enabled = settings.oracle_enabled if enabled is None else enabled
        self._transport = transport
        if self.enabled and not self.api_key:
            logger.warning("anthropic_api_key_missing", msg="Oracle features will use heuristic fallbacks")

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.api_key)

    async def generate(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 500,
        temperature: float = 0.5,
    ) -> str:
        """
        Single completion.

        Returns the full text response, or "" on any failure.
        """
        if not self.available:
            return ""

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": user_message}],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    ANTHROPIC_API_URL, json=payload, headers=headers
                )
                response.raise_for_status()
                data = response.json()

                # Extract text from content blocks
                content = data.get("content", [])
                text_parts = [
                    block.get("text", "")
                    for block in content
                    if block.get("type") == "text"
                ]
                return "".join(text_parts).strip()

        except httpx.TimeoutException:
            logger.error("llm_timeout", model=self.model, timeout=self.timeout)
            return ""
        except Exception as e:
            logger.error("llm_generate_error", model=self.model, error=str(e))
            return ""

    async def generate_json(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 700,
        temperature: float = 0.5,
    ) -> dict:
        """
        Completion parsed as a JSON object.

        Raises OracleError when the oracle is unavailable, failed, or did
        not answer with a JSON object.
        """
        if not self.available:
            raise OracleError("Oracle not configured")

        text = await self.generate(system, user_message, max_tokens=max_tokens, temperature=temperature)
        if not text:
            raise OracleError("Oracle returned no content")

        return parse_json_object(text)


def parse_json_object(text: str) -> dict:
    """Pull the first JSON object out of a completion (tolerates ``` fences)."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise OracleError("No JSON object in oracle response")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise OracleError(f"Malformed oracle response: {e}") from e
    if not isinstance(data, dict):
        raise OracleError("Oracle response is not an object")
    return data
