"""
Tests for the LLM Gateway (advisory oracle).

Uses httpx.MockTransport so no request leaves the process.
"""

import json

import httpx
import pytest

from roundwatch.errors import OracleError
from roundwatch.services.llm_gateway import ANTHROPIC_VERSION, LLMGateway, parse_json_object


def _gateway(handler) -> LLMGateway:
    return LLMGateway(
        api_key="test-key",
        model="test-model",
        timeout=5,
        enabled=True,
        transport=httpx.MockTransport(handler),
    )


def _reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


@pytest.mark.asyncio
async def test_generate_sends_messages_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [
            {"type": "text", "text": "Keep going, "},
            {"type": "tool_use", "id": "x"},
            {"type": "text", "text": "team! "},
        ]})

    text = await _gateway(handler).generate("sys", "hello", max_tokens=150, temperature=0.7)

    assert text == "Keep going, team!"
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["headers"]["anthropic-version"] == ANTHROPIC_VERSION
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["max_tokens"] == 150
    assert seen["body"]["system"] == "sys"
    assert seen["body"]["messages"] == [{"role": "user", "content": "hello"}]


@pytest.mark.asyncio
async def test_generate_returns_empty_on_http_error():
    gateway = _gateway(lambda request: httpx.Response(500, json={"error": "overloaded"}))
    assert await gateway.generate("sys", "hello") == ""


@pytest.mark.asyncio
async def test_generate_returns_empty_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    assert await _gateway(handler).generate("sys", "hello") == ""


@pytest.mark.asyncio
async def test_unavailable_without_key():
    gateway = LLMGateway(api_key="", enabled=True)
    assert gateway.available is False
    assert await gateway.generate("sys", "hello") == ""
    with pytest.raises(OracleError):
        await gateway.generate_json("sys", "hello")


@pytest.mark.asyncio
async def test_unavailable_when_switched_off():
    gateway = LLMGateway(api_key="test-key", enabled=False)
    assert gateway.available is False


@pytest.mark.asyncio
async def test_generate_json_parses_fenced_object():
    gateway = _gateway(lambda request: _reply('```json\n{"riskScore": 70, "riskLevel": "high"}\n```'))
    data = await gateway.generate_json("sys", "hello")
    assert data == {"riskScore": 70, "riskLevel": "high"}


@pytest.mark.asyncio
async def test_generate_json_raises_on_empty_reply():
    gateway = _gateway(lambda request: httpx.Response(503))
    with pytest.raises(OracleError):
        await gateway.generate_json("sys", "hello")


def test_parse_json_object_rejects_garbage():
    with pytest.raises(OracleError):
        parse_json_object("I cannot answer that")
    with pytest.raises(OracleError):
        parse_json_object('{"riskScore": }')
    with pytest.raises(OracleError):
        parse_json_object("[1, 2, 3]")
