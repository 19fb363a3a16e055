# tests/test_llm_client.py
import asyncio
import json
import httpx
import pytest
from core.llm_client import chat_json, parse_sse_line, stream_text
from core.llm_verifier import UNPARSEABLE_REASONING, judge_entailment, parse_verdict
from util.enums import Entailment
from util.errors import PipelineAborted, UpstreamError


def _chunk(text):
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]})


def _sse_body(*lines):
    return "\n\n".join(lines) + "\n\n"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_sse_line():
    assert parse_sse_line(_chunk("Hello")) == "Hello"
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("data: [DONE]") is None
    assert parse_sse_line("data: {not json") is None
    assert parse_sse_line('data: {"choices": []}') is None
    assert parse_sse_line(_chunk("")) is None


@pytest.mark.asyncio
async def test_stream_yields_deltas_in_order_and_skips_noise():
    body = _sse_body(
        ": OPENROUTER PROCESSING",
        _chunk("Tesla "),
        "data: {broken",
        _chunk("grew 10%."),
        "data: [DONE]",
        _chunk("after done"),
    )
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    async with _client(handler) as client:
        pieces = [p async for p in stream_text(model="m", messages=[], client=client)]

    assert pieces == ["Tesla ", "grew 10%."]
    assert seen["stream"] is True
    assert seen["model"] == "m"


@pytest.mark.asyncio
async def test_stream_non_2xx_is_upstream_error():
    def handler(request):
        return httpx.Response(500, text="overloaded")

    async with _client(handler) as client:
        with pytest.raises(UpstreamError) as err:
            async for _ in stream_text(model="m", messages=[], client=client):
                pass
    assert err.value.status_code == 502
    assert "openrouter: HTTP 500" in err.value.detail


@pytest.mark.asyncio
async def test_stream_stops_when_cancelled():
    cancel = asyncio.Event()
    cancel.set()

    def handler(request):
        return httpx.Response(200, text=_sse_body(_chunk("a"), _chunk("b")))

    async with _client(handler) as client:
        with pytest.raises(PipelineAborted):
            async for _ in stream_text(model="m", messages=[], client=client, cancel=cancel):
                pass


@pytest.mark.asyncio
async def test_transport_failure_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamError):
            await chat_json(model="m", system="s", user="u", client=client)


@pytest.mark.asyncio
async def test_chat_json_strips_code_fences():
    content = '```json\n{"verdict": "SUPPORTED", "reasoning": "same figure"}\n```'

    def handler(request):
        assert json.loads(request.content)["response_format"] == {"type": "json_object"}
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    async with _client(handler) as client:
        parsed = await chat_json(model="m", system="s", user="u", client=client)
    assert parsed == {"verdict": "SUPPORTED", "reasoning": "same figure"}


@pytest.mark.asyncio
async def test_chat_json_unparseable_gives_empty_dict():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": "I think yes"}}]})

    async with _client(handler) as client:
        assert await chat_json(model="m", system="s", user="u", client=client) == {}


def test_parse_verdict():
    assert parse_verdict({}).label == Entailment.NEUTRAL
    assert parse_verdict({}).reasoning == UNPARSEABLE_REASONING
    assert parse_verdict({"verdict": "contradicted", "reasoning": " 15 vs 18 "}).label == Entailment.CONTRADICTED
    assert parse_verdict({"verdict": "contradicted", "reasoning": " 15 vs 18 "}).reasoning == "15 vs 18"
    assert parse_verdict({"label": "SUPPORTED"}).label == Entailment.SUPPORTED
    assert parse_verdict({"verdict": "PROBABLY"}).label == Entailment.NEUTRAL


@pytest.mark.asyncio
async def test_judge_entailment_sends_claim_and_evidence():
    captured = {}

    def handler(request):
        captured.update(json.loads(request.content))
        content = json.dumps({"verdict": "SUPPORTED", "reasoning": "10% matches"})
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    async with _client(handler) as client:
        result = await judge_entailment(
            "Tesla grew 10% in revenue.",
            "Tesla reported 10% revenue growth in 2024.",
            model="judge-model",
            client=client,
        )

    assert result.label == Entailment.SUPPORTED
    assert result.reasoning == "10% matches"
    assert captured["model"] == "judge-model"
    user = captured["messages"][1]["content"]
    assert "CLAIM:\nTesla grew 10% in revenue." in user
    assert "Tesla reported 10% revenue growth in 2024." in user
