# core/llm_client.py
import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional
import httpx
from config.settings import settings
from core.http import ensure_ok, open_client
from util import functions
import logging
from util.errors import PipelineAborted, UpstreamError
from util.timing import timed

logger = logging.getLogger(__name__)

SERVICE = "openrouter"
DONE_MARKER = "[DONE]"


def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
        "content-type": "application/json",
    }


def messages_for(system: str, user: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _message_text(data: Dict[str, Any]) -> str:
    try:
        choices = data.get("choices") or []
        if choices and isinstance(choices, list):
            message = choices[0].get("message") or {}
            return str(message.get("content") or "")
    except (AttributeError, TypeError):
        pass
    return ""


async def chat_completion(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: int = 800,
    temperature: float = 0.0,
    json_mode: bool = False,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    One non-streamed chat completion. Raises UpstreamError for transport
    failures and non-2xx answers; returns the assistant text ("" if absent).
    """
    payload: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    with timed(logger, "ai.chat", model=model, json=json_mode):
        try:
            async with open_client(client, settings.LLM_TIMEOUT_SECONDS) as c:
                resp = await c.post(
                    settings.OPENROUTER_API_URL, headers=_headers(), json=payload
                )
        except httpx.HTTPError as e:
            raise UpstreamError(SERVICE, str(e) or e.__class__.__name__) from e
        ensure_ok(resp, SERVICE)
        try:
            data = resp.json()
        except ValueError:
            data = {}
    return _message_text(data)


async def chat_json(
    *,
    model: str,
    system: str,
    user: str,
    max_tokens: int = 800,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    JSON-mode completion parsed into a dict. Unparseable output returns {} so
    callers can apply their own defaults.
    """
    text = await chat_completion(
        model=model,
        messages=messages_for(system, user),
        max_tokens=max_tokens,
        json_mode=True,
        client=client,
    )
    raw = functions.strip_code_fence(text)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ai.chat.json.unparseable model=%s chars=%d", model, len(raw))
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_sse_line(line: str) -> Optional[str]:
    """
    Text delta carried by one SSE line, or None for comments, keep-alives,
    the done marker and chunks that fail to parse.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data or data == DONE_MARKER:
        return None
    try:
        obj = json.loads(data)
        delta = obj["choices"][0].get("delta") or {}
        content = delta.get("content")
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        logger.warning("ai.stream.chunk.malformed chars=%d", len(data))
        return None
    return content if isinstance(content, str) and content else None


async def stream_text(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: int = 1500,
    temperature: float = 0.2,
    cancel: Optional[asyncio.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[str]:
    """
    Yield text increments of a streamed completion as they arrive.
    Each increment is handed to the caller before the next line is read.
    Raises PipelineAborted when `cancel` gets set mid-stream.
    """
    payload = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "stream": True,
    }
    chunks = 0
    with timed(logger, "ai.stream", model=model):
        try:
            async with open_client(client, settings.LLM_TIMEOUT_SECONDS) as c:
                async with c.stream(
                    "POST", settings.OPENROUTER_API_URL, headers=_headers(), json=payload
                ) as resp:
                    if not resp.is_success:
                        await resp.aread()
                        ensure_ok(resp, SERVICE)
                    async for line in resp.aiter_lines():
                        if cancel is not None and cancel.is_set():
                            raise PipelineAborted()
                        if line.strip() == f"data: {DONE_MARKER}":
                            break
                        piece = parse_sse_line(line)
                        if piece is None:
                            continue
                        chunks += 1
                        yield piece
        except httpx.HTTPError as e:
            raise UpstreamError(SERVICE, str(e) or e.__class__.__name__) from e
    logger.info("ai.stream.chunks model=%s count=%d", model, chunks)
