# core/streaming.py
import json
from typing import Any, AsyncIterator, Dict, Final
from pydantic import BaseModel
from util.types import PhaseEvent
import logging

LINE_SEP: Final[str] = "\n"
logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def ndjson_line(obj: Dict[str, Any]) -> bytes:
    return (json.dumps(_jsonable(obj), separators=(",", ":")) + LINE_SEP).encode("utf-8")


async def ndjson_stream(events: AsyncIterator[PhaseEvent]) -> AsyncIterator[bytes]:
    """
    Encode events one line at a time. A failure inside the source becomes a
    final error line so the client never sees a silently truncated body.
    """
    try:
        async for event in events:
            yield ndjson_line(event)
    except Exception as e:
        message = str(getattr(e, "detail", None) or e) or e.__class__.__name__
        logger.error("stream.error err=%s", message)
        yield ndjson_line({"type": "error", "message": message})
