# core/http.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import httpx
from util.errors import UpstreamError


@asynccontextmanager
async def open_client(
    client: Optional[httpx.AsyncClient], timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Use the caller's client when given (tests pass one over httpx.MockTransport),
    otherwise open and close a fresh one.
    """
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


def ensure_ok(resp: httpx.Response, service: str) -> None:
    if resp.is_success:
        return
    body = resp.text[:300] if resp.text else ""
    raise UpstreamError(service, f"HTTP {resp.status_code} {body}".strip())
