# core/embeddings.py
import asyncio
from functools import lru_cache
from typing import Any, List, Optional, Sequence
import httpx
import numpy as np
from config.settings import settings
from core.http import ensure_ok, open_client
from util.errors import UpstreamError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)

SERVICE = "embeddings"
BATCH_SIZE = 64


@lru_cache(maxsize=1)
def _load_model() -> Any:
    """
    Lazy-load the local sentence embedding model (EMBEDDING_PROVIDER=local).
    sentence-transformers is only imported on this path.
    """
    from sentence_transformers import SentenceTransformer

    name = settings.LOCAL_EMBEDDING_MODEL_NAME
    with timed(logger, "embed.model.load", model=name):
        model = SentenceTransformer(name, device="cpu")
    return model


def _local_encode(texts: Sequence[str]) -> np.ndarray:
    model = _load_model()
    vecs = model.encode(
        list(texts),
        batch_size=BATCH_SIZE,
        convert_to_numpy=True,
        normalize_embeddings=True,
    )
    return np.asarray(vecs, dtype=np.float32)


def _rows_from_response(data: Any, expected: int) -> List[List[float]]:
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list) or len(items) != expected:
        raise ValueError(f"expected {expected} embeddings, got {len(items or [])}")
    ordered = sorted(items, key=lambda d: int(d.get("index", 0)))
    return [list(map(float, d["embedding"])) for d in ordered]


async def _openrouter_batch(
    c: httpx.AsyncClient, model: str, texts: Sequence[str]
) -> List[List[float]]:
    resp = await c.post(
        settings.OPENROUTER_EMBEDDINGS_URL,
        headers={
            "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
            "content-type": "application/json",
        },
        json={"model": model, "input": list(texts)},
    )
    ensure_ok(resp, SERVICE)
    return _rows_from_response(resp.json(), len(texts))


async def _openrouter_encode(
    texts: Sequence[str], client: Optional[httpx.AsyncClient]
) -> np.ndarray:
    """
    Primary model first, then the fallback; each gets EMBEDDING_MAX_RETRIES
    extra attempts with linear backoff. All attempts failing raises UpstreamError.
    """
    models = [settings.EMBEDDING_MODEL]
    if settings.EMBEDDING_MODEL_FALLBACK and settings.EMBEDDING_MODEL_FALLBACK not in models:
        models.append(settings.EMBEDDING_MODEL_FALLBACK)

    last_error = ""
    async with open_client(client, settings.LLM_TIMEOUT_SECONDS) as c:
        for model in models:
            for attempt in range(settings.EMBEDDING_MAX_RETRIES + 1):
                try:
                    rows: List[List[float]] = []
                    for i in range(0, len(texts), BATCH_SIZE):
                        rows.extend(await _openrouter_batch(c, model, texts[i : i + BATCH_SIZE]))
                    return np.asarray(rows, dtype=np.float32)
                except (httpx.HTTPError, UpstreamError, ValueError, KeyError, TypeError) as e:
                    last_error = str(e) or e.__class__.__name__
                    logger.warning(
                        "embed.attempt.failed model=%s attempt=%d err=%s",
                        model,
                        attempt + 1,
                        last_error,
                    )
                    if attempt < settings.EMBEDDING_MAX_RETRIES:
                        await asyncio.sleep(settings.EMBEDDING_RETRY_DELAY_SECONDS * (attempt + 1))
    raise UpstreamError(SERVICE, last_error or "no embedding model succeeded")


async def embed_texts(
    texts: Sequence[str], *, client: Optional[httpx.AsyncClient] = None
) -> np.ndarray:
    """
    Encode `texts` into an (n, d) float32 matrix. Empty input gives shape (0, 0).
    """
    if not texts:
        return np.zeros((0, 0), dtype=np.float32)
    with timed(logger, "embed.encode", n=len(texts), provider=settings.EMBEDDING_PROVIDER):
        if settings.EMBEDDING_PROVIDER == "local":
            emb = await asyncio.to_thread(_local_encode, texts)
        else:
            emb = await _openrouter_encode(list(texts), client)
    logger.info("embed.matrix n=%d d=%d", emb.shape[0], emb.shape[1] if emb.size else 0)
    return emb


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return (matrix / norms).astype(np.float32, copy=False)


def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of `query` against every row of `matrix`."""
    if matrix.size == 0:
        return np.zeros((0,), dtype=np.float32)
    q = normalize_rows(np.asarray(query, dtype=np.float32).reshape(1, -1))[0]
    return normalize_rows(matrix) @ q
