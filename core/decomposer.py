# core/decomposer.py
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from config.settings import settings
from core.config_factory import QualityPreset, create_execution_config
from core.llm_client import chat_json
from model.pipeline import DecompositionOutput, ExecutionConfig, SubQuery
from util.constants import MAX_QUERY_LENGTH
from util.enums import ErrorMessage
from util.errors import AppError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)

ChatJsonFn = Callable[..., Awaitable[Dict[str, Any]]]
_COMPLEXITIES = ("simple", "standard", "deep_research")


def validate_query(query: str) -> str:
    if not isinstance(query, str) or not query.strip():
        raise AppError.of(ErrorMessage.INVALID_QUERY)
    q = query.strip()
    if len(q) > MAX_QUERY_LENGTH:
        raise AppError.of(ErrorMessage.QUERY_TOO_LONG)
    return q


def _normalize_sub_queries(raw: Any, limit: int) -> List[SubQuery]:
    """Ids rewritten to q1..qN; entries without query text dropped."""
    out: List[SubQuery] = []
    seen: set[str] = set()
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict):
            continue
        text = str(item.get("query") or "").strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        out.append(
            SubQuery(
                id=f"q{len(out) + 1}",
                query=text,
                purpose=str(item.get("purpose") or "").strip(),
            )
        )
        if len(out) >= limit:
            break
    return out


def validate_decomposition_output(output: DecompositionOutput) -> bool:
    """Raises ValueError describing the first problem found."""
    if not output.originalQuery:
        raise ValueError("missing originalQuery")
    if not output.subQueries:
        raise ValueError("at least one sub-query is required")
    ids = [sq.id for sq in output.subQueries]
    if len(set(ids)) != len(ids):
        raise ValueError(f"duplicate sub-query ids: {ids}")
    for sq in output.subQueries:
        if not sq.query.strip():
            raise ValueError(f"sub-query {sq.id} has no text")
    if output.durationMs < 0:
        raise ValueError("durationMs must not be negative")
    return True


async def decompose_query(
    query: str,
    *,
    preset: Optional[QualityPreset] = None,
    chat: ChatJsonFn = chat_json,
) -> Tuple[DecompositionOutput, ExecutionConfig]:
    """
    Split `query` into focused sub-queries and pick the execution budget from
    the judged complexity. Falls back to the query itself as the only
    sub-query when the model returns nothing usable.
    """
    q = validate_query(query)
    with timed(logger, "decompose", chars=len(q)) as t:
        parsed = await chat(
            model=settings.DECOMPOSITION_MODEL,
            system=settings.DECOMPOSE_SYSTEM_PROMPT,
            user=f"QUESTION:\n{q}\n\nReturn JSON only.",
            max_tokens=800,
        )

    complexity = str(parsed.get("complexity") or "standard")
    if complexity not in _COMPLEXITIES:
        complexity = "standard"
    reasoning = str(parsed.get("reasoning") or "").strip()
    config = create_execution_config(complexity, reasoning, preset)  # type: ignore[arg-type]

    sub_queries = _normalize_sub_queries(parsed.get("subQueries"), config.maxSubQueries)
    if not sub_queries:
        logger.warning("decompose.empty falling back to original query")
        sub_queries = [SubQuery(id="q1", query=q, purpose="original question")]
    elif len(sub_queries) < settings.MIN_SUB_QUERIES:
        logger.info("decompose.few count=%d", len(sub_queries))

    output = DecompositionOutput(
        originalQuery=q,
        subQueries=sub_queries,
        reasoning=reasoning,
        complexity=config.complexity,
        durationMs=t["ms"],
    )
    validate_decomposition_output(output)
    logger.info(
        "decompose.result complexity=%s sub_queries=%d", output.complexity, len(sub_queries)
    )
    return output, config
