# core/llm_verifier.py
from typing import Any, Dict, Optional
import httpx
from config.settings import settings
from core.entities import EntailmentResult
from core.llm_client import chat_json
import logging
from util import functions
from util.enums import Entailment
from util.timing import timed

logger = logging.getLogger(__name__)

UNPARSEABLE_REASONING = "Unable to parse verifier output."


def _user_prompt(claim: str, evidence: str) -> str:
    """
    Build the user message for verification with the claim and its best passage.
    """
    passage = functions.clip_words(evidence, max_words=400) if evidence else "(no evidence)"
    return f"CLAIM:\n{claim}\n\nEVIDENCE:\n{passage}\n\nReturn JSON only."


def parse_verdict(parsed: Dict[str, Any]) -> EntailmentResult:
    """Map raw judge JSON onto the three labels; anything else is NEUTRAL."""
    if not parsed:
        return EntailmentResult(label=Entailment.NEUTRAL, reasoning=UNPARSEABLE_REASONING)

    raw = str(parsed.get("verdict") or parsed.get("label") or "").strip().upper()
    try:
        label = Entailment(raw)
    except ValueError:
        label = Entailment.NEUTRAL
    reasoning = str(parsed.get("reasoning") or "").strip()
    return EntailmentResult(label=label, reasoning=reasoning)


async def judge_entailment(
    claim: str,
    evidence: str,
    *,
    model: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> EntailmentResult:
    """
    Ask the NLI model whether `evidence` supports, contradicts or ignores `claim`.
    Upstream failures propagate as UpstreamError.
    """
    model = model or settings.NLI_MODEL
    with timed(logger, "ai.verify", model=model):
        parsed = await chat_json(
            model=model,
            system=settings.NLI_SYSTEM_PROMPT,
            user=_user_prompt(claim, evidence),
            max_tokens=400,
            client=client,
        )
    result = parse_verdict(parsed)
    logger.info("ai.verify.result verdict=%s", result.label.value)
    return result
