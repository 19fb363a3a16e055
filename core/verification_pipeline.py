# core/verification_pipeline.py
import asyncio
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence
import numpy as np
from config.settings import settings
from core import evidence_codec
from core.claims import extract_claims
from core.embeddings import cosine_scores, embed_texts
from core.entities import EntailmentResult, RetrievalResult, SignalWeights
from core.llm_verifier import judge_entailment
from core.numeric import check_numeric_consistency, extract_numbers
from core.signals import DEFAULT_WEIGHTS, aggregate_signals
from model.claim import (
    BestMatchingSource,
    Claim,
    VerificationReport,
    VerificationSummary,
    VerifiedClaim,
)
from model.evidence import Passage, PreparedEvidence
from util.constants import Confidence, Issue
from util.enums import ConfidenceLevel, Entailment
from util.errors import PipelineAborted
from util.timing import now_ms, timed
from util.types import PhaseEvent, ProgressPayload
import logging

logger = logging.getLogger(__name__)

JudgeFn = Callable[[str, str], Awaitable[EntailmentResult]]
EmbedFn = Callable[[Sequence[str]], Awaitable[np.ndarray]]


def retrieve_evidence(
    claim_vec: np.ndarray,
    matrix: np.ndarray,
    passages: Sequence[Passage],
    cited_sources: Sequence[int],
) -> Optional[RetrievalResult]:
    """
    Highest-cosine passage for one claim, plus the best score among the
    claim's own cited sources.
    """
    if not passages or matrix.shape[0] == 0:
        return None
    sims = cosine_scores(matrix, claim_vec)
    best = int(np.argmax(sims))

    cited_best: Optional[float] = None
    if cited_sources:
        cited_mask = np.array([p.sourceIndex in cited_sources for p in passages])
        cited_best = float(sims[cited_mask].max()) if cited_mask.any() else 0.0

    return RetrievalResult(
        passage_index=best,
        passage=passages[best],
        similarity=float(sims[best]),
        cited_best=cited_best,
        is_cited_source=passages[best].sourceIndex in cited_sources,
    )


def summarize(claims: Sequence[VerifiedClaim]) -> VerificationSummary:
    s = VerificationSummary()
    for c in claims:
        if c.entailment == Entailment.SUPPORTED:
            s.supported += 1
        elif c.entailment == Entailment.CONTRADICTED:
            s.contradicted += 1
        else:
            s.uncertain += 1
        if c.citationMismatch:
            s.citationMismatches += 1
        if c.numericCheck is not None and not c.numericCheck.match:
            s.numericMismatches += 1
    return s


def overall_confidence(
    claims: Sequence[VerifiedClaim],
    contradicted_weight: float = Confidence.CONTRADICTED_WEIGHT,
) -> int:
    """
    Weighted mean on a 0..100 scale. CONTRADICTED claims count
    `contradicted_weight` times so a run of supported claims cannot hide them.
    """
    if not claims:
        return 0
    total = 0.0
    weight_sum = 0.0
    for c in claims:
        w = contradicted_weight if c.entailment == Entailment.CONTRADICTED else 1.0
        total += w * c.confidence
        weight_sum += w
    return int(round(100 * total / weight_sum))


def build_report(claims: Sequence[VerifiedClaim], started_ms: int) -> VerificationReport:
    return VerificationReport(
        claims=list(claims),
        overallConfidence=overall_confidence(claims),
        summary=summarize(claims),
        durationMs=max(0, now_ms() - started_ms),
    )


def _failed_claim(claim: Claim, reason: str) -> VerifiedClaim:
    return VerifiedClaim(
        id=claim.id,
        text=claim.text,
        confidence=Confidence.FAILED_CLAIM,
        confidenceLevel=ConfidenceLevel.LOW,
        entailment=Entailment.NEUTRAL,
        entailmentReasoning=f"Verification failed: {reason}",
        issues=[Issue.VERIFICATION_FAILED],
    )


async def _verify_one(
    claim: Claim,
    matrix: np.ndarray,
    passages: Sequence[Passage],
    judge: JudgeFn,
    embed: EmbedFn,
    weights: SignalWeights,
) -> VerifiedClaim:
    claim_vec = (await embed([claim.text]))[0]
    # Evidence embedded by one model, claim by another (e.g. after a fallback)
    if claim_vec.shape[-1] != matrix.shape[1]:
        return _failed_claim(
            claim,
            f"claim embedding has {claim_vec.shape[-1]} dims, evidence has {matrix.shape[1]}",
        )
    hit =retrieve_evidence(claim_vec, matrix, passages, claim.citedSources)
    if hit is None:
        return _failed_claim(claim, "no passages")

    verdict = await judge(claim.text, hit.passage.text)
    numeric = None
    if claim.numbers:
        numeric = check_numeric_consistency(claim.numbers, extract_numbers(hit.passage.text))

    agg = aggregate_signals(
        verdict.label,
        hit.similarity,
        numeric,
        cited_support=hit.cited_best,
        is_cited_source=hit.is_cited_source,
        weights=weights,
    )
    return VerifiedClaim(
        id=claim.id,
        text=claim.text,
        confidence=agg.confidence,
        confidenceLevel=agg.level,
        entailment=verdict.label,
        entailmentReasoning=verdict.reasoning,
        bestMatchingSource=BestMatchingSource(
            sourceId=hit.passage.sourceId,
            sourceTitle=hit.passage.sourceTitle,
            sourceIndex=hit.passage.sourceIndex,
            passage=hit.passage.text,
            similarity=hit.similarity,
            isCitedSource=hit.is_cited_source,
        ),
        citationMismatch=agg.citation_mismatch,
        citedSourceSupport=hit.cited_best or 0.0,
        globalBestSupport=hit.similarity,
        numericCheck=numeric,
        issues=agg.issues,
    )


def _progress(current: int, total: int, status: str) -> PhaseEvent:
    data: ProgressPayload = {"current": current, "total": total, "status": status}
    return {"type": "verification-progress", "data": data}


async def verify_claims_stream(
    answer: str,
    evidence: PreparedEvidence,
    *,
    max_claims: Optional[int] = None,
    concurrency: Optional[int] = None,
    judge: JudgeFn = judge_entailment,
    embed: EmbedFn = embed_texts,
    weights: SignalWeights = DEFAULT_WEIGHTS,
    cancel: Optional[asyncio.Event] = None,
) -> AsyncIterator[PhaseEvent]:
    """
    Verify every claim of `answer` against `evidence`, streaming
    verification-progress as each claim settles and ending with a
    verification-complete event whose data is the VerificationReport.

    Claims past `max_claims` are dropped before any embedding or judge call.
    The report lists claims in extraction order whatever the completion order.
    """
    started = now_ms()
    max_claims = settings.MAX_CLAIMS_TO_VERIFY if max_claims is None else max_claims
    concurrency = settings.VERIFICATION_CONCURRENCY if concurrency is None else concurrency

    if not answer or not answer.strip() or not evidence.passages:
        logger.info(
            "verify.skip answer_chars=%d passages=%d",
            len(answer or ""),
            len(evidence.passages),
        )
        yield {"type": "verification-complete", "data": build_report([], started)}
        return

    claims = extract_claims(answer, max_claims=max_claims)
    total = len(claims)
    if total == 0:
        yield {"type": "verification-complete", "data": build_report([], started)}
        return

    matrix = evidence_codec.decode_transport(evidence.embeddings)
    passages = evidence.passages
    slots: List[Optional[VerifiedClaim]] = [None] * total

    yield _progress(0, total, "started")

    sem = asyncio.Semaphore(max(1, concurrency))

    async def _slot(i: int, claim: Claim) -> int:
        async with sem:
            try:
                slots[i] = await _verify_one(claim, matrix, passages, judge, embed, weights)
            except Exception as e:
                logger.warning(
                    "verify.claim.failed id=%s err=%s", claim.id, str(e) or e.__class__.__name__
                )
                slots[i] = _failed_claim(claim, str(e) or e.__class__.__name__)
        return i

    tasks = [asyncio.create_task(_slot(i, c)) for i, c in enumerate(claims)]
    done = 0
    try:
        with timed(logger, "verify.claims", n=total, conc=concurrency):
            for fut in asyncio.as_completed(tasks):
                if cancel is not None and cancel.is_set():
                    raise PipelineAborted()
                i = await fut
                done += 1
                slot = slots[i]
                failed = slot is not None and Issue.VERIFICATION_FAILED in slot.issues
                status = "failed" if failed else "verified"
                yield _progress(done, total, f"{claims[i].id} {status}")
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()

    report = build_report([s for s in slots if s is not None], started)
    logger.info(
        "verify.done claims=%d overall=%d supported=%d contradicted=%d",
        total,
        report.overallConfidence,
        report.summary.supported,
        report.summary.contradicted,
    )
    yield {"type": "verification-complete", "data": report}


async def verify_claims(answer: str, evidence: PreparedEvidence, **kwargs) -> VerificationReport:
    """Drain verify_claims_stream and return only the report."""
    report = build_report([], now_ms())
    async for event in verify_claims_stream(answer, evidence, **kwargs):
        if event["type"] == "verification-complete":
            report = event["data"]
    return report
