# tests/test_verification_pipeline.py
import asyncio
import numpy as np
import pytest
from core.passages import prepare_evidence
from core.verification_pipeline import overall_confidence, verify_claims, verify_claims_stream
from model.claim import VerifiedClaim
from model.evidence import PreparedEvidence, Source
from util.enums import ConfidenceLevel, Entailment
from util.errors import PipelineAborted
from fakes import BowEmbedder, ScriptedJudge

SNIPPET = (
    "Tesla reported 10% revenue growth in 2024. "
    "The company expanded its factories in Texas. "
    "Analysts expect further growth next year."
)
ANSWER = (
    "Tesla grew 10% in revenue [1]. "
    "Tesla expanded its factories in Texas [1]. "
    "Analysts expect revenue to fall by 50% next year [1]."
)


async def _evidence() -> PreparedEvidence:
    source = Source(id="s1", url="https://example.com/tesla", title="Tesla 10-K", snippet=SNIPPET)
    return await prepare_evidence([source], embed=BowEmbedder())


async def _collect(stream):
    return [event async for event in stream]


@pytest.mark.asyncio
async def test_supported_claim_with_matching_number():
    judge = ScriptedJudge(labels={"tesla": Entailment.SUPPORTED})
    report = await verify_claims(
        "Tesla grew 10% in revenue [1].", await _evidence(), judge=judge, embed=BowEmbedder()
    )

    assert len(report.claims) == 1
    claim = report.claims[0]
    assert claim.entailment == Entailment.SUPPORTED
    assert claim.confidenceLevel == ConfidenceLevel.HIGH
    assert claim.numericCheck is not None and claim.numericCheck.match is True
    assert "numeric mismatch" not in claim.issues
    assert claim.bestMatchingSource.sourceIndex == 1
    assert claim.bestMatchingSource.isCitedSource is True
    assert claim.bestMatchingSource.passage == "Tesla reported 10% revenue growth in 2024."
    assert report.summary.supported == 1
    assert report.overallConfidence == round(claim.confidence * 100)


@pytest.mark.asyncio
async def test_empty_answer_skips_every_call():
    judge = ScriptedJudge()
    events = await _collect(verify_claims_stream("", await _evidence(), judge=judge))
    assert [e["type"] for e in events] == ["verification-complete"]
    report = events[0]["data"]
    assert report.claims == [] and report.overallConfidence == 0
    assert judge.calls == []


@pytest.mark.asyncio
async def test_no_evidence_skips_every_call():
    judge = ScriptedJudge()
    embed = BowEmbedder()
    report = await verify_claims(ANSWER, PreparedEvidence(), judge=judge, embed=embed)
    assert report.claims == []
    assert judge.calls == [] and embed.texts == []


@pytest.mark.asyncio
async def test_answer_without_checkable_sentences():
    events = await _collect(verify_claims_stream("Is it?", await _evidence(), judge=ScriptedJudge()))
    assert [e["type"] for e in events] == ["verification-complete"]


@pytest.mark.asyncio
async def test_report_keeps_extraction_order_and_streams_progress():
    judge = ScriptedJudge(
        labels={"fall": Entailment.CONTRADICTED, "tesla": Entailment.SUPPORTED},
        delays={"tesla grew": 0.05},
    )
    events = await _collect(
        verify_claims_stream(ANSWER, await _evidence(), judge=judge, embed=BowEmbedder(), concurrency=3)
    )

    progress = [e["data"] for e in events if e["type"] == "verification-progress"]
    assert [p["current"] for p in progress] == [0, 1, 2, 3]
    assert all(p["total"] == 3 for p in progress)
    assert progress[-1]["status"] == "c1 verified"

    assert events[-1]["type"] == "verification-complete"
    report = events[-1]["data"]
    assert [c.id for c in report.claims] == ["c1", "c2", "c3"]
    assert report.summary.supported == 2
    assert report.summary.contradicted == 1
    assert (
        report.summary.supported + report.summary.uncertain + report.summary.contradicted
        == len(report.claims)
    )


@pytest.mark.asyncio
async def test_claims_past_the_cap_are_never_embedded_or_judged():
    judge = ScriptedJudge(labels={"tesla": Entailment.SUPPORTED})
    embed = BowEmbedder()
    report = await verify_claims(ANSWER, await _evidence(), judge=judge, embed=embed, max_claims=1)
    assert [c.id for c in report.claims] == ["c1"]
    assert len(judge.calls) == 1
    assert embed.texts == ["Tesla grew 10% in revenue."]


@pytest.mark.asyncio
async def test_one_failing_claim_does_not_sink_the_rest():
    judge = ScriptedJudge(
        labels={"tesla": Entailment.SUPPORTED},
        failures={"texas": RuntimeError("judge down")},
    )
    events = await _collect(
        verify_claims_stream(ANSWER, await _evidence(), judge=judge, embed=BowEmbedder())
    )
    statuses = [e["data"]["status"] for e in events if e["type"] == "verification-progress"]
    assert "c2 failed" in statuses

    report = events[-1]["data"]
    failed = report.claims[1]
    assert failed.entailment == Entailment.NEUTRAL
    assert failed.confidence == pytest.approx(0.1)
    assert failed.confidenceLevel == ConfidenceLevel.LOW
    assert failed.issues == ["verification failed"]
    assert "judge down" in failed.entailmentReasoning
    assert report.claims[0].entailment == Entailment.SUPPORTED
    assert report.summary.uncertain == 2


@pytest.mark.asyncio
async def test_claim_embedding_of_another_width_fails_clearly():
    async def narrow_embed(texts):
        return np.ones((len(texts), 8), dtype=np.float32)

    judge = ScriptedJudge(labels={"tesla": Entailment.SUPPORTED})
    report = await verify_claims(
        "Tesla grew 10% in revenue [1].", await _evidence(), judge=judge, embed=narrow_embed
    )
    claim = report.claims[0]
    assert claim.issues == ["verification failed"]
    assert "8 dims, evidence has 1024" in claim.entailmentReasoning
    assert judge.calls == []


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    judge = ScriptedJudge(delays={"": 0.01})
    await verify_claims(ANSWER, await _evidence(), judge=judge, embed=BowEmbedder(), concurrency=1)
    assert len(judge.calls) == 3
    assert judge.max_in_flight == 1


@pytest.mark.asyncio
async def test_cancel_aborts_the_stream():
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(PipelineAborted):
        await _collect(
            verify_claims_stream(
                ANSWER, await _evidence(), judge=ScriptedJudge(), embed=BowEmbedder(), cancel=cancel
            )
        )


def _verified(cid, entailment, confidence):
    return VerifiedClaim(
        id=cid,
        text=cid,
        confidence=confidence,
        confidenceLevel=ConfidenceLevel.LOW,
        entailment=entailment,
    )


def test_contradictions_weigh_more_than_a_plain_mean():
    claims = [_verified(f"c{i}", Entailment.SUPPORTED, 0.98) for i in range(1, 4)]
    claims.append(_verified("c4", Entailment.CONTRADICTED, 0.1))
    plain_mean = round(100 * sum(c.confidence for c in claims) / len(claims))
    assert overall_confidence(claims) == 54
    assert overall_confidence(claims) < plain_mean


def test_overall_confidence_of_nothing_is_zero():
    assert overall_confidence([]) == 0
