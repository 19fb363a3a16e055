# tests/test_claim_matcher.py
from core.claim_matcher import map_claims_to_text, tokenize
from model.claim import VerifiedClaim
from util.enums import ConfidenceLevel, Entailment


def _claim(cid, text, confidence=0.9, entailment=Entailment.SUPPORTED, level=ConfidenceLevel.HIGH):
    return VerifiedClaim(
        id=cid,
        text=text,
        confidence=confidence,
        confidenceLevel=level,
        entailment=entailment,
    )


def test_tokenize_drops_short_tokens_markup_and_citations():
    assert tokenize("Tesla grew **10%** in revenue [1].") == ["tesla", "grew", "revenue"]


def test_spans_pick_up_their_claims():
    text = (
        "Tesla grew **10%** in revenue [1]. The weather was nice today.\n"
        "Apple shipped record iPhone volumes in Q4 [2]."
    )
    claims = [
        _claim("c1", "Tesla grew 10% in revenue.", 0.9),
        _claim("c2", "Apple shipped record iPhone volumes in Q4.", 0.3, Entailment.NEUTRAL, ConfidenceLevel.LOW),
    ]
    mapping = map_claims_to_text(text, claims)

    assert [s.claimId for s in mapping.spans] == ["c1", None, "c2"]
    assert mapping.spans[0].text == "Tesla grew **10%** in revenue [1]."
    assert mapping.spans[0].matchScore == 1.0
    assert mapping.spans[1].confidence is None
    assert mapping.spans[2].entailment == Entailment.NEUTRAL

    assert mapping.stats.totalSpans == 3
    assert mapping.stats.matchedSpans == 2
    assert mapping.stats.coveragePercent == 67
    assert mapping.stats.avgConfidence == 0.6


def test_span_with_too_few_tokens_is_not_matched():
    mapping = map_claims_to_text("Tesla grew.", [_claim("c1", "Tesla grew")])
    assert mapping.spans[0].claimId is None


def test_weak_overlap_is_not_matched():
    claim = _claim("c1", "Global semiconductor shipments declined sharply during pandemic lockdowns")
    mapping = map_claims_to_text("Semiconductor demand was strong in every region.", [claim])
    assert mapping.stats.matchedSpans == 0


def test_a_claim_is_used_once():
    text = "Solar capacity doubled across Europe. Solar capacity doubled across Europe."
    mapping = map_claims_to_text(text, [_claim("c1", "Solar capacity doubled across Europe.")])
    assert [s.claimId for s in mapping.spans] == ["c1", None]


def test_empty_text():
    mapping = map_claims_to_text("", [_claim("c1", "Anything at all goes here.")])
    assert mapping.spans == []
    assert mapping.stats.coveragePercent == 0
