# core/claim_matcher.py
"""
Maps verified claims back onto spans of the rendered answer for confidence
highlighting. Claim text and display text both went through lossy transforms,
so matching is by token overlap, never by offset.
"""
import re
from typing import List, Optional, Sequence, Set, Tuple
from core.passages import split_sentences
from model.claim import VerifiedClaim
from model.highlight import ClaimMapping, MappingStats, SpanWithConfidence
from util.constants import Alignment

_CITATION = re.compile(r"\[\d+\]")
_MARKUP = re.compile(r"[*_`#>|~]+")
_NON_WORD = re.compile(r"\W+")
MIN_SPAN_CHARS = 10


def tokenize(text: str) -> List[str]:
    cleaned = _MARKUP.sub(" ", _CITATION.sub(" ", text.lower()))
    return [
        t for t in _NON_WORD.split(cleaned) if len(t) >= Alignment.MIN_TOKEN_LENGTH
    ]


def claim_coverage(span_tokens: Set[str], claim_tokens: Sequence[str]) -> float:
    """Fraction of the claim's tokens that occur in the span."""
    if not claim_tokens:
        return 0.0
    hits = sum(1 for t in claim_tokens if t in span_tokens)
    return hits / len(claim_tokens)


def best_claim_for_span(
    span: str, claims: Sequence[VerifiedClaim], used: Set[str]
) -> Tuple[Optional[VerifiedClaim], float]:
    span_tokens = set(tokenize(span))
    if len(span_tokens) < Alignment.MIN_SPAN_TOKENS:
        return None, 0.0

    best: Optional[VerifiedClaim] = None
    best_score = 0.0
    for claim in claims:
        if claim.id in used:
            continue
        score = claim_coverage(span_tokens, tokenize(claim.text))
        if score > best_score:
            best, best_score = claim, score

    if best is not None and best_score >= Alignment.MATCH_THRESHOLD:
        return best, best_score
    return None, 0.0


def segment(text: str) -> List[str]:
    spans: List[str] = []
    for line in (text or "").splitlines():
        for sentence in split_sentences(line):
            if len(sentence) >= MIN_SPAN_CHARS:
                spans.append(sentence)
    return spans


def map_claims_to_text(text: str, claims: Sequence[VerifiedClaim]) -> ClaimMapping:
    """
    One entry per rendered span; a claim is attached to at most one span.
    Unmatched spans carry no confidence.
    """
    spans: List[SpanWithConfidence] = []
    used: Set[str] = set()

    for span in segment(text):
        claim, score = best_claim_for_span(span, claims, used)
        if claim is None:
            spans.append(SpanWithConfidence(text=span))
            continue
        used.add(claim.id)
        spans.append(
            SpanWithConfidence(
                text=span,
                confidence=claim.confidence,
                confidenceLevel=claim.confidenceLevel,
                entailment=claim.entailment,
                claimId=claim.id,
                matchScore=score,
            )
        )

    matched = [s for s in spans if s.claimId is not None]
    avg = sum(s.confidence or 0.0 for s in matched) / len(matched) if matched else 0.0
    return ClaimMapping(
        spans=spans,
        stats=MappingStats(
            totalSpans=len(spans),
            matchedSpans=len(matched),
            avgConfidence=round(avg, 2),
            coveragePercent=round(100 * len(matched) / len(spans)) if spans else 0,
        ),
    )
