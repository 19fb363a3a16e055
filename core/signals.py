# core/signals.py
"""
Combines the three per-claim signals (entailment label, retrieval similarity,
numeric consistency) into one confidence in [0, 1] plus issue tags.

Every step is multiplicative on top of the label's base score, so for equal
retrieval and numeric inputs the label ordering SUPPORTED > NEUTRAL >
CONTRADICTED always survives.
"""
import math
from typing import Optional
from core.entities import AggregatedVerdict, SignalWeights
from model.claim import NumericCheck
from util.constants import Issue
from util.enums import ConfidenceLevel, Entailment

DEFAULT_WEIGHTS = SignalWeights()


def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    # NaN and inf count as no signal at all
    if not math.isfinite(x):
        return lo
    return max(lo, min(hi, x))


def confidence_level(
    confidence: float, weights: SignalWeights = DEFAULT_WEIGHTS
) -> ConfidenceLevel:
    if confidence >= weights.high_threshold:
        return ConfidenceLevel.HIGH
    if confidence >= weights.medium_threshold:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def aggregate_signals(
    label: Entailment,
    similarity: float,
    numeric: Optional[NumericCheck] = None,
    *,
    cited_support: Optional[float] = None,
    is_cited_source: bool = True,
    weights: SignalWeights = DEFAULT_WEIGHTS,
) -> AggregatedVerdict:
    """
    `cited_support` is the best similarity among the claim's own cited sources
    (None when the claim cites nothing). Pure: same inputs, same verdict.
    """
    sim = _clamp(similarity)
    if cited_support is not None and not math.isfinite(cited_support):
        cited_support = 0.0
    issues: list[str] = []
    citation_mismatch = False

    conf = weights.base_for(label)
    conf *= (1.0 - weights.retrieval_blend) + weights.retrieval_blend * sim

    if sim < weights.min_retrieval_floor:
        conf *= weights.no_evidence_multiplier
        issues.append(Issue.CITATION_MISMATCH)
        citation_mismatch = True
    elif sim < weights.low_retrieval_threshold:
        conf *= weights.low_retrieval_multiplier
        issues.append(Issue.LOW_SIMILARITY)

    if (
        cited_support is not None
        and not is_cited_source
        and sim - cited_support > weights.uncited_source_gap
    ):
        conf *= weights.uncited_source_multiplier
        issues.append(Issue.UNCITED_SOURCE)
        citation_mismatch = True

    if numeric is not None and not numeric.match:
        conf *= weights.numeric_mismatch_multiplier
        issues.append(Issue.NUMERIC_MISMATCH)

    conf = _clamp(conf)
    return AggregatedVerdict(
        confidence=conf,
        level=confidence_level(conf, weights),
        issues=issues,
        citation_mismatch=citation_mismatch,
    )
