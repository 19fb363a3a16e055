# core/entities.py
from dataclasses import dataclass, field
from typing import List, Optional
from model.evidence import Passage
from util.constants import Confidence
from util.enums import ConfidenceLevel, Entailment


@dataclass(frozen=True)
class SignalWeights:
    """
    Tunable constants for confidence aggregation.
    Defaults come from util.constants.Confidence.
    """

    supported: float = Confidence.SUPPORTED
    neutral: float = Confidence.NEUTRAL
    contradicted: float = Confidence.CONTRADICTED
    retrieval_blend: float = Confidence.RETRIEVAL_BLEND
    low_retrieval_threshold: float = Confidence.LOW_RETRIEVAL_THRESHOLD
    low_retrieval_multiplier: float = Confidence.LOW_RETRIEVAL_MULTIPLIER
    min_retrieval_floor: float = Confidence.MIN_RETRIEVAL_FLOOR
    no_evidence_multiplier: float = Confidence.NO_EVIDENCE_MULTIPLIER
    uncited_source_multiplier: float = Confidence.UNCITED_SOURCE_MULTIPLIER
    uncited_source_gap: float = Confidence.UNCITED_SOURCE_GAP
    numeric_mismatch_multiplier: float = Confidence.NUMERIC_MISMATCH_MULTIPLIER
    high_threshold: float = Confidence.HIGH_THRESHOLD
    medium_threshold: float = Confidence.MEDIUM_THRESHOLD

    def base_for(self, label: Entailment) -> float:
        if label == Entailment.SUPPORTED:
            return self.supported
        if label == Entailment.CONTRADICTED:
            return self.contradicted
        return self.neutral


@dataclass
class EntailmentResult:
    label: Entailment
    reasoning: str = ""


@dataclass
class RetrievalResult:
    """
    Best passage for one claim. `cited_best` is the strongest passage among the
    claim's own [n] sources, when it cites any.
    """

    passage_index: int
    passage: Passage
    similarity: float
    cited_best: Optional[float] = None
    is_cited_source: bool = False


@dataclass
class AggregatedVerdict:
    confidence: float
    level: ConfidenceLevel
    issues: List[str] = field(default_factory=list)
    citation_mismatch: bool = False
