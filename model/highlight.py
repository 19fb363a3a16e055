# model/highlight.py
from pydantic import BaseModel, Field
from util.enums import ConfidenceLevel, Entailment


class SpanWithConfidence(BaseModel):
    text: str
    confidence: float | None = None
    confidenceLevel: ConfidenceLevel | None = None
    entailment: Entailment | None = None
    claimId: str | None = None
    matchScore: float = 0.0


class MappingStats(BaseModel):
    totalSpans: int = 0
    matchedSpans: int = 0
    avgConfidence: float = 0.0
    coveragePercent: int = 0


class ClaimMapping(BaseModel):
    spans: list[SpanWithConfidence] = Field(default_factory=list)
    stats: MappingStats = Field(default_factory=MappingStats)
