# model/claim.py
from pydantic import BaseModel, Field, model_validator
from util.enums import ConfidenceLevel, Entailment


class Claim(BaseModel):
    id: str
    text: str
    numbers: list[str] = Field(default_factory=list)
    citedSources: list[int] = Field(default_factory=list)


class NumericCheck(BaseModel):
    claimNumbers: list[str]
    evidenceNumbers: list[str]
    match: bool


class BestMatchingSource(BaseModel):
    sourceId: str
    sourceTitle: str
    sourceIndex: int
    passage: str
    similarity: float
    isCitedSource: bool = False


class VerifiedClaim(BaseModel):
    id: str
    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    confidenceLevel: ConfidenceLevel
    entailment: Entailment
    entailmentReasoning: str = ""
    bestMatchingSource: BestMatchingSource | None = None
    citationMismatch: bool = False
    citedSourceSupport: float = 0.0
    globalBestSupport: float = 0.0
    numericCheck: NumericCheck | None = None
    issues: list[str] = Field(default_factory=list)


class VerificationSummary(BaseModel):
    supported: int = 0
    uncertain: int = 0
    contradicted: int = 0
    citationMismatches: int = 0
    numericMismatches: int = 0


class VerificationReport(BaseModel):
    claims: list[VerifiedClaim] = Field(default_factory=list)
    overallConfidence: int = Field(default=0, ge=0, le=100)
    summary: VerificationSummary = Field(default_factory=VerificationSummary)
    durationMs: int = 0

    @model_validator(mode="after")
    def _summary_covers_claims(self) -> "VerificationReport":
        s = self.summary
        if s.supported + s.uncertain + s.contradicted != len(self.claims):
            raise ValueError("summary counts must add up to the number of claims")
        return self
