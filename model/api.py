# model/api.py
from typing import Literal
from pydantic import BaseModel, Field
from model.claim import VerificationReport, VerifiedClaim
from model.evidence import PreparedEvidence, Source
from model.pipeline import (
    DecompositionOutput,
    ExecutionConfig,
    PipelineState,
    SearchMetadata,
    SubQuery,
)

QualityPresetName = Literal["fast", "medium", "slow"]


class DecomposeRequest(BaseModel):
    query: str
    preset: QualityPresetName | None = None


class DecomposeResponse(BaseModel):
    decomposition: DecompositionOutput
    config: ExecutionConfig


class SearchRequest(BaseModel):
    subQueries: list[SubQuery] = Field(min_length=1)
    config: ExecutionConfig | None = None
    inlineEvidence: bool = False


class SearchResponse(BaseModel):
    sources: list[Source]
    searchMetadata: list[SearchMetadata]
    evidenceKey: str | None = None
    preparedEvidence: PreparedEvidence | None = None
    durationMs: int = 0


class SynthesizeRequest(BaseModel):
    query: str
    sources: list[Source]
    config: ExecutionConfig | None = None


class VerifyRequest(BaseModel):
    answer: str
    sources: list[Source] = Field(default_factory=list)
    preparedEvidence: PreparedEvidence | None = None
    evidenceKey: str | None = None
    maxClaimsToVerify: int | None = Field(default=None, ge=0)
    verificationConcurrency: int | None = Field(default=None, ge=1)


class AdjudicateRequest(BaseModel):
    query: str
    answer: str
    verification: VerificationReport
    config: ExecutionConfig | None = None


class RunRequest(BaseModel):
    query: str = ""
    state: PipelineState | None = None
    preset: QualityPresetName | None = None


class HighlightRequest(BaseModel):
    text: str
    claims: list[VerifiedClaim] = Field(default_factory=list)
