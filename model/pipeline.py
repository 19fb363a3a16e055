# model/pipeline.py
from typing import Literal
from pydantic import BaseModel, Field
from model.claim import VerificationReport
from model.evidence import PreparedEvidence, Source
from util.enums import Phase

Complexity = Literal["simple", "standard", "deep_research"]
SearchStatus = Literal["complete", "failed", "no_results"]


class SubQuery(BaseModel):
    id: str
    query: str
    purpose: str = ""


class ExecutionConfig(BaseModel):
    complexity: Complexity = "standard"
    reasoning: str = ""
    maxSubQueries: int
    resultsPerQuery: int
    verificationConcurrency: int
    maxClaimsToVerify: int
    synthesisModel: str
    adjudicatorModel: str


class DecompositionOutput(BaseModel):
    originalQuery: str
    subQueries: list[SubQuery]
    reasoning: str = ""
    complexity: Complexity = "standard"
    durationMs: int = 0


class SearchMetadata(BaseModel):
    queryId: str
    query: str
    sourcesFound: int
    status: SearchStatus


class SearchOutput(BaseModel):
    sources: list[Source]
    searchMetadata: list[SearchMetadata] = Field(default_factory=list)
    evidence: PreparedEvidence | None = None
    durationMs: int = 0


class SynthesisOutput(BaseModel):
    answer: str
    sourcesUsed: list[str] = Field(default_factory=list)
    durationMs: int = 0


class AdjudicationOutput(BaseModel):
    text: str
    durationMs: int = 0


class PipelineState(BaseModel):
    """
    Everything a later stage needs, as plain data.
    A caller may persist this and hand it back verbatim to resume a run.
    """

    runId: str
    query: str
    phase: Phase = Phase.IDLE
    completedPhases: list[Phase] = Field(default_factory=list)
    phaseDurations: dict[str, int] = Field(default_factory=dict)
    phaseStartedAt: int | None = None  # epoch ms of the active phase
    failedPhase: Phase | None = None
    error: str | None = None
    aborted: bool = False
    config: ExecutionConfig | None = None

    decomposition: DecompositionOutput | None = None
    search: SearchOutput | None = None
    synthesis: SynthesisOutput | None = None
    verification: VerificationReport | None = None
    adjudication: AdjudicationOutput | None = None
