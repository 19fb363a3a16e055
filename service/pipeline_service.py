# service/pipeline_service.py
import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional
from redis.exceptions import RedisError
from core.adjudicator import adjudicate
from core.claim_matcher import map_claims_to_text
from core.config_factory import default_execution_config
from core.decomposer import decompose_query, validate_query
from core.passages import prepare_evidence
from core.phase_controller import PhaseController
from core.pipeline import run_pipeline
from core.streaming import ndjson_stream
from core.synthesizer import synthesize
from core.verification_pipeline import verify_claims_stream
from model.api import (
    AdjudicateRequest,
    DecomposeRequest,
    DecomposeResponse,
    HighlightRequest,
    RunRequest,
    SearchRequest,
    SearchResponse,
    SynthesizeRequest,
    VerifyRequest,
)
from model.evidence import PreparedEvidence
from model.highlight import ClaimMapping
from model.pipeline import PipelineState
from repository.evidence_repository import EvidenceRepository
from repository.run_repository import RunRepository
from service.search_service import SearchService
from util.enums import ErrorMessage
from util.errors import AppError
from util.types import PhaseEvent

logger = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]


class PipelineService:
    def __init__(
        self,
        evidence: EvidenceRepository,
        runs: RunRepository,
        search: Optional[SearchService] = None,
    ) -> None:
        self._evidence = evidence
        self._runs = runs
        self._search = search or SearchService()

    async def decompose(self, req: DecomposeRequest) -> DecomposeResponse:
        decomposition, config = await decompose_query(req.query, preset=req.preset)
        return DecomposeResponse(decomposition=decomposition, config=config)

    async def search(self, req: SearchRequest) -> SearchResponse:
        """
        Search every sub-query, embed the passages once and park them in Redis
        under an evidence key for the verify call.
        """
        config = req.config or default_execution_config()
        output = await self._search.parallel_search(req.subQueries, config.resultsPerQuery)
        prepared = await prepare_evidence(output.sources)
        evidence_key = await self._evidence.put(prepared)
        logger.info(
            "search.evidence.stored key=%s passages=%d", evidence_key, len(prepared.passages)
        )
        return SearchResponse(
            sources=output.sources,
            searchMetadata=output.searchMetadata,
            evidenceKey=evidence_key,
            preparedEvidence=prepared if req.inlineEvidence else None,
            durationMs=output.durationMs,
        )

    def synthesize_stream(self, req: SynthesizeRequest) -> AsyncIterator[bytes]:
        validate_query(req.query)
        model = req.config.synthesisModel if req.config else None
        return ndjson_stream(synthesize(req.query, req.sources, model=model))

    async def resolve_evidence(self, req: VerifyRequest) -> PreparedEvidence:
        """
        Inline evidence wins, then the stored evidence key. With neither, the
        passages are rebuilt from the request's sources.
        """
        if req.preparedEvidence is not None:
            return req.preparedEvidence
        if req.evidenceKey:
            found = await self._evidence.get(req.evidenceKey)
            if found is None:
                raise AppError.of(ErrorMessage.EVIDENCE_EXPIRED)
            return found
        if req.sources:
            logger.info("verify.evidence.rebuild sources=%d", len(req.sources))
            return await prepare_evidence(req.sources)
        raise AppError.of(ErrorMessage.EVIDENCE_REQUIRED)

    def verify_stream(self, req: VerifyRequest, evidence: PreparedEvidence) -> AsyncIterator[bytes]:
        return ndjson_stream(
            verify_claims_stream(
                req.answer,
                evidence,
                max_claims=req.maxClaimsToVerify,
                concurrency=req.verificationConcurrency,
            )
        )

    def adjudicate_stream(self, req: AdjudicateRequest) -> AsyncIterator[bytes]:
        validate_query(req.query)
        model = req.config.adjudicatorModel if req.config else None
        return ndjson_stream(adjudicate(req.query, req.answer, req.verification, model=model))

    async def _save_state(self, state: PipelineState) -> None:
        try:
            await self._runs.save(state)
        except RedisError as e:
            logger.error("runs.save.error run=%s err=%s", state.runId, e)

    def run_stream(
        self, req: RunRequest, is_disconnected: Optional[DisconnectProbe] = None
    ) -> AsyncIterator[bytes]:
        """
        Full pipeline as NDJSON. A supplied state resumes from its first
        unfinished stage; every phase boundary is snapshotted to Redis.
        """
        if req.state is not None:
            try:
                PhaseController.from_state(req.state)
            except ValueError as e:
                raise AppError(str(e)) from e
            query = req.state.query
        else:
            query = validate_query(req.query)
        cancel = asyncio.Event()
        events = run_pipeline(
            query,
            state=req.state,
            preset=req.preset,
            cancel=cancel,
            on_state=self._save_state,
        )
        return ndjson_stream(self._watch(events, cancel, is_disconnected))

    @staticmethod
    async def _watch(
        events: AsyncIterator[PhaseEvent],
        cancel: asyncio.Event,
        is_disconnected: Optional[DisconnectProbe],
    ) -> AsyncIterator[PhaseEvent]:
        async for event in events:
            if is_disconnected is not None and await is_disconnected():
                logger.info("run.client.disconnected")
                cancel.set()
            yield event

    async def get_run(self, run_id: str) -> PipelineState:
        state = await self._runs.get(run_id)
        if state is None:
            raise AppError.of(ErrorMessage.RUN_NOT_FOUND)
        await self._runs.touch(run_id)
        return state

    @staticmethod
    def highlight(req: HighlightRequest) -> ClaimMapping:
        return map_claims_to_text(req.text, req.claims)
