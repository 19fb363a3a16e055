# controller/pipeline_controller.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
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
from model.highlight import ClaimMapping
from model.pipeline import PipelineState
from service.pipeline_service import PipelineService
from util.constants import InternalURIs
from controller.controller_dependencies import get_pipeline_service, rate_limiter

NDJSON = "application/x-ndjson"

pipeline_router = APIRouter(dependencies=[Depends(rate_limiter)])


@pipeline_router.post(InternalURIs.DECOMPOSE, response_model=DecomposeResponse)
async def decompose(
    payload: DecomposeRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> DecomposeResponse:
    return await service.decompose(payload)


@pipeline_router.post(InternalURIs.SEARCH, response_model=SearchResponse)
async def search(
    payload: SearchRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> SearchResponse:
    return await service.search(payload)


@pipeline_router.post(InternalURIs.SYNTHESIZE)
async def synthesize(
    payload: SynthesizeRequest,
    service: PipelineService = Depends(get_pipeline_service),
):
    return StreamingResponse(service.synthesize_stream(payload), media_type=NDJSON)


@pipeline_router.post(InternalURIs.VERIFY)
async def verify(
    payload: VerifyRequest,
    service: PipelineService = Depends(get_pipeline_service),
):
    # Resolved before streaming so a missing key is a 4xx, not a stream error
    evidence = await service.resolve_evidence(payload)
    return StreamingResponse(service.verify_stream(payload, evidence), media_type=NDJSON)


@pipeline_router.post(InternalURIs.ADJUDICATE)
async def adjudicate(
    payload: AdjudicateRequest,
    service: PipelineService = Depends(get_pipeline_service),
):
    return StreamingResponse(service.adjudicate_stream(payload), media_type=NDJSON)


@pipeline_router.post(InternalURIs.RUN)
async def run(
    payload: RunRequest,
    request: Request,
    service: PipelineService = Depends(get_pipeline_service),
):
    generator = service.run_stream(payload, is_disconnected=request.is_disconnected)
    return StreamingResponse(generator, media_type=NDJSON)


@pipeline_router.get(InternalURIs.RUN_STATE, response_model=PipelineState)
async def get_run(
    run_id: str,
    service: PipelineService = Depends(get_pipeline_service),
) -> PipelineState:
    return await service.get_run(run_id)


@pipeline_router.post(InternalURIs.HIGHLIGHT, response_model=ClaimMapping)
async def highlight(
    payload: HighlightRequest,
    service: PipelineService = Depends(get_pipeline_service),
) -> ClaimMapping:
    return service.highlight(payload)
