# controller/controller_dependencies.py
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from repository.evidence_repository import EvidenceRepository
from repository.run_repository import RunRepository
from service.pipeline_service import PipelineService

rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)


def get_pipeline_service() -> PipelineService:
    _evidence = EvidenceRepository()
    _runs = RunRepository()
    _service = PipelineService(_evidence, _runs)
    return _service
