# repository/run_repository.py
from typing import Final, Optional
from pydantic import ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.pipeline import PipelineState
from repository.namespaces import RUNS
import logging

KEY_PREFIX: Final[str] = RUNS
logger = logging.getLogger(__name__)


class RunRepository:
    """
    Latest PipelineState snapshot per run id. Newer snapshots overwrite older
    ones; a caller resumes a run by reading it back and passing it to /run.
    """

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(run_id: str) -> str:
        return f"{KEY_PREFIX}:{run_id}"

    async def save(self, state: PipelineState) -> None:
        r = await self._client()
        payload = state.model_dump_json().encode("utf-8")
        await r.set(self._key(state.runId), payload, ex=self._ttl)

    async def get(self, run_id: str) -> Optional[PipelineState]:
        if not run_id:
            return None
        r = await self._client()
        raw = await r.get(self._key(run_id))
        if raw is None:
            return None
        try:
            return PipelineState.model_validate_json(raw)
        except ValidationError:
            logger.error("runs.snapshot.invalid run=%s", run_id)
            return None

    async def touch(self, run_id: str) -> bool:
        if not run_id:
            return False
        r = await self._client()
        return bool(await r.expire(self._key(run_id), self._ttl))

    async def delete(self, run_id: str) -> int:
        if not run_id:
            return 0
        r = await self._client()
        return int(await r.delete(self._key(run_id)))
