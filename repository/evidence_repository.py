# repository/evidence_repository.py
from typing import Optional
from uuid import uuid4
from pydantic import ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.evidence import PreparedEvidence
from repository.namespaces import EVIDENCE
import logging

logger = logging.getLogger(__name__)


class EvidenceRepository:
    """
    Redis-backed hand-off of PreparedEvidence from the search stage to a later
    verify call, keyed by an opaque evidence key.

    TTL is refreshed on every read.
    """

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(evidence_key: str) -> str:
        return f"{EVIDENCE}:{evidence_key}"

    async def put(self, evidence: PreparedEvidence) -> str:
        evidence_key = uuid4().hex
        r = await self._client()
        payload = evidence.model_dump_json().encode("utf-8")
        await r.set(self._key(evidence_key), payload, ex=self._ttl)
        return evidence_key

    async def get(self, evidence_key: str) -> Optional[PreparedEvidence]:
        if not evidence_key:
            return None
        r = await self._client()
        raw = await r.get(self._key(evidence_key))
        if raw is None:
            return None
        try:
            evidence = PreparedEvidence.model_validate_json(raw)
        except ValidationError:
            logger.error("evidence.blob.invalid key=%s", evidence_key)
            return None
        await r.expire(self._key(evidence_key), self._ttl)
        return evidence

    async def delete(self, evidence_key: str) -> int:
        r = await self._client()
        return int(await r.delete(self._key(evidence_key)))
