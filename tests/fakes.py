# tests/fakes.py
"""In-process stand-ins for the embedding service and the entailment judge."""
import asyncio
import re
import zlib
from typing import Dict, List, Optional, Sequence
import numpy as np
from core.entities import EntailmentResult
from util.enums import Entailment

DIM = 1024
_TOKEN = re.compile(r"[a-z0-9]+")


def bow_vector(text: str) -> np.ndarray:
    v = np.zeros(DIM, dtype=np.float32)
    for tok in _TOKEN.findall(text.lower()):
        v[zlib.crc32(tok.encode("utf-8")) % DIM] += 1.0
    return v


class BowEmbedder:
    """Bag-of-words hashing embedder; counts how many texts it was asked for."""

    def __init__(self) -> None:
        self.texts: List[str] = []

    async def __call__(self, texts: Sequence[str]) -> np.ndarray:
        self.texts.extend(texts)
        return np.stack([bow_vector(t) for t in texts])


class ScriptedJudge:
    """
    Returns the label of the first keyword found in the claim, NEUTRAL
    otherwise. Keywords mapped to an exception raise it instead.
    """

    def __init__(
        self,
        labels: Optional[Dict[str, Entailment]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.labels = labels or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, claim: str, evidence: str) -> EntailmentResult:
        self.calls.append((claim, evidence))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            lowered = claim.lower()
            for key, delay in self.delays.items():
                if key in lowered:
                    await asyncio.sleep(delay)
            await asyncio.sleep(0)
            for key, exc in self.failures.items():
                if key in lowered:
                    raise exc
            for key, label in self.labels.items():
                if key in lowered:
                    return EntailmentResult(label=label, reasoning=f"matched {key}")
            return EntailmentResult(label=Entailment.NEUTRAL, reasoning="not addressed")
        finally:
            self.in_flight -= 1
