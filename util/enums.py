# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class Phase(str, Enum):
    IDLE = "idle"
    DECOMPOSITION = "decomposition"
    SEARCH = "search"
    SYNTHESIS = "synthesis"
    VERIFICATION = "verification"
    ADJUDICATION = "adjudication"
    COMPLETE = "complete"
    ERROR = "error"


# Stages in execution order; idle/complete/error are not runnable
STAGES: tuple[Phase, ...] = (
    Phase.DECOMPOSITION,
    Phase.SEARCH,
    Phase.SYNTHESIS,
    Phase.VERIFICATION,
    Phase.ADJUDICATION,
)


class Entailment(str, Enum):
    SUPPORTED = "SUPPORTED"
    NEUTRAL = "NEUTRAL"
    CONTRADICTED = "CONTRADICTED"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    INVALID_QUERY = ErrorInfo("Query must be a non-empty string", status.HTTP_400_BAD_REQUEST)
    QUERY_TOO_LONG = ErrorInfo("Query is too long", status.HTTP_400_BAD_REQUEST)
    EVIDENCE_REQUIRED = ErrorInfo(
        "preparedEvidence or evidenceKey required", status.HTTP_400_BAD_REQUEST
    )
    EVIDENCE_EXPIRED = ErrorInfo("Unknown or expired evidenceKey", status.HTTP_404_NOT_FOUND)
    RUN_NOT_FOUND = ErrorInfo("Unknown or expired runId", status.HTTP_404_NOT_FOUND)
    UPSTREAM_ERROR = ErrorInfo("Upstream service failed", status.HTTP_502_BAD_GATEWAY)
