from typing import Final


class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    DECOMPOSE = V1 + "/decompose"
    SEARCH = V1 + "/search"
    SYNTHESIZE = V1 + "/synthesize"
    VERIFY = V1 + "/verify"
    ADJUDICATE = V1 + "/adjudicate"
    RUN = V1 + "/run"
    RUN_STATE = V1 + "/runs/{run_id}"
    HIGHLIGHT = V1 + "/highlight"


class ExternalURIs:
    OPENROUTER_CHAT = "https://openrouter.ai/api/v1/chat/completions"
    OPENROUTER_EMBEDDINGS = "https://openrouter.ai/api/v1/embeddings"
    TAVILY_SEARCH = "https://api.tavily.com/search"


class Confidence:
    # Level buckets for a single claim's confidence in [0, 1]
    HIGH_THRESHOLD: Final[float] = 0.7
    MEDIUM_THRESHOLD: Final[float] = 0.4

    # Base confidence by entailment label
    SUPPORTED: Final[float] = 1.0
    NEUTRAL: Final[float] = 0.55
    CONTRADICTED: Final[float] = 0.15

    # Share of the score that follows retrieval similarity (0 = ignore it)
    RETRIEVAL_BLEND: Final[float] = 0.2

    LOW_RETRIEVAL_THRESHOLD: Final[float] = 0.45
    LOW_RETRIEVAL_MULTIPLIER: Final[float] = 0.7

    # Below this floor no passage counts as matched evidence
    MIN_RETRIEVAL_FLOOR: Final[float] = 0.2
    NO_EVIDENCE_MULTIPLIER: Final[float] = 0.5

    UNCITED_SOURCE_MULTIPLIER: Final[float] = 0.85
    UNCITED_SOURCE_GAP: Final[float] = 0.12

    NUMERIC_MISMATCH_MULTIPLIER: Final[float] = 0.35

    # Weight of a CONTRADICTED claim in the overall score
    CONTRADICTED_WEIGHT: Final[float] = 3.0

    # Confidence assigned to a claim whose verification raised
    FAILED_CLAIM: Final[float] = 0.1


class Issue:
    NUMERIC_MISMATCH: Final[str] = "numeric mismatch"
    CITATION_MISMATCH: Final[str] = "citation mismatch"
    UNCITED_SOURCE: Final[str] = "uncited source"
    LOW_SIMILARITY: Final[str] = "low retrieval similarity"
    VERIFICATION_FAILED: Final[str] = "verification failed"


class Passages:
    MIN_LENGTH: Final[int] = 20
    WINDOW_SIZES: Final[tuple[int, ...]] = (1, 2, 3)
    # 200 rows x 3072 float32 cols ~ 3.3MB of base64
    MAX_FOR_TRANSFER: Final[int] = 200
    MAX_CHARS_PER_SOURCE: Final[int] = 15000


class Claims:
    MIN_CHARS: Final[int] = 25
    MIN_WORDS: Final[int] = 4


class Alignment:
    MATCH_THRESHOLD: Final[float] = 0.5
    MIN_SPAN_TOKENS: Final[int] = 3
    MIN_TOKEN_LENGTH: Final[int] = 3


MAX_QUERY_LENGTH: Final[int] = 50000
