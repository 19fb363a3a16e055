# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.constants import ExternalURIs
from util.enums import Environment
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(..., validation_alias="APP_ENV")
    REDIS_URL: str = Field(..., validation_alias="REDIS_URL")
    PERSISTENCE_TTL_SECONDS: int = Field(
        default=2 * 60 * 60, validation_alias="PERSISTENCE_TTL_SECONDS"
    )

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(..., validation_alias="ALLOWED_ORIGIN")
    RATE_LIMIT_TIMES: int = Field(default=30, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # OpenRouter (generation, judge, embeddings)
    OPENROUTER_API_KEY: str = Field(..., validation_alias="OPENROUTER_API_KEY")
    OPENROUTER_API_URL: str = ExternalURIs.OPENROUTER_CHAT
    OPENROUTER_EMBEDDINGS_URL: str = ExternalURIs.OPENROUTER_EMBEDDINGS
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Tavily (retrieval)
    TAVILY_API_KEY: str = Field(..., validation_alias="TAVILY_API_KEY")
    TAVILY_API_URL: str = ExternalURIs.TAVILY_SEARCH
    SEARCH_DEPTH: str = "basic"
    SEARCH_TIMEOUT_SECONDS: float = 20.0

    # Models
    DECOMPOSITION_MODEL: str = "google/gemini-3-flash-preview"
    SYNTHESIS_MODEL: str = "google/gemini-3-flash-preview"
    NLI_MODEL: str = "google/gemini-3-flash-preview"
    ADJUDICATOR_MODEL: str = "google/gemini-3-flash-preview"

    # Embedding Engine
    EMBEDDING_PROVIDER: str = Field(default="openrouter", validation_alias="EMBEDDING_PROVIDER")
    EMBEDDING_MODEL: str = "google/gemini-embedding-001"
    EMBEDDING_MODEL_FALLBACK: str = "qwen/qwen3-embedding-8b"
    EMBEDDING_MAX_RETRIES: int = 2
    EMBEDDING_RETRY_DELAY_SECONDS: float = 0.5
    LOCAL_EMBEDDING_MODEL_NAME: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Pipeline budgets
    MIN_SUB_QUERIES: int = 3
    MAX_SUB_QUERIES: int = 5
    RESULTS_PER_QUERY: int = 5
    SYNTHESIS_MAX_TOKENS: int = 1500
    VERIFICATION_CONCURRENCY: int = Field(default=4, validation_alias="VERIFICATION_CONCURRENCY")
    MAX_CLAIMS_TO_VERIFY: int = Field(default=30, validation_alias="MAX_CLAIMS_TO_VERIFY")

    # Logging knobs
    LOGGER_NAME: str = "verity"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    # Prompts
    DECOMPOSE_SYSTEM_PROMPT: str = (
        "You plan web research. Split the user's question into focused, independently searchable "
        "sub-queries.\n"
        "\n"
        "RULES:\n"
        "- Each query is short and keyword-heavy (under 400 characters).\n"
        "- Cover distinct facets of the question; no two queries should return the same pages.\n"
        "- When the question asks about specific data (filings, releases, prices), aim at the primary "
        "authority for that data.\n"
        "- Judge complexity: 'simple' for single fact lookups, 'standard' for explanations and "
        "comparisons, 'deep_research' for multi-faceted analysis, forecasts, or medical/legal topics.\n"
        "\n"
        "OUTPUT: JSON ONLY, no code fences:\n"
        '{"reasoning":"...","complexity":"simple|standard|deep_research",'
        '"subQueries":[{"id":"q1","query":"...","purpose":"..."}]}\n'
    )

    SYNTHESIS_SYSTEM_PROMPT: str = (
        "You write research answers from numbered sources.\n"
        "\n"
        "RULES:\n"
        "- Objective and dense. Start with the answer; no first person, no filler.\n"
        "- Every factual sentence cites its source inline as [n] right after the fact; use [1][3] "
        "for several sources.\n"
        "- Cite only the numbered sources you were given.\n"
        "- When sources disagree, say so and cite both sides.\n"
        "- Markdown: ## headers for themes, lists with the number and text on one line, pipe tables.\n"
    )

    NLI_SYSTEM_PROMPT: str = (
        "You are a strict fact-checker performing natural language inference. Decide whether the "
        "EVIDENCE supports the CLAIM, contradicts it, or does not address it.\n"
        "\n"
        "Rules:\n"
        "- Judge ONLY from the evidence text.\n"
        "- Numbers must agree: '$96.8 billion' and '$96.8B' agree; 'grew 18%' and 'grew 15%' do not.\n"
        "- Direction must agree: 'grew' vs 'declined' is a contradiction.\n"
        "- A different entity, a plan instead of a fact, or outdated evidence is NEUTRAL, not "
        "CONTRADICTED.\n"
        '- Return JSON ONLY: {"verdict":"SUPPORTED|CONTRADICTED|NEUTRAL","reasoning":"..."}\n'
        "- No code fences.\n"
    )

    ADJUDICATOR_SYSTEM_PROMPT: str = (
        "You give the final answer in a verified research pipeline. You receive the user's question "
        "and claims grouped as VERIFIED, DISPUTED (with the evidence that refutes them) and "
        "UNVERIFIED.\n"
        "\n"
        "Rules:\n"
        "- Answer the question directly from VERIFIED claims.\n"
        "- For a relevant DISPUTED claim, state what the evidence actually shows.\n"
        "- Keep central UNVERIFIED claims but hedge them; drop only DISPUTED ones.\n"
        "- Never mention a draft, a verification step, or yourself.\n"
        "- Say precisely what remains unknown.\n"
        "- End with a short '## Final Verdict' section.\n"
    )


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
