# core/config_factory.py
from typing import Dict, Literal, NamedTuple, Optional
from config.settings import settings
from model.pipeline import Complexity, ExecutionConfig

QualityPreset = Literal["fast", "medium", "slow"]


class PresetInfo(NamedTuple):
    synthesis_model: str
    verification_concurrency: int
    description: str


QUALITY_PRESETS: Dict[str, PresetInfo] = {
    "fast": PresetInfo("google/gemini-3-flash-preview", 8, "Fastest response, good quality"),
    "medium": PresetInfo("anthropic/claude-sonnet-4.5", 6, "Balanced quality and speed"),
    "slow": PresetInfo("anthropic/claude-sonnet-4.5", 4, "Highest quality, thorough verification"),
}


def create_execution_config(
    complexity: Complexity,
    reasoning: str = "",
    preset: Optional[QualityPreset] = None,
) -> ExecutionConfig:
    """
    Search and verification budgets scaled to how hard the question is.
    A quality preset, when given, overrides the synthesis model and the
    verification concurrency.
    """
    if complexity == "deep_research":
        cfg = ExecutionConfig(
            complexity=complexity,
            reasoning=reasoning,
            maxSubQueries=7,
            resultsPerQuery=8,
            verificationConcurrency=8,
            maxClaimsToVerify=100,
            synthesisModel="anthropic/claude-sonnet-4.5",
            adjudicatorModel="google/gemini-3-pro-preview",
        )
    elif complexity == "simple":
        cfg = ExecutionConfig(
            complexity=complexity,
            reasoning=reasoning,
            maxSubQueries=2,
            resultsPerQuery=4,
            verificationConcurrency=8,
            maxClaimsToVerify=5,
            synthesisModel=settings.SYNTHESIS_MODEL,
            adjudicatorModel=settings.ADJUDICATOR_MODEL,
        )
    else:
        cfg = ExecutionConfig(
            complexity="standard",
            reasoning=reasoning,
            maxSubQueries=settings.MAX_SUB_QUERIES,
            resultsPerQuery=settings.RESULTS_PER_QUERY,
            verificationConcurrency=settings.VERIFICATION_CONCURRENCY,
            maxClaimsToVerify=settings.MAX_CLAIMS_TO_VERIFY,
            synthesisModel=settings.SYNTHESIS_MODEL,
            adjudicatorModel=settings.ADJUDICATOR_MODEL,
        )

    if preset is not None:
        info = QUALITY_PRESETS[preset]
        cfg = cfg.model_copy(
            update={
                "synthesisModel": info.synthesis_model,
                "verificationConcurrency": info.verification_concurrency,
            }
        )
    return cfg


def default_execution_config() -> ExecutionConfig:
    return create_execution_config("standard")
