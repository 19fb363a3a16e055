# tests/test_decomposer.py
import pytest
from core.config_factory import QUALITY_PRESETS, create_execution_config
from core.decomposer import decompose_query, validate_decomposition_output, validate_query
from model.pipeline import DecompositionOutput, SubQuery
from util.constants import MAX_QUERY_LENGTH
from util.errors import AppError


def scripted_chat(reply):
    async def chat(**kwargs):
        chat.kwargs = kwargs
        return reply

    return chat


def test_validate_query():
    assert validate_query("  what is EV adoption?  ") == "what is EV adoption?"
    with pytest.raises(AppError) as err:
        validate_query("   ")
    assert err.value.status_code == 400
    with pytest.raises(AppError):
        validate_query("x" * (MAX_QUERY_LENGTH + 1))


@pytest.mark.asyncio
async def test_sub_queries_are_renumbered_deduped_and_capped():
    chat = scripted_chat(
        {
            "complexity": "simple",
            "reasoning": "single fact",
            "subQueries": [
                {"id": "a", "query": "tesla 2024 revenue", "purpose": "figure"},
                {"id": "b", "query": "Tesla 2024 Revenue"},
                {"id": "c", "query": ""},
                {"id": "d", "query": "tesla 10-K"},
                {"id": "e", "query": "tesla annual report"},
            ],
        }
    )
    output, config = await decompose_query("What was Tesla's 2024 revenue?", chat=chat)

    assert config.complexity == "simple"
    assert [(q.id, q.query) for q in output.subQueries] == [
        ("q1", "tesla 2024 revenue"),
        ("q2", "tesla 10-K"),
    ]
    assert output.subQueries[0].purpose == "figure"
    assert output.reasoning == "single fact"
    assert "What was Tesla's 2024 revenue?" in chat.kwargs["user"]


@pytest.mark.asyncio
async def test_unusable_reply_falls_back_to_the_query():
    output, config = await decompose_query("Why is the sky blue?", chat=scripted_chat({}))
    assert [(q.id, q.query) for q in output.subQueries] == [("q1", "Why is the sky blue?")]
    assert config.complexity == "standard"
    assert validate_decomposition_output(output)


@pytest.mark.asyncio
async def test_unknown_complexity_is_standard_and_preset_applies():
    chat = scripted_chat({"complexity": "galaxy-brain", "subQueries": [{"query": "q"}]})
    _, config = await decompose_query("question", preset="medium", chat=chat)
    assert config.complexity == "standard"
    assert config.synthesisModel == QUALITY_PRESETS["medium"].synthesis_model
    assert config.verificationConcurrency == QUALITY_PRESETS["medium"].verification_concurrency


def test_deep_research_budget():
    cfg = create_execution_config("deep_research")
    assert (cfg.maxSubQueries, cfg.resultsPerQuery, cfg.maxClaimsToVerify) == (7, 8, 100)


def test_duplicate_ids_are_invalid():
    output = DecompositionOutput(
        originalQuery="q",
        subQueries=[SubQuery(id="q1", query="a"), SubQuery(id="q1", query="b")],
    )
    with pytest.raises(ValueError):
        validate_decomposition_output(output)


@pytest.mark.asyncio
async def test_malformed_decomposition_is_rejected(monkeypatch):
    from core import decomposer

    monkeypatch.setattr(
        decomposer,
        "_normalize_sub_queries",
        lambda raw, limit: [SubQuery(id="q1", query="a"), SubQuery(id="q1", query="b")],
    )
    chat = scripted_chat({"subQueries": [{"query": "a"}, {"query": "b"}]})
    with pytest.raises(ValueError, match="duplicate sub-query ids"):
        await decompose_query("question", chat=chat)
