# tests/test_phase_controller.py
import pytest
from core.phase_controller import PhaseController
from model.claim import VerificationReport
from model.pipeline import (
    AdjudicationOutput,
    DecompositionOutput,
    PipelineState,
    SearchOutput,
    SubQuery,
    SynthesisOutput,
)
from util.enums import STAGES, Phase
from util.errors import PhaseTransitionError


class Clock:
    def __init__(self, t: int = 1_000) -> None:
        self.t = t

    def __call__(self) -> int:
        return self.t


OUTPUTS = {
    Phase.DECOMPOSITION: DecompositionOutput(
        originalQuery="q", subQueries=[SubQuery(id="q1", query="q")]
    ),
    Phase.SEARCH: SearchOutput(sources=[]),
    Phase.SYNTHESIS: SynthesisOutput(answer="a"),
    Phase.VERIFICATION: VerificationReport(),
    Phase.ADJUDICATION: AdjudicationOutput(text="t"),
}


def test_new_run_starts_idle():
    ctl = PhaseController.new("q", run_id="r1")
    assert ctl.phase == Phase.IDLE
    assert ctl.state.runId == "r1"
    assert ctl.next_phase() == Phase.DECOMPOSITION
    assert ctl.elapsed_ms() == 0


def test_stages_cannot_be_skipped():
    ctl = PhaseController.new("q")
    with pytest.raises(PhaseTransitionError):
        ctl.begin(Phase.SEARCH)


def test_full_run_records_outputs_and_durations():
    clock = Clock()
    ctl = PhaseController.new("q", clock=clock)
    for n, phase in enumerate(STAGES, start=1):
        assert ctl.begin(phase) == {"type": "phase-start", "phase": phase.value}
        clock.t += 10 * n
        assert ctl.elapsed_ms() == 10 * n
        event = ctl.complete(phase, OUTPUTS[phase])
        assert event["type"] == "phase-complete"
        assert event["data"] is OUTPUTS[phase]
        assert getattr(ctl.state, phase.value) is OUTPUTS[phase]

    assert ctl.phase == Phase.COMPLETE
    assert ctl.is_terminal
    assert ctl.state.completedPhases == list(STAGES)
    assert ctl.state.phaseDurations == {p.value: 10 * n for n, p in enumerate(STAGES, start=1)}
    with pytest.raises(PhaseTransitionError):
        ctl.begin(Phase.DECOMPOSITION)


def test_complete_requires_an_active_phase():
    ctl = PhaseController.new("q")
    with pytest.raises(PhaseTransitionError):
        ctl.complete(Phase.DECOMPOSITION, OUTPUTS[Phase.DECOMPOSITION])
    ctl.begin(Phase.DECOMPOSITION)
    ctl.complete(Phase.DECOMPOSITION, OUTPUTS[Phase.DECOMPOSITION])
    with pytest.raises(PhaseTransitionError):
        ctl.complete(Phase.DECOMPOSITION, OUTPUTS[Phase.DECOMPOSITION])


def test_fail_is_terminal():
    clock = Clock()
    ctl = PhaseController.new("q", clock=clock)
    ctl.begin(Phase.DECOMPOSITION)
    clock.t += 40
    event = ctl.fail("boom")

    assert event == {"type": "error", "phase": "decomposition", "message": "boom"}
    assert ctl.phase == Phase.ERROR
    assert ctl.state.failedPhase == Phase.DECOMPOSITION
    assert ctl.state.error == "boom"
    assert ctl.state.phaseDurations["decomposition"] == 40
    with pytest.raises(PhaseTransitionError):
        ctl.fail("again")
    with pytest.raises(PhaseTransitionError):
        ctl.begin(Phase.DECOMPOSITION)


def test_fail_before_any_stage_blames_the_next_one():
    ctl = PhaseController.new("q")
    assert ctl.fail("no key")["phase"] == "decomposition"


def test_abort_keeps_the_run_resumable():
    ctl = PhaseController.new("q")
    ctl.begin(Phase.DECOMPOSITION)
    ctl.complete(Phase.DECOMPOSITION, OUTPUTS[Phase.DECOMPOSITION])
    ctl.begin(Phase.SEARCH)
    ctl.abort()

    assert ctl.state.aborted is True
    assert ctl.phase == Phase.SEARCH
    assert ctl.elapsed_ms() == 0
    assert ctl.next_phase() == Phase.SEARCH

    ctl.begin(Phase.SEARCH)
    assert ctl.state.aborted is False


def test_resume_from_serialized_state():
    ctl = PhaseController.new("q", run_id="r1")
    ctl.begin(Phase.DECOMPOSITION)
    ctl.complete(Phase.DECOMPOSITION, OUTPUTS[Phase.DECOMPOSITION])

    restored = PipelineState.model_validate_json(ctl.state.model_dump_json())
    resumed = PhaseController.from_state(restored)
    assert resumed.next_phase() == Phase.SEARCH
    assert resumed.state.decomposition.subQueries[0].query == "q"

    resumed.begin(Phase.SEARCH)
    assert restored.phase == Phase.DECOMPOSITION


def test_out_of_order_state_is_rejected():
    state = PipelineState(
        runId="r1", query="q", completedPhases=[Phase.SEARCH], search=OUTPUTS[Phase.SEARCH]
    )
    with pytest.raises(ValueError):
        PhaseController.from_state(state)


def test_completed_phase_without_output_is_rejected():
    state = PipelineState(runId="r1", query="q", completedPhases=[Phase.DECOMPOSITION])
    with pytest.raises(ValueError):
        PhaseController.from_state(state)
