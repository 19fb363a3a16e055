# core/phase_controller.py
"""
Phase state machine for one pipeline run.

    idle -> decomposition -> search -> synthesis -> verification
         -> adjudication -> complete
    any non-terminal phase -> error

The controller owns a PipelineState and is the only writer of its phase
fields. Every completed stage's output is stored on the state, so a later
process can rebuild the controller from the serialized state alone.
"""
import uuid
from typing import Callable, Optional
from pydantic import BaseModel
from model.pipeline import PipelineState
from util.enums import STAGES, Phase
from util.errors import PhaseTransitionError
from util.timing import now_ms
from util.types import PhaseEvent
import logging

logger = logging.getLogger(__name__)

TERMINAL = (Phase.COMPLETE, Phase.ERROR)


class PhaseController:
    def __init__(self, state: PipelineState, clock: Callable[[], int] = now_ms) -> None:
        self._state = state
        self._clock = clock

    @classmethod
    def new(cls, query: str, run_id: Optional[str] = None, **kwargs) -> "PhaseController":
        return cls(PipelineState(runId=run_id or uuid.uuid4().hex, query=query), **kwargs)

    @classmethod
    def from_state(cls, state: PipelineState, **kwargs) -> "PhaseController":
        """
        Rebuild from a persisted state. Completed phases must be a prefix of
        the stage order and each must carry its output.
        """
        done = list(state.completedPhases)
        if done != list(STAGES[: len(done)]):
            raise ValueError(f"completed phases out of order: {[p.value for p in done]}")
        for p in done:
            if getattr(state, p.value) is None:
                raise ValueError(f"phase {p.value} is marked complete but has no output")
        return cls(state.model_copy(deep=True), **kwargs)

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def is_terminal(self) -> bool:
        return self._state.phase in TERMINAL

    def next_phase(self) -> Optional[Phase]:
        """First stage not yet completed, or None when all five are done."""
        done = set(self._state.completedPhases)
        for p in STAGES:
            if p not in done:
                return p
        return None

    def elapsed_ms(self) -> int:
        """Time spent in the active phase so far; 0 when none is running."""
        started = self._state.phaseStartedAt
        if started is None:
            return 0
        return max(0, self._clock() - started)

    def begin(self, phase: Phase) -> PhaseEvent:
        s = self._state
        if self.is_terminal or phase != self.next_phase():
            raise PhaseTransitionError(s.phase, phase)
        s.phase = phase
        s.phaseStartedAt = self._clock()
        s.aborted = False
        logger.info("phase.start run=%s phase=%s", s.runId, phase.value)
        return {"type": "phase-start", "phase": phase.value}

    def complete(self, phase: Phase, output: BaseModel) -> PhaseEvent:
        s = self._state
        if s.phase != phase or s.phaseStartedAt is None or phase in s.completedPhases:
            raise PhaseTransitionError(s.phase, phase)
        duration = self.elapsed_ms()
        setattr(s, phase.value, output)
        s.completedPhases.append(phase)
        s.phaseDurations[phase.value] = duration
        s.phaseStartedAt = None
        if self.next_phase() is None:
            s.phase = Phase.COMPLETE
        logger.info("phase.done run=%s phase=%s ms=%d", s.runId, phase.value, duration)
        return {"type": "phase-complete", "phase": phase.value, "data": output}

    def fail(self, message: str) -> PhaseEvent:
        s = self._state
        if self.is_terminal:
            raise PhaseTransitionError(s.phase, Phase.ERROR)
        failed = s.phase if s.phase in STAGES else self.next_phase()
        if failed is not None and s.phaseStartedAt is not None:
            s.phaseDurations[failed.value] = self.elapsed_ms()
        s.failedPhase = failed
        s.error = message
        s.phase = Phase.ERROR
        s.phaseStartedAt = None
        logger.error(
            "phase.failed run=%s phase=%s err=%s",
            s.runId,
            failed.value if failed else "-",
            message,
        )
        return {
            "type": "error",
            "phase": failed.value if failed else "",
            "message": message,
        }

    def abort(self) -> None:
        """
        Stop without an error: the phase stays where it was, `aborted` is set
        and the run can be resumed from this state.
        """
        s = self._state
        s.aborted = True
        s.phaseStartedAt = None
        logger.info("phase.aborted run=%s phase=%s", s.runId, s.phase.value)
