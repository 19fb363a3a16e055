# core/pipeline.py
import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple, TypeVar
from pydantic import BaseModel
from core.adjudicator import adjudicate
from core.config_factory import QualityPreset, default_execution_config
from core.decomposer import decompose_query
from core.passages import prepare_evidence
from core.phase_controller import PhaseController
from core.synthesizer import synthesize
from core.verification_pipeline import verify_claims_stream
from model.pipeline import ExecutionConfig, PipelineState, SearchOutput
from service.search_service import SearchService
from util.enums import Phase
from util.errors import PipelineAborted
from util.logger import bind_run
from util.timing import now_ms
from util.types import PhaseEvent
import logging

logger = logging.getLogger(__name__)

StateSink = Callable[[PipelineState], Awaitable[None]]
T = TypeVar("T")


def _default_search() -> Callable[..., AsyncIterator[Any]]:
    return SearchService().iter_search


@dataclass
class Collaborators:
    """Stage implementations; tests swap any of them for fakes."""

    decompose: Callable[..., Awaitable[Tuple[Any, ExecutionConfig]]] = decompose_query
    search: Callable[..., AsyncIterator[Any]] = field(default_factory=_default_search)
    prepare: Callable[..., Awaitable[Any]] = prepare_evidence
    synthesize: Callable[..., AsyncIterator[PhaseEvent]] = synthesize
    verify: Callable[..., AsyncIterator[PhaseEvent]] = verify_claims_stream
    adjudicate: Callable[..., AsyncIterator[PhaseEvent]] = adjudicate


def _require(value: Optional[T], what: str) -> T:
    if value is None:
        raise RuntimeError(f"missing {what} output")
    return value


def _error_message(e: Exception) -> str:
    detail = getattr(e, "detail", None)
    return str(detail or e) or e.__class__.__name__


class PipelineRunner:
    """
    Drives the five stages through a PhaseController, yielding every event.
    Each stage reads only the serialized outputs already on the state.
    """

    def __init__(
        self,
        controller: PhaseController,
        *,
        collaborators: Optional[Collaborators] = None,
        preset: Optional[QualityPreset] = None,
        cancel: Optional[asyncio.Event] = None,
        on_state: Optional[StateSink] = None,
    ) -> None:
        self._ctl = controller
        self._deps = collaborators or Collaborators()
        self._preset = preset
        self._cancel = cancel
        self._on_state = on_state

    @property
    def state(self) -> PipelineState:
        return self._ctl.state

    def _check_cancel(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise PipelineAborted()

    async def _persist(self) -> None:
        if self._on_state is not None:
            await self._on_state(self._ctl.state)

    def _config(self) -> ExecutionConfig:
        return self._ctl.state.config or default_execution_config()

    async def _decomposition(self) -> AsyncIterator[Any]:
        output, config = await self._deps.decompose(self.state.query, preset=self._preset)
        self.state.config = config
        yield output

    async def _search(self) -> AsyncIterator[Any]:
        decomposition = _require(self.state.decomposition, "decomposition")
        sub_queries = decomposition.subQueries
        started = now_ms()
        results: List[Any] = []
        async for item in self._deps.search(sub_queries, self._config().resultsPerQuery):
            self._check_cancel()
            results.append(item)
            _, _, meta = item
            yield {
                "type": "search-progress",
                "data": {
                    "current": len(results),
                    "total": len(sub_queries),
                    "status": meta.status,
                    "queryId": meta.queryId,
                    "sourcesFound": meta.sourcesFound,
                },
            }
        output = SearchService.assemble(results, now_ms() - started)
        output.evidence = await self._deps.prepare(output.sources)
        output.durationMs = now_ms() - started
        yield output

    async def _synthesis(self) -> AsyncIterator[Any]:
        search = _require(self.state.search, "search")
        async for event in self._deps.synthesize(
            self.state.query,
            search.sources,
            model=self._config().synthesisModel,
            cancel=self._cancel,
        ):
            if event["type"] == "synthesis-complete":
                yield event["data"]
            else:
                yield event

    async def _verification(self) -> AsyncIterator[Any]:
        search: SearchOutput = _require(self.state.search, "search")
        synthesis = _require(self.state.synthesis, "synthesis")
        evidence = search.evidence
        if evidence is None:
            logger.info("pipeline.evidence.recompute run=%s", self.state.runId)
            evidence = await self._deps.prepare(search.sources)
        cfg = self._config()
        async for event in self._deps.verify(
            synthesis.answer,
            evidence,
            max_claims=cfg.maxClaimsToVerify,
            concurrency=cfg.verificationConcurrency,
            cancel=self._cancel,
        ):
            if event["type"] == "verification-complete":
                yield event["data"]
            else:
                yield event

    async def _adjudication(self) -> AsyncIterator[Any]:
        synthesis = _require(self.state.synthesis, "synthesis")
        report = _require(self.state.verification, "verification")
        async for event in self._deps.adjudicate(
            self.state.query,
            synthesis.answer,
            report,
            model=self._config().adjudicatorModel,
            cancel=self._cancel,
        ):
            if event["type"] == "adjudication-complete":
                yield event["data"]
            else:
                yield event

    def _stage(self, phase: Phase) -> AsyncIterator[Any]:
        return {
            Phase.DECOMPOSITION: self._decomposition,
            Phase.SEARCH: self._search,
            Phase.SYNTHESIS: self._synthesis,
            Phase.VERIFICATION: self._verification,
            Phase.ADJUDICATION: self._adjudication,
        }[phase]()

    async def _run_phase(self, phase: Phase) -> AsyncIterator[PhaseEvent]:
        yield self._ctl.begin(phase)
        await self._persist()
        output: Optional[BaseModel] = None
        async for item in self._stage(phase):
            self._check_cancel()
            if isinstance(item, BaseModel):
                output = item
            else:
                yield item
        if output is None:
            raise RuntimeError(f"{phase.value} produced no output")
        yield self._ctl.complete(phase, output)
        await self._persist()

    async def run(self) -> AsyncIterator[PhaseEvent]:
        """
        Run every remaining stage. Ends with `complete` (data: final state) or
        `error`; an abort ends the stream quietly with state.aborted set.
        """
        ctl = self._ctl
        bind_run(ctl.state.runId)
        if ctl.phase == Phase.ERROR:
            failed = ctl.state.failedPhase
            yield {
                "type": "error",
                "phase": failed.value if failed else "",
                "message": ctl.state.error or "",
            }
            return
        try:
            while True:
                phase = ctl.next_phase()
                if phase is None:
                    break
                self._check_cancel()
                async for event in self._run_phase(phase):
                    yield event
        except PipelineAborted:
            ctl.abort()
            await self._persist()
            return
        except (asyncio.CancelledError, GeneratorExit):
            ctl.abort()
            raise
        except Exception as e:
            yield ctl.fail(_error_message(e))
            await self._persist()
            return

        yield {"type": "complete", "data": ctl.state}


async def run_pipeline(
    query: str,
    *,
    state: Optional[PipelineState] = None,
    run_id: Optional[str] = None,
    **kwargs: Any,
) -> AsyncIterator[PhaseEvent]:
    """
    Start a run for `query`, or resume `state` from its first unfinished stage.
    Keyword arguments go to PipelineRunner.
    """
    controller = (
        PhaseController.from_state(state) if state is not None else PhaseController.new(query, run_id)
    )
    async for event in PipelineRunner(controller, **kwargs).run():
        yield event
