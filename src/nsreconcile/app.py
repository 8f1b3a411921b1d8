"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from nsreconcile.adapters.plan_file import seed_registry
from nsreconcile.config import EngineConfig, get_engine_config
from nsreconcile.domain.errors import ReconciliationError
from nsreconcile.domain.introspection import NamespaceSnapshot, snapshot_registry
from nsreconcile.domain.reconciliation import NamespaceSpec, NoteJournal, ReconciliationEngine
from nsreconcile.domain.registry import NamespaceRegistry

if TYPE_CHECKING:
    from nsreconcile.adapters.plan_file import Plan, PlanStep
    from nsreconcile.domain.model import Namespace
    from nsreconcile.domain.reconciliation import ReconciliationNote

log = getLogger(__name__)


def build_engine(
    registry: NamespaceRegistry | None = None,
    *,
    config: EngineConfig | None = None,
) -> ReconciliationEngine:
    effective_config = config or get_engine_config()
    return ReconciliationEngine(
        registry=registry or NamespaceRegistry(),
        journal=NoteJournal(enabled=effective_config.track_notes),
    )


def define_namespace(engine: ReconciliationEngine, **fields: object) -> Namespace:
    """Validate ``fields`` as a definition and reconcile it.

    Validation happens before any namespace is touched.
    """

    spec = NamespaceSpec.from_fields(**fields)
    return engine.reconcile(spec)


@dataclass(slots=True, frozen=True, kw_only=True)
class StepOutcome:
    index: int
    namespace: str
    expected_error: str | None
    error: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error == self.expected_error


@dataclass(slots=True, kw_only=True)
class PlanReport:
    outcomes: list[StepOutcome] = field(default_factory=list["StepOutcome"])
    snapshots: tuple[NamespaceSnapshot, ...] = ()
    notes: tuple[ReconciliationNote, ...] = ()

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[StepOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


def run_plan(plan: Plan, *, config: EngineConfig | None = None) -> PlanReport:
    """Seed a fresh registry and apply every plan step in order.

    A step's failure is recorded and the run continues with the next step; the
    registry keeps whatever state the failing step left behind.
    """

    engine = build_engine(config=config)
    seed_registry(engine.registry, plan.namespaces)
    log.info(
        "Running plan: seeds=%s, steps=%s",
        len(plan.namespaces),
        len(plan.steps),
    )

    report = PlanReport()
    for index, step in enumerate(plan.steps, start=1):
        outcome = _run_step(engine, index, step)
        if outcome.ok:
            log.debug("Step %s (%s) as expected", index, outcome.namespace)
        else:
            log.warning(
                "Step %s (%s) expected %s, got %s",
                index,
                outcome.namespace,
                outcome.expected_error or "success",
                outcome.error or "success",
            )
        report.outcomes.append(outcome)

    report.snapshots = snapshot_registry(engine.registry)
    report.notes = tuple(engine.journal.notes)
    return report


def _run_step(engine: ReconciliationEngine, index: int, step: PlanStep) -> StepOutcome:
    try:
        spec = NamespaceSpec.from_mapping(step.definition)
        for _ in range(step.repeat):
            engine.reconcile(spec)
    except ReconciliationError as exc:
        return StepOutcome(
            index=index,
            namespace=step.target,
            expected_error=step.expect_error,
            error=exc.kind,
            message=str(exc),
        )
    return StepOutcome(index=index, namespace=step.target, expected_error=step.expect_error)
