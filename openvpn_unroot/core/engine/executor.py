"""
Transactional executor — run the planned generators, all or nothing.

Flow:
    options + ids → build plan → run generators in order → log artifacts
                                        │ failure / interrupt
                                        ▼
                                    rollback → re-raise

The plan is a filtered copy of the fixed generator order. A step runs
when it is not suppressed and either automagic mode is on (and the
artifact is eligible on this host) or the user requested exactly that
artifact. Every created outcome appends to the transaction log; the
first failed outcome, any exception, or a deferred signal hands the log
to the rollback engine before the error propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openvpn_unroot.core.engine.context import RunContext
from openvpn_unroot.core.engine.generators import GENERATORS, GeneratorSpec, run_generator
from openvpn_unroot.core.engine.interrupts import InterruptGuard
from openvpn_unroot.core.engine.rollback import RollbackReport, rollback
from openvpn_unroot.core.errors import TransactionError, UnrootError
from openvpn_unroot.core.models.artifact import ArtifactKey
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions
from openvpn_unroot.core.models.outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """Generators selected for this run, in execution order."""

    steps: list[GeneratorSpec] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def keys(self) -> list[ArtifactKey]:
        return [s.key for s in self.steps]

    @property
    def total_steps(self) -> int:
        return len(self.steps)


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    outcomes: list[Outcome] = field(default_factory=list)
    rollback: RollbackReport | None = None
    pretend: bool = False
    touched: list[str] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for o in self.outcomes if o.created)

    @property
    def satisfied(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "satisfied")

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def decisions(self) -> list[tuple[str, str, str]]:
        return [o.decision for o in self.outcomes]

    @property
    def status(self) -> str:
        if self.rollback is not None:
            return "rolled-back"
        if self.failed:
            return "failed"
        return "ok"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "pretend": self.pretend,
            "created": self.created,
            "satisfied": self.satisfied,
            "failed": self.failed,
            "touched": self.touched,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
            "rollback": self.rollback.to_dict() if self.rollback else None,
        }


def build_plan(options: EffectiveOptions, ids: DerivedIdentifiers) -> ExecutionPlan:
    """Select generators for this run, keeping the fixed order."""
    plan = ExecutionPlan()
    for spec in GENERATORS:
        key = spec.key
        if options.is_suppressed(key):
            plan.skipped[key.value] = "suppressed"
            continue
        if not options.is_specified(key):
            if not options.automagic:
                plan.skipped[key.value] = "not requested"
                continue
            if key not in ids.eligible:
                plan.skipped[key.value] = "not applicable on this host"
                continue
        if key is ArtifactKey.DOWN and ids.down == ids.up:
            plan.skipped[key.value] = "same as up wrapper"
            continue
        plan.steps.append(spec)

    logger.info(
        "Plan: %s", " → ".join(k.value for k in plan.keys) or "(nothing)"
    )
    return plan


def execute_plan(plan: ExecutionPlan, ctx: RunContext) -> ExecutionReport:
    """Run every step; on failure or interrupt roll back and re-raise.

    Raises:
        TransactionError: A generator failed (after rollback).
        Interrupted: A termination signal arrived (after rollback).
    """
    report = ExecutionReport(pretend=ctx.pretend, touched=ctx.log.touched)
    ctx.planned = frozenset(plan.keys)

    with InterruptGuard() as guard:
        try:
            for spec in plan.steps:
                guard.raise_if_interrupted()
                outcome = run_generator(spec, ctx)
                report.outcomes.append(outcome)
                _log_outcome(spec, outcome)

                if outcome.failed:
                    raise TransactionError(
                        f"{spec.description or spec.key.value} failed: {outcome.error}",
                        exit_code=outcome.exit_code,
                    )
                if outcome.artifact is not None:
                    ctx.log.record(outcome.artifact)
            guard.raise_if_interrupted()
        except BaseException as e:
            report.rollback = rollback(ctx)
            if isinstance(e, UnrootError):
                e.report = report
            raise

    return report


def _log_outcome(spec: GeneratorSpec, outcome: Outcome) -> None:
    marker = {"created": "✓", "satisfied": "=", "failed": "✗"}[outcome.status]
    prefix = "[pretend] " if outcome.pretend else ""
    logger.info(
        "%s%s %s %s → %s",
        prefix,
        marker,
        spec.key.value,
        outcome.target,
        outcome.status,
    )
