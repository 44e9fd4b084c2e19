"""
Unroot use case — the full vertical slice of one run.

    validate options → read old config → derive identifiers
        → validate eligibility → plan → execute (rollback on failure)
        → accessibility advisories

Errors are not raised to the caller: they land in ``UnrootResult.error``
with the exit status the CLI should use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.core.config.layout import HostLayout
from openvpn_unroot.core.config.openvpn import read_config
from openvpn_unroot.core.engine.accessibility import Advisory, check_accessibility
from openvpn_unroot.core.engine.context import RunContext
from openvpn_unroot.core.engine.derivation import derive_identifiers
from openvpn_unroot.core.engine.executor import ExecutionPlan, ExecutionReport, build_plan, execute_plan
from openvpn_unroot.core.engine.validator import validate_eligibility, validate_options
from openvpn_unroot.core.errors import UnrootError
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions

logger = logging.getLogger(__name__)


@dataclass
class UnrootResult:
    """Result of one run."""

    ids: DerivedIdentifiers | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    advisories: list[Advisory] = field(default_factory=list)
    journal: list = field(default_factory=list)
    pretend: bool = False
    error: str | None = None
    error_type: str | None = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok, "pretend": self.pretend, "exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.ids:
            result["identifiers"] = self.ids.to_dict()
        if self.plan:
            result["plan"] = [k.value for k in self.plan.keys]
            result["skipped"] = self.plan.skipped
        if self.report:
            result["report"] = self.report.to_dict()
        if self.pretend:
            result["journal"] = [list(entry) for entry in self.journal]
        result["advisories"] = [str(a) for a in self.advisories]
        return result


def run_unroot(
    options: EffectiveOptions,
    layout: HostLayout | None = None,
    host: HostProviders | None = None,
) -> UnrootResult:
    """Turn the privileged config in ``options.old_config`` into an unrooted setup.

    Args:
        options: Resolved CLI options.
        layout: Host layout (defaults to a standard Linux host).
        host: Providers to act through (defaults to the real system). In
            pretend mode they are wrapped so nothing is mutated.

    Returns:
        UnrootResult with identifiers, plan, execution report and advisories.
    """
    result = UnrootResult(pretend=options.pretend)
    layout = layout or HostLayout()

    try:
        validate_options(options)
        old_lines = read_config(options.old_config)

        host = host or HostProviders.system(layout)
        if options.pretend:
            host = host.recording()
            result.journal = host.journal if host.journal is not None else []

        ids = derive_identifiers(options, old_lines, host, layout)
        result.ids = ids
        validate_eligibility(options, ids)

        ctx = RunContext(options=options, ids=ids, host=host, layout=layout, old_lines=old_lines)
        result.plan = build_plan(options, ids)
        result.report = execute_plan(result.plan, ctx)
    except UnrootError as e:
        logger.debug("Run aborted: %s", e, exc_info=True)
        result.error = str(e)
        result.error_type = type(e).__name__
        result.exit_code = e.exit_code
        if e.report is not None:
            result.report = e.report
        return result

    result.advisories = check_accessibility(ctx)
    return result
