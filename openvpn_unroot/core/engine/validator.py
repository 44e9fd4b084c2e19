"""
Option validator — reject inconsistent requests before anything changes.

``validate_options`` only looks at what was asked for and runs before
derivation. ``validate_eligibility`` runs right after derivation and
rejects explicit requests the host or the old config cannot satisfy.
"""

from __future__ import annotations

import logging

from openvpn_unroot.core.engine.generators import GENERATORS
from openvpn_unroot.core.errors import UsageError, ValidationError
from openvpn_unroot.core.models.artifact import ArtifactKey
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions

logger = logging.getLogger(__name__)

_INELIGIBLE_REASONS = {
    ArtifactKey.DEV: "cannot determine the device type (tun/tap) from the old config",
    ArtifactKey.SUDOERS: "no sudoers location found",
    ArtifactKey.IPROUTE: "no location found for the iproute wrapper",
    ArtifactKey.UP: "the old config has no up script",
    ArtifactKey.DOWN: "the old config has no down script",
    ArtifactKey.NETDEV: "no network device directory found and no path given",
    ArtifactKey.CONFIG: "no path for the new config",
    ArtifactKey.UNIT: "no service unit template found",
}


def _keys(keys: list[ArtifactKey]) -> str:
    return ", ".join(k.value for k in keys)


def validate_options(options: EffectiveOptions) -> None:
    """Check requested artifacts against their prerequisites.

    Raises:
        UsageError: An artifact is both requested and suppressed.
        ValidationError: Nothing to do, or prerequisites are missing.
    """
    contradictions = [k for k in ArtifactKey if options.is_specified(k) and options.is_suppressed(k)]
    if contradictions:
        raise UsageError(f"Both requested and suppressed: {_keys(contradictions)}")

    if not (options.automagic or options.pretend or options.specified):
        raise ValidationError(
            "Nothing to do: use --automagic, --pretend, or request artifacts explicitly"
        )

    if options.automagic:
        return

    missing: list[ArtifactKey] = []
    for spec in GENERATORS:
        if not options.is_specified(spec.key):
            continue
        for prerequisite in spec.prerequisites:
            if not options.is_specified(prerequisite) and prerequisite not in missing:
                missing.append(prerequisite)

    if missing:
        ordered = [k for k in ArtifactKey if k in missing]
        raise ValidationError(
            f"Missing prerequisites (request them too, or use --automagic): {_keys(ordered)}",
            missing=[k.value for k in ordered],
        )
    logger.debug("Options valid: %s", _keys(options.specified))


def validate_eligibility(options: EffectiveOptions, ids: DerivedIdentifiers) -> None:
    """Reject explicit requests that cannot be produced.

    Raises:
        ValidationError: Naming each ineligible artifact and why.
    """
    problems = [
        f"{key.value}: {_INELIGIBLE_REASONS.get(key, 'not available')}"
        for key in options.specified
        if key not in ids.eligible and not options.is_suppressed(key)
    ]
    if problems:
        raise ValidationError(
            "Cannot generate requested artifacts: " + "; ".join(problems),
            missing=[p.split(":", 1)[0] for p in problems],
        )
