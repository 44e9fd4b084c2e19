"""
Domain models — Pydantic types for openvpn-unroot.

All models are re-exported here for convenient access:

    from openvpn_unroot.core.models import Artifact, EffectiveOptions, Outcome
"""

from openvpn_unroot.core.models.artifact import (
    Artifact,
    ArtifactKey,
    ArtifactKind,
    TransactionLog,
)
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions
from openvpn_unroot.core.models.outcome import Outcome

__all__ = [
    "Artifact",
    "ArtifactKey",
    "ArtifactKind",
    "DerivedIdentifiers",
    "EffectiveOptions",
    "Outcome",
    "TransactionLog",
]
