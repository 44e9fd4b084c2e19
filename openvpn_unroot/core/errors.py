"""
Error taxonomy — every failure the CLI can surface carries its exit status.

Usage and validation errors are raised before anything is mutated.
Allocation errors are raised during derivation. Transaction errors and
interrupts are raised only after the rollback engine has run.
"""

from __future__ import annotations

import os

# sysexits(3)
EX_USAGE = 2            # matches click's own usage errors
EX_TEMPFAIL = getattr(os, "EX_TEMPFAIL", 75)
EX_CONFIG = getattr(os, "EX_CONFIG", 78)


class UnrootError(Exception):
    """Base class for all errors reported to the user."""

    exit_code = 1
    report = None       # ExecutionReport, when raised out of a transaction


class UsageError(UnrootError):
    """Malformed or contradictory invocation."""

    exit_code = EX_USAGE


class ValidationError(UnrootError):
    """An artifact was requested without what it depends on, or nothing was requested."""

    exit_code = EX_CONFIG

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class AllocationError(UnrootError):
    """No free device name could be found."""

    exit_code = EX_TEMPFAIL


class ConfigError(UnrootError):
    """The host layout file or the old OpenVPN config cannot be read."""

    exit_code = EX_CONFIG


class TransactionError(UnrootError):
    """A generator failed; everything created before it has been rolled back."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code or 1


class Interrupted(UnrootError):
    """A termination signal arrived during the transaction."""

    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum
        self.exit_code = 128 + signum
