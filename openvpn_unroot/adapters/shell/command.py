"""
Core subprocess runner.

The SINGLE PLACE where ``subprocess.run`` is called. Every system tool
the providers drive (useradd, ip, visudo, …) goes through here so that
logging and error handling stay in one spot.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from typing import Any

from openvpn_unroot.adapters.base import ProviderError

logger = logging.getLogger(__name__)


def run_command(
    cmd: list[str],
    *,
    input_text: str | None = None,
    timeout: int = 60,
) -> dict[str, Any]:
    """Run ``cmd`` and capture its output.

    Returns:
        ``{"ok": True, "stdout": "...", "returncode": 0, "elapsed_ms": N}``
        on success, ``{"ok": False, "error": "...", "returncode": N, ...}``
        on failure. Never raises.
    """
    logger.debug("Executing: %s", shlex.join(cmd))
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return {
            "ok": False,
            "returncode": 124,
            "error": f"Command timed out after {timeout}s: {shlex.join(cmd)}",
        }
    except OSError as e:
        return {
            "ok": False,
            "returncode": 127,
            "error": f"Cannot execute {cmd[0]}: {e}",
        }

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout.strip()
    stderr = result.stderr.strip()

    if result.returncode == 0:
        return {
            "ok": True,
            "returncode": 0,
            "stdout": stdout,
            "stderr": stderr,
            "elapsed_ms": elapsed_ms,
        }
    return {
        "ok": False,
        "returncode": result.returncode,
        "stdout": stdout,
        "error": stderr or f"{cmd[0]} exited with code {result.returncode}",
        "elapsed_ms": elapsed_ms,
    }


def check_command(cmd: list[str], **kwargs: Any) -> str:
    """Run ``cmd`` and return its stdout.

    Raises:
        ProviderError: If the command fails, carrying its return code.
    """
    result = run_command(cmd, **kwargs)
    if not result["ok"]:
        raise ProviderError(
            f"{shlex.join(cmd)}: {result['error']}",
            returncode=result["returncode"],
        )
    return result["stdout"]
