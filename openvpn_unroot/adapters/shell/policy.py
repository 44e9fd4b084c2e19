"""
Policy provider — sudoers syntax checking with ``visudo -cf``.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile

from openvpn_unroot.adapters.base import PolicyProvider, ProviderError
from openvpn_unroot.adapters.shell.command import run_command
from openvpn_unroot.core.config.layout import HostLayout

logger = logging.getLogger(__name__)


class VisudoPolicyProvider(PolicyProvider):
    """Validates candidate sudoers content before it is committed."""

    def __init__(self, layout: HostLayout | None = None):
        self._layout = layout or HostLayout()

    def is_available(self) -> bool:
        return shutil.which(self._layout.visudo) is not None

    def check(self, content: str) -> None:
        fd, tmp = tempfile.mkstemp(prefix="openvpn-unroot-", suffix=".sudoers")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.chmod(tmp, 0o440)
            result = run_command([self._layout.visudo, "-c", "-f", tmp])
        finally:
            os.unlink(tmp)

        if not result["ok"]:
            logger.error("visudo rejected policy: %s", result["error"])
            raise ProviderError(
                f"sudoers validation failed: {result['error']}",
                returncode=result["returncode"],
            )
        logger.debug("visudo accepted policy")
