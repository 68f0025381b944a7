"""Settings that kini's docker shim reads from its environment."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

log = logging.getLogger(__name__)

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(value: str) -> bool:
    """Parse a boolean the way environment flags are written (1, t, true, 0, f, false...)."""
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def _os_getenv(name: str) -> str:
    return os.environ.get(name, "")


@dataclass
class Environment:
    """The environment of a docker shim command.

    ``client`` returns a server client; its ``supports_instance_oci()``
    method raises when the server cannot run OCI instances. When no
    client is configured, the server is treated as unreachable.
    """

    stdin: IO[bytes] = field(default_factory=lambda: sys.stdin.buffer)
    client: Callable[[], Any] | None = None
    getenv: Callable[[str], str] = _os_getenv

    def _flag(self, name: str) -> bool | None:
        try:
            return parse_bool(self.getenv(name))
        except ValueError:
            return None

    def privileged(self) -> bool:
        """Whether privileged containers should be launched."""
        unprivileged = self._flag("KINI_UNPRIVILEGED")
        return True if unprivileged is None else not unprivileged

    def kind_instances(self) -> bool:
        """Whether kind (OCI) instances must be launched instead of LXC ones."""
        mode = self.getenv("KINI_MODE")
        if mode == "lxc":
            return False
        if mode == "oci":
            return True
        if self.client is None:
            return False
        try:
            self.client().supports_instance_oci()
        except Exception:
            return False
        return True

    def with_unix_socket(self) -> bool:
        """Whether the server unix socket is passed into instances."""
        return self._flag("KINI_MOUNT_UNIX_SOCKET") is True

    def cache_dir(self) -> Path | None:
        """The local directory for caching image tarballs, or None when disabled."""
        cache = self.getenv("KINI_CACHE")
        if self._flag("KINI_CACHE") is False:
            return None
        if not cache:
            cache = f"{os.environ.get('HOME', '')}/.cache/kini"
        path = Path(cache)
        try:
            path.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError:
            log.exception("Failed to create local cache directory %s", path)
            return None
        return path