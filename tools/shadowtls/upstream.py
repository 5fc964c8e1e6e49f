"""Read the Snell backend's listening port.

ShadowTLS only forwards to an existing backend, so installation requires
the snell-server binary and a readable `listen` entry in its config:

    [snell-server]
    listen = 0.0.0.0:6160
    psk = ...
"""

import logging
from pathlib import Path

from errors import MissingDependencyError
from settings import Settings
from system import SystemCommandRunner

logger = logging.getLogger(__name__)


def parse_listen_port(value: str) -> int:
    """Extract the port from `6160`, `0.0.0.0:6160` or `[::]:6160`."""
    port_text = value.strip().rsplit(":", 1)[-1]
    try:
        port = int(port_text)
    except ValueError:
        raise MissingDependencyError(
            f"Cannot read the backend port from listen = {value.strip()!r}",
        ) from None
    if not 1 <= port <= 65535:
        raise MissingDependencyError(f"Backend port out of range: {port}")
    return port


def parse_config(text: str) -> dict[str, str]:
    """Parse `key = value` lines, ignoring sections and comments."""
    entries = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", ";", "[")):
            continue
        key, sep, value = line.partition("=")
        if sep:
            entries[key.strip()] = value.strip()
    return entries


def read_upstream_port(settings: Settings, runner: SystemCommandRunner) -> int:
    if not runner.which(settings.upstream_binary):
        raise MissingDependencyError(
            f"{settings.upstream_binary} not found, install Snell v4 before ShadowTLS",
        )

    path = Path(settings.upstream_config)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise MissingDependencyError(f"Snell config not found: {path}") from None
    except (OSError, UnicodeDecodeError) as e:
        raise MissingDependencyError(f"Cannot read Snell config {path}: {e}") from e

    listen = parse_config(text).get("listen")
    if not listen:
        raise MissingDependencyError(f"No listen entry in {path}")

    port = parse_listen_port(listen)
    logger.info("Snell backend listens on port %d", port)
    return port
