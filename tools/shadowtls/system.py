"""Host interaction: privilege check, package manager, systemd.

All subprocess calls go through SystemCommandRunner so tests can swap in
a recorder instead of touching the real host.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from errors import DependencyError, NotPrivilegedError

logger = logging.getLogger(__name__)

# Tool name -> distribution package providing it
TOOL_PACKAGES = {
    "systemctl": "systemd",
    "curl": "curl",
    "wget": "wget",
    "jq": "jq",
}


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class SystemCommandRunner:
    """Runs host commands synchronously and captures their output."""

    def run(self, args: list[str]) -> CommandResult:
        logger.debug("running: %s", " ".join(args))
        try:
            proc = subprocess.run(args, capture_output=True, text=True)
        except FileNotFoundError as e:
            return CommandResult(args, 127, "", str(e))
        return CommandResult(args, proc.returncode, proc.stdout, proc.stderr)

    def capture(self, args: list[str]) -> str:
        return self.run(args).stdout

    def exit_code(self, args: list[str]) -> int:
        return self.run(args).returncode

    def which(self, name: str) -> str | None:
        return shutil.which(name)


def ensure_privileged() -> None:
    """Abort unless running as root."""
    if os.geteuid() != 0:
        raise NotPrivilegedError("Please run this script as root")


def _detect_package_manager(runner: SystemCommandRunner) -> str:
    for manager in ("apt-get", "dnf", "yum"):
        if runner.which(manager):
            return manager
    raise DependencyError(
        "No supported package manager found (apt-get, dnf, yum)",
    )


def ensure_tools(names, runner: SystemCommandRunner) -> None:
    """Install any of `names` that are not on PATH.

    Raises DependencyError when the package manager fails or a tool is
    still missing afterwards.
    """
    missing = sorted(n for n in set(names) if not runner.which(n))
    if not missing:
        return

    packages = sorted({TOOL_PACKAGES.get(n, n) for n in missing})
    manager = _detect_package_manager(runner)
    logger.info("Installing missing tools %s via %s", missing, manager)

    if manager == "apt-get":
        result = runner.run(["apt-get", "update"])
        if not result.ok:
            raise DependencyError(
                f"apt-get update failed: {result.stderr.strip()}",
            )

    result = runner.run([manager, "install", "-y", *packages])
    if not result.ok:
        raise DependencyError(
            f"Failed to install {', '.join(packages)}: {result.stderr.strip()}",
        )

    still_missing = [n for n in missing if not runner.which(n)]
    if still_missing:
        raise DependencyError(
            f"Tools still missing after install: {', '.join(still_missing)}",
        )


class ServiceManager:
    """Thin systemctl wrapper for a single unit."""

    def __init__(self, name: str, runner: SystemCommandRunner):
        self.name = name
        self.runner = runner

    def _systemctl(self, *args: str) -> CommandResult:
        return self.runner.run(["systemctl", *args])

    def daemon_reload(self) -> CommandResult:
        return self._systemctl("daemon-reload")

    def enable(self) -> CommandResult:
        return self._systemctl("enable", self.name)

    def start(self) -> CommandResult:
        return self._systemctl("start", self.name)

    def stop(self) -> CommandResult:
        return self._systemctl("stop", self.name)

    def disable(self) -> CommandResult:
        return self._systemctl("disable", self.name)

    def status(self) -> CommandResult:
        # Non-zero for inactive units; callers only want the text
        return self._systemctl("status", self.name, "--no-pager")
