"""Install, uninstall and inspect the ShadowTLS service.

Install steps (each failure aborts the rest, nothing is rolled back):
1. Read the Snell backend port
2. Make sure required host tools exist
3. Resolve the release artifact and latest version
4. Download the binary
5. Generate the password, write config.json and the unit file
6. daemon-reload, enable and start the service

Uninstall is best-effort so it can always clean up a half-installed host.
"""

import json
import logging
import platform
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from config_generator import (
    ServiceConfig,
    build_client_line,
    build_service_config,
    build_unit,
    generate_password,
    validate_port,
)
from errors import InstallFileError, InvalidInputError, NotFoundError, ServiceError
from release import ReleaseInfo, ReleaseLocator
from report import show_config
from settings import SHADOWTLS_VERSION, Settings
from system import ServiceManager, SystemCommandRunner, ensure_tools
from upstream import read_upstream_port

logger = logging.getLogger(__name__)


@dataclass
class InstallInputs:
    listen_port: int
    server_name: str

    def __post_init__(self):
        self.listen_port = validate_port(self.listen_port)
        self.server_name = (self.server_name or "").strip()
        if not self.server_name:
            raise InvalidInputError("TLS server name must not be empty")


@dataclass
class InstallSummary:
    config: ServiceConfig
    release: ReleaseInfo
    upstream_port: int
    config_path: Path
    client_line: str
    version: int = SHADOWTLS_VERSION

    @property
    def listen_port(self) -> int:
        return self.config.listen_port


def _write(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise InstallFileError(f"Cannot write {path}: {e}") from e
    logger.info("Wrote %s", path)


class Installer:
    def __init__(
        self,
        settings: Settings,
        runner: SystemCommandRunner,
        locator: ReleaseLocator | None = None,
        machine: Callable[[], str] = platform.machine,
    ):
        self.settings = settings
        self.runner = runner
        self.locator = locator or ReleaseLocator(settings)
        self.machine = machine
        self.service = ServiceManager(settings.service_name, runner)

    def install(self, inputs: InstallInputs) -> InstallSummary:
        settings = self.settings
        logger.info("Installing ShadowTLS")

        upstream_port = read_upstream_port(settings, self.runner)
        ensure_tools(settings.required_tools, self.runner)

        release = self.locator.locate(self.machine())
        logger.info(
            "Latest release %s (%s)",
            release.version_tag, release.architecture_artifact_name,
        )
        self.locator.download(release.download_url, settings.binary_path)

        config = build_service_config(
            settings,
            listen_port=inputs.listen_port,
            upstream_port=upstream_port,
            server_name=inputs.server_name,
            password=generate_password(),
        )
        _write(settings.config_file, config.to_json())
        _write(settings.unit_file, build_unit(settings).render())

        for step in (self.service.daemon_reload, self.service.enable, self.service.start):
            result = step()
            if not result.ok:
                raise ServiceError(
                    f"{' '.join(result.args)} failed: {result.stderr.strip()}",
                )

        return InstallSummary(
            config=config,
            release=release,
            upstream_port=upstream_port,
            config_path=settings.config_file,
            client_line=build_client_line(config, SHADOWTLS_VERSION),
        )


def _remove(path: Path) -> bool:
    """Delete a file or directory tree; False if it was already gone."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)
        return False
    return True


class Uninstaller:
    def __init__(self, settings: Settings, runner: SystemCommandRunner):
        self.settings = settings
        self.service = ServiceManager(settings.service_name, runner)

    def uninstall(self) -> list[Path]:
        """Stop the service and remove its files. Never raises."""
        logger.info("Uninstalling ShadowTLS")
        for step in (self.service.stop, self.service.disable):
            result = step()
            if not result.ok:
                logger.warning(
                    "%s: %s", " ".join(result.args), result.stderr.strip() or "failed",
                )

        removed = []
        for path in (
            self.settings.unit_file,
            self.settings.binary_path,
            self.settings.config_dir,
        ):
            if _remove(path):
                removed.append(path)
            else:
                logger.debug("Nothing to remove at %s", path)

        result = self.service.daemon_reload()
        if not result.ok:
            logger.warning("daemon-reload failed: %s", result.stderr.strip())
        return removed


class ConfigInspector:
    def __init__(self, settings: Settings, runner: SystemCommandRunner):
        self.settings = settings
        self.service = ServiceManager(settings.service_name, runner)

    def read(self) -> tuple[str, ServiceConfig]:
        path = self.settings.config_file
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"Config file does not exist: {path}") from None
        except (OSError, UnicodeDecodeError) as e:
            raise NotFoundError(f"Cannot read config file {path}: {e}") from e
        try:
            return raw, ServiceConfig.from_dict(json.loads(raw))
        except (ValueError, AttributeError) as e:
            raise NotFoundError(f"Config file {path} is not a valid config: {e}") from e

    def show(self) -> ServiceConfig:
        raw, config = self.read()
        status = self.service.status()
        show_config(raw, status.stdout or status.stderr)
        return config
