"""Paths and constants for a ShadowTLS installation.

Everything lives on one Settings object so tests can point the whole
install at a temporary directory.
"""

from dataclasses import dataclass
from pathlib import Path

RELEASE_REPO = "ihciah/shadow-tls"
GITHUB_API_URL = "https://api.github.com"
GITHUB_DOWNLOAD_URL = "https://github.com"

# Protocol version advertised to clients in the summary
SHADOWTLS_VERSION = 3


@dataclass
class Settings:
    install_dir: Path = Path("/usr/local/bin")
    binary_name: str = "shadow-tls"
    config_dir: Path = Path("/etc/shadowtls")
    unit_dir: Path = Path("/etc/systemd/system")
    service_name: str = "shadowtls"

    # Snell backend the camouflage layer forwards to
    upstream_binary: str = "snell-server"
    upstream_config: Path = Path("/etc/snell/snell-server.conf")
    upstream_service: str = "snell"

    listen_host: str = "0.0.0.0"
    upstream_host: str = "127.0.0.1"
    service_user: str = "nobody"
    service_group: str = "nogroup"

    release_repo: str = RELEASE_REPO
    api_url: str = GITHUB_API_URL
    download_url: str = GITHUB_DOWNLOAD_URL
    http_timeout: float = 20.0
    retries: int = 3
    retry_backoff: float = 1.0

    required_tools: tuple[str, ...] = ("systemctl",)

    def __post_init__(self):
        self.install_dir = Path(self.install_dir)
        self.config_dir = Path(self.config_dir)
        self.unit_dir = Path(self.unit_dir)
        self.upstream_config = Path(self.upstream_config)

    @property
    def binary_path(self) -> Path:
        return self.install_dir / self.binary_name

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def unit_file(self) -> Path:
        return self.unit_dir / f"{self.service_name}.service"

    @property
    def latest_release_api(self) -> str:
        return f"{self.api_url}/repos/{self.release_repo}/releases/latest"

    @property
    def release_download_base(self) -> str:
        return f"{self.download_url}/{self.release_repo}/releases/download"
