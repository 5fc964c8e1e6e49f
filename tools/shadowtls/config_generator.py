"""Generate the shadow-tls server config and its systemd unit.

Builds the JSON config consumed by `shadow-tls --config <file> server`
and the unit file that starts it after the Snell backend.
"""

import json
import secrets
import string
from dataclasses import dataclass

from errors import InvalidInputError
from settings import Settings

PASSWORD_ALPHABET = string.ascii_letters + string.digits
PASSWORD_LENGTH = 16

UNIT_TEMPLATE = """\
[Unit]
Description={description}
After=network.target {upstream_unit}
Requires={upstream_unit}

[Service]
Type=simple
User={user}
Group={group}
ExecStart={exec_start}
Restart=always
RestartSec={restart_sec}

[Install]
WantedBy=multi-user.target
"""


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random alphanumeric shared secret from the OS CSPRNG."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def validate_port(value) -> int:
    """Accept an int or numeric string in 1-65535."""
    try:
        port = int(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"Not a port number: {value!r}") from None
    if not 1 <= port <= 65535:
        raise InvalidInputError(f"Port must be between 1 and 65535, got {port}")
    return port


@dataclass
class ServiceConfig:
    listen_address: str
    upstream_address: str
    server_name: str
    password: str

    def __post_init__(self):
        for name in ("listen_address", "upstream_address", "server_name", "password"):
            if not getattr(self, name):
                raise InvalidInputError(f"ServiceConfig.{name} must not be empty")

    @property
    def listen_port(self) -> int:
        return int(self.listen_address.rsplit(":", 1)[1])

    def to_dict(self) -> dict:
        return {
            "listen": self.listen_address,
            "server": self.upstream_address,
            "tls": {"server_name": self.server_name},
            "password": self.password,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=4) + "\n"

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceConfig":
        return cls(
            listen_address=data.get("listen", ""),
            upstream_address=data.get("server", ""),
            server_name=(data.get("tls") or {}).get("server_name", ""),
            password=data.get("password", ""),
        )


def build_service_config(
    settings: Settings,
    listen_port: int,
    upstream_port: int,
    server_name: str,
    password: str,
) -> ServiceConfig:
    return ServiceConfig(
        listen_address=f"{settings.listen_host}:{listen_port}",
        upstream_address=f"{settings.upstream_host}:{upstream_port}",
        server_name=server_name,
        password=password,
    )


@dataclass
class ServiceUnitDescriptor:
    name: str
    description: str
    exec_start: str
    upstream_unit: str
    user: str = "nobody"
    group: str = "nogroup"
    restart_sec: int = 3

    def render(self) -> str:
        return UNIT_TEMPLATE.format(
            description=self.description,
            upstream_unit=self.upstream_unit,
            user=self.user,
            group=self.group,
            exec_start=self.exec_start,
            restart_sec=self.restart_sec,
        )


def build_unit(settings: Settings) -> ServiceUnitDescriptor:
    exec_start = f"{settings.binary_path} --config {settings.config_file} server"
    return ServiceUnitDescriptor(
        name=settings.service_name,
        description="ShadowTLS Service",
        exec_start=exec_start,
        upstream_unit=f"{settings.upstream_service}.service",
        user=settings.service_user,
        group=settings.service_group,
    )


def build_client_line(config: ServiceConfig, version: int) -> str:
    """Surge/Stash proxy line; server IP and Snell PSK are left for the user."""
    return (
        f"Snell = snell, [SERVER_IP], {config.listen_port}, psk=[SNELL_PSK], version=4, "
        f"shadow-tls-password={config.password}, "
        f"shadow-tls-sni={config.server_name}, "
        f"shadow-tls-version={version}"
    )
