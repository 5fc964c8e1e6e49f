import pytest

from errors import NetworkError
from release import ReleaseInfo, resolve_artifact
from settings import Settings
from system import CommandResult


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self, available=("snell-server", "systemctl", "apt-get")):
        self.available = set(available)
        self.calls = []
        self.failures = {}

    def fail(self, *args, returncode=1, stderr="boom"):
        self.failures[tuple(args)] = CommandResult(list(args), returncode, "", stderr)

    def run(self, args):
        self.calls.append(list(args))
        for prefix, result in self.failures.items():
            if tuple(args[: len(prefix)]) == prefix:
                return result
        stdout = "active (running)\n" if args[:2] == ["systemctl", "status"] else ""
        return CommandResult(list(args), 0, stdout, "")

    def capture(self, args):
        return self.run(args).stdout

    def exit_code(self, args):
        return self.run(args).returncode

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.available else None


class FakePrompt:
    def __init__(self, choices=(), ports=(), names=()):
        self.choices = list(choices)
        self.ports = list(ports)
        self.names = list(names)

    def choice(self):
        return self.choices.pop(0)

    def listen_port(self):
        return self.ports.pop(0)

    def server_name(self):
        return self.names.pop(0)


class FakeLocator:
    """Serves a fixed release without touching the network."""

    def __init__(self, version="v0.2.25"):
        self.version = version
        self.calls = []

    def locate(self, machine):
        self.calls.append(("locate", machine))
        artifact = resolve_artifact(machine)
        if not self.version:
            raise NetworkError("Failed to get the latest version")
        url = (
            "https://github.com/ihciah/shadow-tls/releases/download/"
            f"{self.version}/shadow-tls-{artifact}"
        )
        return ReleaseInfo(self.version, artifact, url)

    def download(self, url, target):
        self.calls.append(("download", url, str(target)))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"binary")
        target.chmod(0o755)
        return target


@pytest.fixture
def settings(tmp_path):
    snell_dir = tmp_path / "etc" / "snell"
    snell_dir.mkdir(parents=True)
    (snell_dir / "snell-server.conf").write_text(
        "[snell-server]\nlisten = 0.0.0.0:6160\npsk = secretpsk\nipv6 = false\n",
    )
    return Settings(
        install_dir=tmp_path / "usr" / "local" / "bin",
        config_dir=tmp_path / "etc" / "shadowtls",
        unit_dir=tmp_path / "etc" / "systemd" / "system",
        upstream_config=snell_dir / "snell-server.conf",
        retry_backoff=0,
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def locator():
    return FakeLocator()
