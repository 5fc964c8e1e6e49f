import json
import re

import pytest

import installer as installer_module
from conftest import FakeLocator, FakePrompt, FakeRunner
from errors import (
    InstallFileError,
    InvalidInputError,
    MissingDependencyError,
    NetworkError,
    NotFoundError,
    ServiceError,
    UnsupportedPlatformError,
)
from installer import ConfigInspector, Installer, InstallInputs, Uninstaller
from wizard import MenuController, MenuState


@pytest.fixture
def installer(settings, runner, locator):
    return Installer(settings, runner, locator=locator, machine=lambda: "x86_64")


def test_end_to_end_install(installer, settings, runner, locator):
    summary = installer.install(InstallInputs(listen_port=8443, server_name="www.example.com"))

    written = json.loads(settings.config_file.read_text())
    assert written["listen"] == "0.0.0.0:8443"
    assert written["server"] == "127.0.0.1:6160"
    assert written["tls"] == {"server_name": "www.example.com"}
    assert re.fullmatch(r"[A-Za-z0-9]{16}", written["password"])

    unit = settings.unit_file.read_text()
    exec_line = next(l for l in unit.splitlines() if l.startswith("ExecStart="))
    assert exec_line == f"ExecStart={settings.binary_path} --config {settings.config_file} server"
    assert exec_line.endswith(" server")

    assert runner.calls == [
        ["systemctl", "daemon-reload"],
        ["systemctl", "enable", "shadowtls"],
        ["systemctl", "start", "shadowtls"],
    ]
    assert locator.calls[1] == (
        "download",
        "https://github.com/ihciah/shadow-tls/releases/download/v0.2.25/"
        "shadow-tls-x86_64-unknown-linux-musl",
        str(settings.binary_path),
    )

    assert summary.listen_port == 8443
    assert summary.upstream_port == 6160
    assert summary.config.password == written["password"]
    assert summary.config.server_name == "www.example.com"
    assert f"shadow-tls-password={written['password']}" in summary.client_line
    assert summary.version == 3


@pytest.mark.parametrize("port", [0, 65536, -5, "abc"])
def test_invalid_port_rejected_before_side_effects(installer, settings, runner, locator, port):
    with pytest.raises(InvalidInputError):
        installer.install(InstallInputs(listen_port=port, server_name="www.example.com"))
    assert runner.calls == []
    assert locator.calls == []
    assert not settings.config_dir.exists()


def test_empty_server_name_rejected():
    with pytest.raises(InvalidInputError):
        InstallInputs(listen_port=8443, server_name="   ")


def test_missing_backend_fails_before_network(installer, settings, runner, locator):
    runner.available.discard("snell-server")
    with pytest.raises(MissingDependencyError):
        installer.install(InstallInputs(8443, "www.example.com"))
    assert locator.calls == []
    assert runner.calls == []
    assert not settings.config_file.exists()


def test_unsupported_architecture(settings, runner, locator):
    installer = Installer(settings, runner, locator=locator, machine=lambda: "armv7l")
    with pytest.raises(UnsupportedPlatformError):
        installer.install(InstallInputs(8443, "www.example.com"))
    assert not settings.binary_path.exists()
    assert not settings.unit_file.exists()


def test_empty_version_aborts_before_download(settings, runner):
    locator = FakeLocator(version="")
    installer = Installer(settings, runner, locator=locator, machine=lambda: "aarch64")
    with pytest.raises(NetworkError):
        installer.install(InstallInputs(8443, "www.example.com"))
    assert [c[0] for c in locator.calls] == ["locate"]
    assert not settings.config_file.exists()


def test_missing_tools_are_installed(settings, locator):
    runner = FakeRunner(available={"snell-server", "apt-get"})
    installer = Installer(settings, runner, locator=locator, machine=lambda: "x86_64")

    def run(args, _run=runner.run):
        result = _run(args)
        if args[:2] == ["apt-get", "install"]:
            runner.available.add("systemctl")
        return result

    runner.run = run
    installer.install(InstallInputs(8443, "www.example.com"))
    assert runner.calls[:2] == [["apt-get", "update"], ["apt-get", "install", "-y", "systemd"]]


def test_service_start_failure(installer, runner):
    runner.fail("systemctl", "start", stderr="Unit snell.service not found.")
    with pytest.raises(ServiceError, match="snell.service"):
        installer.install(InstallInputs(8443, "www.example.com"))


def test_inspector_shows_installed_values(installer, settings, runner, monkeypatch):
    shown = []
    monkeypatch.setattr(installer_module, "show_config", lambda raw, status: shown.append((raw, status)))

    summary = installer.install(InstallInputs(8443, "www.example.com"))
    config = ConfigInspector(settings, runner).show()

    assert config == summary.config
    raw, status = shown[0]
    assert raw == settings.config_file.read_text()
    assert "active (running)" in status
    assert runner.calls[-1] == ["systemctl", "status", "shadowtls", "--no-pager"]

    unit = settings.unit_file.read_text()
    assert f"--config {settings.config_file} server" in unit


def test_inspector_without_config(settings, runner):
    with pytest.raises(NotFoundError):
        ConfigInspector(settings, runner).show()
    assert runner.calls == []


def test_inspector_with_corrupt_config(settings, runner):
    settings.config_dir.mkdir(parents=True)
    settings.config_file.write_text("{not json")
    with pytest.raises(NotFoundError, match="not a valid config"):
        ConfigInspector(settings, runner).read()


def test_uninstall_removes_everything(installer, settings, runner):
    installer.install(InstallInputs(8443, "www.example.com"))
    runner.calls.clear()

    removed = Uninstaller(settings, runner).uninstall()

    assert removed == [settings.unit_file, settings.binary_path, settings.config_dir]
    assert not settings.unit_file.exists()
    assert not settings.binary_path.exists()
    assert not settings.config_dir.exists()
    assert runner.calls == [
        ["systemctl", "stop", "shadowtls"],
        ["systemctl", "disable", "shadowtls"],
        ["systemctl", "daemon-reload"],
    ]


def test_uninstall_is_idempotent(installer, settings, runner):
    installer.install(InstallInputs(8443, "www.example.com"))
    uninstaller = Uninstaller(settings, runner)
    uninstaller.uninstall()

    runner.fail("systemctl", "stop", returncode=5, stderr="Unit shadowtls.service not loaded.")
    runner.fail("systemctl", "disable", returncode=1)
    assert uninstaller.uninstall() == []


def test_uninstall_on_clean_host(settings, runner):
    assert Uninstaller(settings, runner).uninstall() == []


def _blocked(settings, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    settings.config_dir = blocker / "shadowtls"


def test_unwritable_config_dir_raises_typed_error(installer, settings, runner, tmp_path):
    _blocked(settings, tmp_path)
    with pytest.raises(InstallFileError, match="Cannot write"):
        installer.install(InstallInputs(8443, "www.example.com"))
    assert runner.calls == []


def test_menu_survives_unwritable_config_dir(installer, settings, runner, tmp_path):
    _blocked(settings, tmp_path)
    menu = MenuController(
        installer,
        Uninstaller(settings, runner),
        ConfigInspector(settings, runner),
        prompt=FakePrompt(choices=["1", "4"], ports=[8443], names=["www.example.com"]),
    )
    assert menu.run() is MenuState.BACK
    assert not settings.unit_file.exists()


def test_inspector_with_unreadable_config(settings, runner):
    settings.config_file.mkdir(parents=True)
    with pytest.raises(NotFoundError, match="Cannot read"):
        ConfigInspector(settings, runner).show()
