#!/usr/bin/env python3
"""ShadowTLS installer: install, uninstall and inspect a ShadowTLS v3 server.

Puts ShadowTLS (https://github.com/ihciah/shadow-tls) in front of an
existing Snell v4 backend and manages it as a systemd service.

Usage:
    sudo python shadowtls.py           # Interactive menu
"""

import logging
import sys

from rich.logging import RichHandler

from errors import NotPrivilegedError
from installer import ConfigInspector, Installer, Uninstaller
from report import console, show_error
from settings import Settings
from system import SystemCommandRunner, ensure_privileged
from wizard import MenuController, MenuState


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def build_menu(settings: Settings | None = None) -> MenuController:
    settings = settings or Settings()
    runner = SystemCommandRunner()
    return MenuController(
        installer=Installer(settings, runner),
        uninstaller=Uninstaller(settings, runner),
        inspector=ConfigInspector(settings, runner),
    )


def main() -> None:
    setup_logging()

    try:
        ensure_privileged()
    except NotPrivilegedError as e:
        show_error(str(e))
        sys.exit(1)

    state = build_menu().run()
    if state is MenuState.BACK:
        # Nothing above us when run directly
        sys.exit(0)


if __name__ == "__main__":
    main()
