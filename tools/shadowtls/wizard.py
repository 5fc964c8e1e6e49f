"""Interactive management menu using questionary + rich.

The menu is meant to be embedded as a sub-menu of a larger tool: option 4
returns to the caller, option 0 exits the process.
"""

import logging
import sys
from enum import Enum

import questionary
from questionary import Style

from config_generator import validate_port
from errors import InstallerError, InvalidInputError
from installer import ConfigInspector, Installer, InstallInputs, Uninstaller
from report import (
    show_error,
    show_install_summary,
    show_menu,
    show_step,
    show_uninstalled,
)

logger = logging.getLogger(__name__)

# Custom questionary style
STYLE = Style([
    ("qmark", "fg:ansicyan bold"),
    ("question", "bold"),
    ("answer", "fg:ansicyan"),
    ("pointer", "fg:ansicyan bold"),
    ("highlighted", "fg:ansicyan bold"),
    ("instruction", "fg:ansibrightblack"),
])


class MenuState(Enum):
    MAIN_MENU = "main_menu"
    INSTALLING = "installing"
    UNINSTALLING = "uninstalling"
    INSPECTING = "inspecting"
    BACK = "back"
    EXITED = "exited"


TRANSITIONS = {
    "1": MenuState.INSTALLING,
    "2": MenuState.UNINSTALLING,
    "3": MenuState.INSPECTING,
    "4": MenuState.BACK,
    "0": MenuState.EXITED,
}


def _port_validator(text: str):
    try:
        validate_port(text)
    except InvalidInputError as e:
        return str(e)
    return True


class OperatorPrompt:
    """Blocking terminal prompts returning validated values."""

    def _ask(self, question):
        answer = question.ask()
        if answer is None:
            # Ctrl-C
            sys.exit(0)
        return answer

    def choice(self) -> str:
        return self._ask(
            questionary.text("Select an option [0-4]:", style=STYLE),
        ).strip()

    def listen_port(self) -> int:
        answer = self._ask(questionary.text(
            "ShadowTLS listen port (1-65535):",
            validate=_port_validator,
            style=STYLE,
        ))
        return validate_port(answer)

    def server_name(self) -> str:
        return self._ask(questionary.text(
            "TLS camouflage domain (e.g. www.microsoft.com):",
            validate=lambda t: bool(t.strip()) or "Domain must not be empty",
            style=STYLE,
        )).strip()


class MenuController:
    def __init__(
        self,
        installer: Installer,
        uninstaller: Uninstaller,
        inspector: ConfigInspector,
        prompt: OperatorPrompt | None = None,
    ):
        self.installer = installer
        self.uninstaller = uninstaller
        self.inspector = inspector
        self.prompt = prompt or OperatorPrompt()
        self.state = MenuState.MAIN_MENU

    def _collect_inputs(self) -> InstallInputs:
        while True:
            try:
                return InstallInputs(
                    listen_port=self.prompt.listen_port(),
                    server_name=self.prompt.server_name(),
                )
            except InvalidInputError as e:
                show_error(str(e))

    def _install(self) -> None:
        inputs = self._collect_inputs()
        show_step("Installing ShadowTLS...")
        summary = self.installer.install(inputs)
        show_install_summary(summary)

    def _uninstall(self) -> None:
        show_step("Uninstalling ShadowTLS...")
        show_uninstalled(self.uninstaller.uninstall())

    def _inspect(self) -> None:
        self.inspector.show()

    def step(self, selection: str) -> MenuState:
        """Handle one menu selection and return the state it led to."""
        target = TRANSITIONS.get(selection.strip())
        if target is None:
            show_error("Invalid choice")
            return MenuState.MAIN_MENU

        actions = {
            MenuState.INSTALLING: self._install,
            MenuState.UNINSTALLING: self._uninstall,
            MenuState.INSPECTING: self._inspect,
        }
        action = actions.get(target)
        if action is None:
            self.state = target
            return target

        self.state = target
        try:
            action()
        except InstallerError as e:
            logger.debug("%s failed", target.value, exc_info=True)
            show_error(str(e))
        finally:
            self.state = MenuState.MAIN_MENU
        return target

    def run(self) -> MenuState:
        """Loop until back (returned to the caller) or exit (process ends)."""
        while True:
            show_menu()
            state = self.step(self.prompt.choice())
            if state is MenuState.BACK:
                return state
            if state is MenuState.EXITED:
                sys.exit(0)
