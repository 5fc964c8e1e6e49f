"""Error kinds raised by the installer steps.

Library code raises these; the menu reports them and keeps looping, the
entry point maps them to an exit status.
"""


class InstallerError(Exception):
    """Base class for every failure the installer reports to the operator."""


class NotPrivilegedError(InstallerError, PermissionError):
    pass


class DependencyError(InstallerError):
    """A required host tool is missing and could not be installed."""


class NetworkError(InstallerError):
    """Release lookup failed: transport error, timeout, or unusable body."""


class DownloadError(NetworkError):
    pass


class UnsupportedPlatformError(InstallerError):
    pass


class MissingDependencyError(InstallerError):
    """The upstream backend is not installed or its config is unusable."""


class NotFoundError(InstallerError, FileNotFoundError):
    pass


class InvalidInputError(InstallerError, ValueError):
    pass


class ServiceError(InstallerError):
    """systemctl refused to reload, enable or start the unit."""


class InstallFileError(InstallerError):
    """Config or unit file could not be written."""
