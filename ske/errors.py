from __future__ import annotations


class SkeError(Exception):
    """Base class for dispatch errors."""


class ConfigError(SkeError):
    """Raised when a root config file cannot be parsed or fails validation."""


class InvalidPathError(SkeError, ValueError):
    """Raised when a module path is a directory or a package path is a file."""


class RootNotDirectoryError(SkeError):
    """Raised when an environment is rooted at something that is not a directory."""


class AlreadyExistsError(SkeError):
    """Raised when creating a module file that already exists."""


class NotFoundError(SkeError):
    """Raised when removing a module file that does not exist."""


class RequiredModuleMissingError(SkeError):
    """Raised when a required module has no backing file."""


class AlreadyImportedError(SkeError):
    """Raised when a once-only module is imported a second time."""


class NotImportingError(SkeError):
    """Raised when outputs are written outside of an active import."""


class InvalidModuleError(SkeError):
    """Raised when a module file does not define a callable ``run``."""


class OutputNotFoundError(SkeError, KeyError):
    """Raised when reading an output the module never produced."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class NoOutputsError(SkeError):
    """Raised when unpacking outputs of a module that produced none."""


class NotEnoughOutputsError(NoOutputsError):
    """Raised when more slots are given to ``into`` than there are outputs."""


class ModuleLookupError(SkeError):
    """Raised when a package has no module with the requested name or path."""


class InvocationMismatchError(SkeError):
    """Raised when the CLI entry point does not match the configured app name."""


class HostMismatchError(SkeError):
    """Raised when the request host is not under the configured server name."""


class OutsideRootError(SkeError):
    """Raised when a resolved module path escapes the dispatch directory."""
