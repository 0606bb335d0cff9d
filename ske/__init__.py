"""File-based module dispatch.

A :class:`System` is an environment store rooted at a directory; an
:class:`App` resolves a CLI invocation or an HTTP request to one module file
under that root and imports it. See ``ske.module`` for the module contract.
"""

from __future__ import annotations

from .app import App
from .context import ModuleContext
from .env import Environment
from .errors import (
    AlreadyExistsError,
    AlreadyImportedError,
    ConfigError,
    HostMismatchError,
    InvalidModuleError,
    InvalidPathError,
    InvocationMismatchError,
    ModuleLookupError,
    NoOutputsError,
    NotEnoughOutputsError,
    NotFoundError,
    NotImportingError,
    OutputNotFoundError,
    OutsideRootError,
    RequiredModuleMissingError,
    RootNotDirectoryError,
    SkeError,
)
from .module import Module, OutputSlot
from .package import Package
from .registry import SystemRegistry
from .system import System

__all__ = [
    "__version__",
    "App",
    "Environment",
    "Module",
    "ModuleContext",
    "OutputSlot",
    "Package",
    "System",
    "SystemRegistry",
    "SkeError",
    "ConfigError",
    "InvalidPathError",
    "RootNotDirectoryError",
    "AlreadyExistsError",
    "NotFoundError",
    "RequiredModuleMissingError",
    "AlreadyImportedError",
    "NotImportingError",
    "InvalidModuleError",
    "OutputNotFoundError",
    "NoOutputsError",
    "NotEnoughOutputsError",
    "ModuleLookupError",
    "InvocationMismatchError",
    "HostMismatchError",
    "OutsideRootError",
]
__version__ = "0.1.0"
