from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from .errors import HostMismatchError, InvocationMismatchError, OutsideRootError
from .module import Module, OutputSlot
from .system import System
from .utils.paths import (
    is_within,
    logical_module_path,
    match_host_base,
    module_filename,
    normalize_extension,
    request_path,
)


logger = logging.getLogger(__name__)

MODES: Tuple[str, ...] = ("dev", "prod")
INTERFACES: Tuple[str, ...] = ("cli", "http")
DEFAULT_SERVER_NAME = "localhost"


class App:
    """Resolves one module from the invocation context and imports it.

    CLI: ``argv[1]`` names the module (``<argv[1]>.<extension>``) once
    ``argv[0]`` has been checked against ``name``.

    HTTP: the subdomain prefix of ``HTTP_HOST`` (relative to ``SERVER_NAME``)
    and the path of ``REQUEST_URI`` form the module path, so
    ``api.example.com/users/1`` resolves to ``api/users/1.<extension>``.

    The dispatched module is always ``required`` and ``once`` and receives
    the system as its ``sys`` input. Its default output ends up in ``result``.
    """

    def __init__(
        self,
        system: System,
        name: str,
        *,
        mode: str = "dev",
        directory: Union[str, Path] = ".",
        namespace: str = "App",
        extension: str = "py",
        interface: Optional[str] = None,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"mode must be one of {list(MODES)}, got {mode!r}")
        if interface is not None and interface not in INTERFACES:
            raise ValueError(f"interface must be one of {list(INTERFACES)}, got {interface!r}")
        self.system = system
        self.name = str(name)
        self.mode = mode
        self.directory = Path(directory)
        self.namespace = namespace
        self.extension = normalize_extension(extension)
        self._interface = interface
        self._result = OutputSlot()
        self.module: Optional[Module] = None

    @property
    def interface(self) -> str:
        return self._interface or self.system.interface

    @property
    def result(self) -> Any:
        return self._result.value

    def run(self) -> "App":
        if self.interface == "cli":
            return self.run_cli()
        return self.run_http()

    # CLI -----------------------------------------------------------------
    def _matches_invocation(self, invoked: str) -> bool:
        if os.path.realpath(invoked) == os.path.realpath(self.name):
            return True
        return os.path.basename(invoked) == os.path.basename(self.name)

    def run_cli(self) -> "App":
        argv = list(self.system.get("argv", []) or [])
        argc = self.system.get("argc", 0)
        if argc != len(argv) or not argc:
            logger.debug("nothing to run: argc=%r argv=%r", argc, argv)
            return self

        invoked = str(argv.pop(0))
        argc -= 1
        if not self._matches_invocation(invoked):
            raise InvocationMismatchError(f"Cannot run {self.name} from {invoked}")

        if argc:
            self._dispatch(module_filename(str(argv[0]), self.extension))
        return self

    # HTTP ----------------------------------------------------------------
    def resolve_http_path(self) -> str:
        """Relative module path for the current request, "" when there is none."""
        server_name = str(self.system.get("SERVER_NAME", DEFAULT_SERVER_NAME) or DEFAULT_SERVER_NAME)
        host = self.system.get("HTTP_HOST")
        base = match_host_base(server_name, host)
        if base is None:
            raise HostMismatchError(f"Cannot access {server_name} from {host}")

        path = logical_module_path(base, request_path(self.system.get("REQUEST_URI")))
        if not path:
            return ""
        return module_filename(path, self.extension)

    def run_http(self) -> "App":
        path = self.resolve_http_path()
        if not path:
            logger.debug("empty request path; nothing to dispatch")
            return self
        self._dispatch(path)
        return self

    # ---------------------------------------------------------------------
    def _dispatch(self, path: str) -> None:
        self.system.set_root(self.directory)
        if not is_within(self.system.root, path):
            raise OutsideRootError(f"Module path {path} is outside {self.system.root}")
        module = self.system.get_module(path)
        module.namespace = self.namespace
        logger.info("dispatching %s via %s", module.path, self.interface)
        self.module = module
        module.mark_required().mark_once().with_input("sys", self.system).import_().into(self._result)

    def __repr__(self) -> str:
        return (
            f"App(name={self.name!r}, mode={self.mode!r}, directory={str(self.directory)!r}, "
            f"extension={self.extension!r})"
        )
