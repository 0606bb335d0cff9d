from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .env import Environment
from .module import Module


logger = logging.getLogger(__name__)


class System(Environment):
    """Environment store that also owns the modules resolved under its root.

    Modules are cached by absolute path, so re-rooting the system never hands
    back a module from the previous root.
    """

    def __init__(
        self,
        root: Union[str, Path],
        *,
        local: Optional[Mapping[str, Any]] = None,
        inherited: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._modules: Dict[Path, Module] = {}
        super().__init__(root, local=local, inherited=inherited)

    def _module_key(self, name: str) -> Path:
        return (self.root / name).absolute()

    def get_module(self, name: str) -> Module:
        key = self._module_key(name)
        if key not in self._modules:
            self.add_module(name)
        return self._modules[key]

    def add_module(self, name: str) -> "System":
        key = self._module_key(name)
        self._modules[key] = Module(self.root / name)
        logger.debug("registered module %s", key)
        return self

    @property
    def modules(self) -> Dict[Path, Module]:
        return dict(self._modules)

    def new_app(
        self,
        name: str,
        mode: str = "dev",
        directory: Optional[Union[str, Path]] = None,
        namespace: str = "App",
        extension: str = "py",
        interface: Optional[str] = None,
    ):
        from .app import App

        return App(
            self,
            name,
            mode=mode,
            directory=self.root if directory is None else directory,
            namespace=namespace,
            extension=extension,
            interface=interface,
        )

    def run_app(self, app) -> "System":
        app.run()
        return self

    def run_new_app(self, name: str, **kwargs: Any) -> "System":
        return self.run_app(self.new_app(name, **kwargs))
