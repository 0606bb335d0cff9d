from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .config import find_config_file, flatten_config, load_config
from .errors import RootNotDirectoryError


logger = logging.getLogger(__name__)

SCALAR_TYPES = (str, int, float, bool)


def _as_env_string(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


class Environment:
    """Layered key/value store scoped to a root directory.

    Lookups check, in order:

    1. ``overrides``: values from the root config file and explicit ``set`` calls
    2. ``local``: invocation-scoped variables (``argv``/``argc`` for the CLI,
       ``SERVER_NAME``/``HTTP_HOST``/``REQUEST_URI`` for HTTP)
    3. ``inherited``: a snapshot of the process environment (strings only)

    The instance owns all three layers; nothing is written back to
    ``os.environ``.
    """

    def __init__(
        self,
        root: Union[str, Path],
        *,
        local: Optional[Mapping[str, Any]] = None,
        inherited: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.overrides: Dict[str, Any] = {}
        self.local: Dict[str, Any] = dict(local or {})
        self.inherited: Dict[str, str] = dict(os.environ if inherited is None else inherited)
        self._root: Path = Path(".")
        self.set_root(root)

    @classmethod
    def from_process(cls, root: Union[str, Path], argv: Optional[Sequence[str]] = None, **kwargs: Any):
        """Build a store seeded with the running process' argv and environment."""
        args = list(sys.argv if argv is None else argv)
        return cls(root, local={"argv": args, "argc": len(args)}, **kwargs)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def interface(self) -> str:
        """``"http"`` when a gateway interface is declared, ``"cli"`` otherwise."""
        return "http" if self.get("GATEWAY_INTERFACE") else "cli"

    def set_root(self, directory: Union[str, Path]):
        """Re-point the store and merge the directory's config file.

        Merging is destructive: every key found in the file overwrites the
        same name in all layers. A missing config file is not an error.
        """
        p = Path(directory)
        if not p.is_dir():
            raise RootNotDirectoryError(f"{directory} is not a directory")
        self._root = p

        cfg_path = find_config_file(p)
        if cfg_path is None:
            logger.debug("no config file under %s", p)
            return self

        for name, value in flatten_config(load_config(cfg_path)):
            self.set(name, value)
        logger.debug("merged %s into environment", cfg_path)
        return self

    def get(self, name: Optional[str] = None, default: Any = None) -> Any:
        if name is None:
            return {**self.inherited, **self.local, **self.overrides}
        for layer in (self.overrides, self.local, self.inherited):
            if name in layer:
                return layer[name]
        return default

    def set(self, name: str, value: Any):
        self.overrides[name] = value
        self.local[name] = value
        if isinstance(value, SCALAR_TYPES):
            self.inherited[name] = _as_env_string(value)
        return self

    def __contains__(self, name: object) -> bool:
        return any(name in layer for layer in (self.overrides, self.local, self.inherited))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root={str(self._root)!r})"
