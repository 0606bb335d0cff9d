from __future__ import annotations

import os
from pathlib import Path
from typing import List, Union

from .errors import InvalidPathError, ModuleLookupError
from .module import Module
from .utils.paths import normalize_extension


class Package:
    """Read-only view over one directory of module files (non-recursive)."""

    def __init__(self, path: Union[str, Path], *, extension: str = "py") -> None:
        p = Path(path)
        if p.is_file():
            raise InvalidPathError(f"Package path must be a directory: {path}")
        self.path = p
        self.extension = normalize_extension(extension)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def real_path(self) -> Path:
        return Path(os.path.realpath(self.path))

    def modules(self) -> List[Module]:
        if not self.path.is_dir():
            return []
        return [Module(p) for p in sorted(self.path.glob(f"*.{self.extension}")) if p.is_file()]

    def module(self, name: str) -> Module:
        for m in self.modules():
            if m.name == name:
                return m
        raise ModuleLookupError(f"Module {name} does not exist in {self.path}")

    def module_by_path(self, path: Union[str, Path]) -> Module:
        wanted = Path(path)
        for m in self.modules():
            if m.path == wanted:
                return m
        raise ModuleLookupError(f"Module {path} does not exist in {self.path}")

    def __repr__(self) -> str:
        return f"Package({str(self.path)!r}, extension={self.extension!r})"
