from __future__ import annotations

import hashlib
import importlib.machinery
import importlib.util
import logging
import os
import re
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Iterable, Iterator, List, Union

from .context import ModuleContext
from .errors import (
    AlreadyExistsError,
    AlreadyImportedError,
    InvalidModuleError,
    InvalidPathError,
    NoOutputsError,
    NotEnoughOutputsError,
    NotFoundError,
    NotImportingError,
    OutputNotFoundError,
    RequiredModuleMissingError,
)
from .utils.fs import ensure_dir, locked_update_text, locked_write_text


logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "default"
DEFAULT_NAMESPACE = "ske"

_NON_IDENT_RE = re.compile(r"\W")

# sys.path entries added for module loads, with the number of loads using each.
_sys_path_lock = threading.Lock()
_sys_path_refs: Dict[str, int] = {}


@dataclass
class OutputSlot:
    """Assignment target for :meth:`Module.into`."""

    value: Any = None


@contextmanager
def _on_sys_path(directory: str) -> Iterator[None]:
    """Keep ``directory`` on sys.path until the last concurrent load using it ends."""
    with _sys_path_lock:
        owned = directory in _sys_path_refs or directory not in sys.path
        if owned:
            if directory not in _sys_path_refs:
                sys.path.insert(0, directory)
            _sys_path_refs[directory] = _sys_path_refs.get(directory, 0) + 1
    try:
        yield
    finally:
        if owned:
            with _sys_path_lock:
                _sys_path_refs[directory] -= 1
                if not _sys_path_refs[directory]:
                    del _sys_path_refs[directory]
                    try:
                        sys.path.remove(directory)
                    except ValueError:
                        pass


def _load_module_file(path: Path, module_name: str) -> ModuleType:
    # SourceFileLoader accepts any extension, not only .py.
    loader = importlib.machinery.SourceFileLoader(module_name, str(path))
    spec = importlib.util.spec_from_file_location(module_name, str(path), loader=loader)
    if spec is None or spec.loader is None:
        raise InvalidModuleError(f"Failed to load module file: {path}")

    mod = importlib.util.module_from_spec(spec)
    # Allow module files to import sibling helpers from their own directory.
    with _on_sys_path(str(path.parent)):
        spec.loader.exec_module(mod)
    return mod


class Module:
    """One executable file plus its input/output contract.

    The file is a Python source file (any extension) defining ``run(ctx)``.
    ``import_`` executes it with a :class:`ModuleContext` over the recorded
    inputs and stores the return value as the ``"default"`` output. While
    the import runs, the file may add named outputs with ``ctx.export``.

    Flags:

    - ``required``: a missing file is an error instead of a silent skip.
    - ``once``: after one successful import, further imports are refused.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        once: bool = False,
        required: bool = False,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._path = Path(".")
        self.set_path(path)
        self.once = bool(once)
        self.required = bool(required)
        self.namespace = namespace
        self.skipped = False
        self._inputs: Dict[str, Any] = {}
        self._outputs: Dict[str, Any] = {}
        self._importing = False
        self._imported = False

    # Location ------------------------------------------------------------
    @property
    def path(self) -> Path:
        return self._path

    def set_path(self, path: Union[str, Path]) -> "Module":
        p = Path(path)
        if p.is_dir():
            raise InvalidPathError(f"{path} is a directory")
        self._path = p
        return self

    @property
    def real_path(self) -> Path:
        return Path(os.path.realpath(self._path))

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def directory(self) -> Path:
        return self._path.parent

    def package(self):
        from .package import Package

        return Package(self.directory, extension=self._path.suffix.lstrip(".") or "py")

    # Filesystem ----------------------------------------------------------
    def exists(self) -> bool:
        return self._path.is_file()

    def create(self) -> "Module":
        if self.exists():
            raise AlreadyExistsError(f"Module {self.name} already exists")
        ensure_dir(self.directory)
        self._path.touch()
        logger.debug("created module file %s", self._path)
        return self

    def remove(self) -> "Module":
        if not self.exists():
            raise NotFoundError(f"Module {self.name} does not exist")
        self._path.unlink()
        logger.debug("removed module file %s", self._path)
        return self

    # Flags ---------------------------------------------------------------
    def mark_once(self) -> "Module":
        self.once = True
        return self

    def mark_required(self) -> "Module":
        self.required = True
        return self

    @property
    def importing(self) -> bool:
        return self._importing

    @property
    def imported(self) -> bool:
        return self._imported

    # Inputs --------------------------------------------------------------
    def with_input(self, name: str, value: Any) -> "Module":
        self._inputs[name] = value
        return self

    def with_inputs(self, inputs: Dict[str, Any]) -> "Module":
        for k, v in inputs.items():
            self.with_input(k, v)
        return self

    def get_input(self, name: str) -> Any:
        return self._inputs[name]

    @property
    def inputs(self) -> Dict[str, Any]:
        return dict(self._inputs)

    # Import --------------------------------------------------------------
    def _python_name(self) -> str:
        digest = hashlib.sha256(str(self.real_path).encode("utf-8")).hexdigest()[:8]
        stem = _NON_IDENT_RE.sub("_", f"{self.namespace}_{self._path.stem}")
        return f"{stem}_{digest}"

    def import_(self) -> "Module":
        """Execute the module file and collect its outputs.

        Outputs are reset at the start of every import. When the file is
        absent and the module is not required, the import is a no-op that
        leaves the outputs empty and sets ``skipped``.
        """
        if self.once and self._imported:
            raise AlreadyImportedError(f"Module {self.name} already imported")

        self._outputs = {}
        self.skipped = False

        if not self.exists():
            if self.required:
                raise RequiredModuleMissingError(f"Module {self.name} is required but does not exist")
            self.skipped = True
            logger.debug("optional module %s is absent; skipping", self._path)
            return self

        logger.debug("importing %s with inputs %s", self._path, sorted(self._inputs))
        self._importing = True
        try:
            runner = _load_module_file(self._path, self._python_name())
            entry = getattr(runner, "run", None)
            if not callable(entry):
                raise InvalidModuleError(f"Module file must define run(ctx): {self._path}")
            result = entry(ModuleContext(self, self._inputs))
            exported = {k: v for k, v in self._outputs.items() if k != DEFAULT_OUTPUT}
            self._outputs = {DEFAULT_OUTPUT: result}
            self._outputs.update(exported)
        finally:
            self._importing = False

        self._imported = True
        return self

    # Outputs -------------------------------------------------------------
    def export(self, name: str, value: Any) -> "Module":
        if not self._importing:
            raise NotImportingError(f"Module {self.name} is not importing")
        self._outputs[name] = value
        return self

    def export_many(self, outputs: Dict[str, Any]) -> "Module":
        for k, v in outputs.items():
            self.export(k, v)
        return self

    def output(self, name: str) -> Any:
        try:
            return self._outputs[name]
        except KeyError:
            raise OutputNotFoundError(f"Module {self.name} has no output {name!r}") from None

    @property
    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    def into(self, slot: OutputSlot, *slots: OutputSlot) -> "Module":
        """Assign outputs to ``slots`` in insertion order (``default`` first).

        Extra outputs are ignored; more slots than outputs is an error and
        leaves every slot untouched.
        """
        if not self._outputs:
            raise NoOutputsError(f"Module {self.name} has no outputs")
        targets = (slot,) + slots
        if len(targets) > len(self._outputs):
            raise NotEnoughOutputsError(
                f"Module {self.name} has {len(self._outputs)} outputs for {len(targets)} slots"
            )
        for target, value in zip(targets, self._outputs.values()):
            target.value = value
        return self

    # Contents ------------------------------------------------------------
    def get_contents(self) -> str:
        return self._path.read_text(encoding="utf-8")

    def set_contents(self, contents: str) -> "Module":
        locked_write_text(self._path, contents)
        return self

    def append_contents(self, contents: str) -> "Module":
        locked_update_text(self._path, lambda old: old + contents)
        return self

    def prepend_contents(self, contents: str) -> "Module":
        locked_update_text(self._path, lambda old: contents + old)
        return self

    def get_lines(self) -> List[str]:
        return self.get_contents().splitlines(keepends=True)

    def set_lines(self, lines: Iterable[str]) -> "Module":
        return self.set_contents("\n".join(lines))

    def __repr__(self) -> str:
        return f"Module({str(self._path)!r}, once={self.once}, required={self.required})"
