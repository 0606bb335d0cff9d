from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, Iterator

if TYPE_CHECKING:
    from .module import Module


class ModuleContext(Mapping):
    """Read-only view of a module's inputs, passed to its ``run(ctx)``.

    Inputs are read by name (``ctx["sys"]``, ``ctx.get("user")``). Besides
    the return value of ``run``, a module reports results through
    ``ctx.export`` while it is being imported.
    """

    def __init__(self, module: "Module", inputs: Dict[str, Any]) -> None:
        self._module = module
        self._inputs = dict(inputs)

    @property
    def module(self) -> "Module":
        return self._module

    @property
    def sys(self) -> Any:
        """The environment injected by the dispatcher, if any."""
        return self._inputs.get("sys")

    def __getitem__(self, name: str) -> Any:
        return self._inputs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._inputs)

    def __len__(self) -> int:
        return len(self._inputs)

    def export(self, name: str, value: Any) -> "ModuleContext":
        self._module.export(name, value)
        return self

    def export_many(self, outputs: Dict[str, Any]) -> "ModuleContext":
        self._module.export_many(outputs)
        return self

    def __repr__(self) -> str:
        return f"ModuleContext(module={self._module.name!r}, inputs={sorted(self._inputs)!r})"
