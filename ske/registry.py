from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Union

from .system import System


class SystemRegistry:
    """Caller-owned cache holding one :class:`System` per root directory."""

    def __init__(self, **system_kwargs: Any) -> None:
        self._system_kwargs = system_kwargs
        self._systems: Dict[str, System] = {}

    @staticmethod
    def _key(root: Union[str, Path]) -> str:
        return os.path.realpath(str(root))

    def get(self, root: Union[str, Path]) -> System:
        key = self._key(root)
        if key not in self._systems:
            self._systems[key] = System(root, **self._system_kwargs)
        return self._systems[key]

    def roots(self) -> List[str]:
        return sorted(self._systems)

    def __contains__(self, root: object) -> bool:
        return isinstance(root, (str, Path)) and self._key(root) in self._systems

    def __len__(self) -> int:
        return len(self._systems)
