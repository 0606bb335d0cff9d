from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

from .errors import ConfigError


logger = logging.getLogger(__name__)

# First match wins when a root holds more than one.
CONFIG_FILENAMES: Tuple[str, ...] = ("ske.ini", "ske.yml", "ske.yaml")

INT_RE = re.compile(r"^[-+]?[0-9]+$")
FLOAT_RE = re.compile(r"^[-+]?(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?$")
SECTION_RE = re.compile(r"^\[(?P<name>[^\]]*)\]$")

TRUE_WORDS = ("true", "on", "yes")
FALSE_WORDS = ("false", "off", "no", "none")


def _config_schema() -> Dict[str, Any]:
    scalar = {"type": ["string", "number", "boolean", "null"]}
    value = {"anyOf": [scalar, {"type": "array", "items": scalar}]}
    section = {"type": "object", "additionalProperties": value}
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "additionalProperties": {"anyOf": [value, section]},
    }


def find_config_file(root: Path) -> Optional[Path]:
    for name in CONFIG_FILENAMES:
        p = root / name
        if p.is_file():
            return p
    return None


def parse_ini_value(raw: str) -> Any:
    """Type a bare INI value.

    Quoted values stay strings. Bare values map ``true/on/yes`` and
    ``false/off/no/none`` to booleans, ``null`` to None, and numerals to
    int/float; anything else is returned as stripped text.
    """
    s = raw.strip()
    if len(s) >= 2 and s[0] in "\"'":
        end = s.find(s[0], 1)
        if end == -1:
            raise ValueError(f"unterminated string: {raw!r}")
        return s[1:end]

    # Inline comment
    if ";" in s:
        s = s.split(";", 1)[0].rstrip()

    low = s.lower()
    if low in TRUE_WORDS:
        return True
    if low in FALSE_WORDS:
        return False
    if low == "null":
        return None
    if INT_RE.match(s):
        return int(s)
    if FLOAT_RE.match(s):
        return float(s)
    return s


def _assign(target: Dict[str, Any], key: str, value: Any, where: str) -> None:
    if key.endswith("[]"):
        name = key[:-2].strip()
        if not name:
            raise ConfigError(f"empty array name at {where}")
        current = target.get(name)
        if current is None:
            target[name] = [value]
        elif isinstance(current, list):
            current.append(value)
        else:
            raise ConfigError(f"{name!r} is both a scalar and an array at {where}")
        return
    target[key] = value


def read_ini(path: Path) -> Dict[str, Any]:
    """Parse an INI file with optional one-level ``[section]`` grouping."""
    data: Dict[str, Any] = {}
    current = data
    text = path.read_text(encoding="utf-8")
    for lineno, line in enumerate(text.splitlines(), start=1):
        where = f"{path}:{lineno}"
        s = line.strip()
        if not s or s[0] in ";#":
            continue

        m = SECTION_RE.match(s)
        if m:
            name = m.group("name").strip()
            if not name:
                raise ConfigError(f"empty section name at {where}")
            section = data.get(name)
            if not isinstance(section, dict):
                section = {}
                data[name] = section
            current = section
            continue

        if "=" not in s:
            raise ConfigError(f"expected key = value at {where}: {s!r}")
        key, raw = s.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigError(f"empty key at {where}")
        try:
            value = parse_ini_value(raw)
        except ValueError as e:
            raise ConfigError(f"{e} at {where}") from e
        _assign(current, key, value, where)
    return data


def read_yaml_config(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config must be a mapping: {path}")
    return data


def validate_config(data: Dict[str, Any], path: Path) -> None:
    try:
        jsonschema.validate(instance=data, schema=_config_schema())
    except jsonschema.ValidationError as e:
        raise ConfigError(f"config schema validation failed for {path}: {e.message}") from e


def load_config(path: Path) -> Dict[str, Any]:
    if path.suffix.lower() == ".ini":
        data = read_ini(path)
    else:
        data = read_yaml_config(path)
    # YAML allows non-string keys; environment names are strings.
    data = {str(k): (_stringify_keys(v) if isinstance(v, dict) else v) for k, v in data.items()}
    validate_config(data, path)
    logger.debug("loaded config %s (%d entries)", path, len(data))
    return data


def _stringify_keys(section: Dict[Any, Any]) -> Dict[str, Any]:
    return {str(k): v for k, v in section.items()}


def flatten_config(data: Dict[str, Any]) -> List[Tuple[str, Any]]:
    """Flatten one level of sections into upper-case environment names.

    ``foo = 1`` becomes ``("FOO", 1)`` and ``[db] host = x`` becomes
    ``("DB_HOST", "x")``. Order follows the file.
    """
    out: List[Tuple[str, Any]] = []
    for key, value in data.items():
        if isinstance(value, dict):
            for k, v in value.items():
                out.append((f"{key}_{k}".upper(), v))
        else:
            out.append((key.upper(), value))
    return out
