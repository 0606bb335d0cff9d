from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional, Pattern, Union
from urllib.parse import urlsplit

SLASHES_RE = re.compile(r"/+")
PORT_RE = re.compile(r":[0-9]+$")


def normalize_extension(extension: str) -> str:
    ext = str(extension or "").strip().lstrip(".")
    if not ext:
        raise ValueError("extension must not be empty")
    return ext


def module_filename(name: str, extension: str) -> str:
    return f"{name}.{normalize_extension(extension)}"


def host_pattern(server_name: str) -> Pattern[str]:
    """Pattern matching any host ending in ``server_name``.

    Whatever precedes the server name is captured as ``base``
    (``api.`` for ``api.example.com`` against ``example.com``).
    """
    return re.compile(rf"^(?P<base>.*){re.escape(server_name)}$", re.IGNORECASE)


def strip_port(host: str) -> str:
    return PORT_RE.sub("", host)


def match_host_base(server_name: str, host: Optional[str]) -> Optional[str]:
    """Return the subdomain prefix of ``host`` or None when it does not match."""
    if host is None:
        return None
    m = host_pattern(server_name).match(strip_port(str(host)))
    if m is None:
        return None
    return m.group("base") or ""


def request_path(uri: Optional[str]) -> str:
    """Path component of a request target, without query or fragment.

    Origin-form targets (``//a/b?x``) are taken as paths even when they
    start with ``//``; only absolute-form targets go through ``urlsplit``.
    """
    s = str(uri or "")
    if "://" in s:
        return urlsplit(s).path
    return s.split("#", 1)[0].split("?", 1)[0]


def logical_module_path(base: str, path: str, sep: str = os.sep) -> str:
    """Join a subdomain prefix and a URI path into a relative file path.

    Dots in ``base`` become directory separators, repeated slashes collapse,
    and leading/trailing slashes are dropped. Returns "" when nothing is left.
    """
    joined = f"{base.replace('.', '/')}/{path}"
    joined = SLASHES_RE.sub("/", joined).strip("/")
    return joined.replace("/", sep)


def is_within(directory: Union[str, Path], rel_path: Union[str, Path]) -> bool:
    """True when ``directory / rel_path`` resolves to a location under ``directory``."""
    base = Path(directory).resolve()
    target = (base / rel_path).resolve()
    return target == base or base in target.parents
