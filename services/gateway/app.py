from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ske import __version__
from ske.app import MODES
from ske.errors import SkeError
from ske.system import System


logger = logging.getLogger(__name__)

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _setting(key: str, default: str = "") -> str:
    return str(os.environ.get(key, "") or "").strip() or default


def _request_vars(request: Request, server_name: Optional[str]) -> Dict[str, Any]:
    query = request.url.query
    raw_path = request.scope.get("raw_path")
    # REQUEST_URI keeps the percent-encoding the client sent.
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    uri = path + (f"?{query}" if query else "")
    out: Dict[str, Any] = {
        "GATEWAY_INTERFACE": "CGI/1.1",
        "REQUEST_METHOD": request.method,
        "REQUEST_URI": uri,
        "QUERY_STRING": query,
        "HTTP_HOST": request.headers.get("host"),
    }
    if server_name:
        out["SERVER_NAME"] = server_name
    return out


def _to_response(value: Any) -> Response:
    if value is None:
        return Response(status_code=204)
    if isinstance(value, Response):
        return value
    if isinstance(value, bytes):
        return Response(content=value, media_type="application/octet-stream")
    if isinstance(value, str):
        return PlainTextResponse(value)
    return JSONResponse(value)


def create_app(
    root: Optional[Union[str, Path]] = None,
    *,
    server_name: Optional[str] = None,
    extension: Optional[str] = None,
    mode: Optional[str] = None,
) -> FastAPI:
    """Build the gateway.

    Settings fall back to ``SKE_ROOT``, ``SKE_SERVER_NAME``, ``SKE_EXTENSION``
    and ``SKE_MODE``. Without a server name, the process' ``SERVER_NAME`` (or
    ``localhost``) applies.
    """
    root_dir = Path(root if root is not None else _setting("SKE_ROOT", ".")).expanduser().resolve()
    server = server_name or _setting("SKE_SERVER_NAME") or None
    ext = extension or _setting("SKE_EXTENSION", "py")
    run_mode = mode or _setting("SKE_MODE", "dev")
    if run_mode not in MODES:
        raise ValueError(f"SKE_MODE must be one of {list(MODES)}, got {run_mode!r}")

    api = FastAPI(title="ske gateway", version=__version__)

    @api.api_route("/{path:path}", methods=METHODS)
    def dispatch(request: Request, path: str) -> Response:
        # One System per request; nothing is shared between requests.
        try:
            system = System(root_dir, local=_request_vars(request, server))
            dispatcher = system.new_app("gateway", mode=run_mode, extension=ext, interface="http")
            dispatcher.run()
        except SkeError as e:
            logger.error("dispatch failed for %s %s: %s", request.method, request.url.path, e)
            detail = f"{type(e).__name__}: {e}" if run_mode == "dev" else "internal_error"
            raise HTTPException(status_code=500, detail=detail)
        return _to_response(dispatcher.result)

    return api


app = create_app()
