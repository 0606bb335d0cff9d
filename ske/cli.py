from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from .errors import SkeError
from .module import Module
from .package import Package
from .system import System
from .utils.paths import module_filename

PROG = "ske"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _root(args: argparse.Namespace) -> Path:
    return Path(args.root).expanduser().resolve()


def _print_result(value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bytes):
        sys.stdout.buffer.write(value)
        sys.stdout.flush()
        return
    if isinstance(value, str):
        print(value)
        return
    print(json.dumps(value, ensure_ascii=False, default=str))


def cmd_run(args: argparse.Namespace) -> int:
    argv: List[str] = [PROG, args.module, *args.args]
    system = System(_root(args), local={"argv": argv, "argc": len(argv)})
    app = system.new_app(PROG, mode=args.mode, extension=args.extension, interface="cli")
    app.run()
    _print_result(app.result)
    return 0


def cmd_request(args: argparse.Namespace) -> int:
    local: Dict[str, Any] = {
        "GATEWAY_INTERFACE": "CGI/1.1",
        "HTTP_HOST": args.host,
        "REQUEST_URI": args.uri,
        "REQUEST_METHOD": args.method.upper(),
        "QUERY_STRING": urlsplit(args.uri).query,
    }
    if args.server_name:
        local["SERVER_NAME"] = args.server_name
    system = System(_root(args), local=local)
    app = system.new_app(PROG, mode=args.mode, extension=args.extension, interface="http")
    app.run()
    _print_result(app.result)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    for m in Package(_root(args), extension=args.extension).modules():
        print(m.path.stem)
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    m = Module(_root(args) / module_filename(args.name, args.extension)).create()
    print(str(m.path))
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    Module(_root(args) / module_filename(args.name, args.extension)).remove()
    return 0


def cmd_env(args: argparse.Namespace) -> int:
    system = System(_root(args))
    if args.name:
        value = system.get(args.name)
        if value is None:
            return 1
        _print_result(value)
        return 0
    print(json.dumps(system.get(), indent=2, sort_keys=True, ensure_ascii=False, default=str))
    return 0


def _add_root(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--root", default=".", help="Directory holding the modules (default: cwd)")


def _add_extension(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--extension", default="py", help="Module file extension (default: py)")


def _add_mode(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--mode", default="dev", choices=["dev", "prod"])


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=PROG, description="File-based module dispatcher")
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.environ.get("SKE_LOG_LEVEL", "WARNING"),
        help="Logging level (default: $SKE_LOG_LEVEL or WARNING)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", help="Dispatch MODULE as a command-line invocation")
    sp.add_argument("module")
    sp.add_argument("args", nargs="*", help="Extra arguments, visible to the module through argv")
    _add_root(sp)
    _add_extension(sp)
    _add_mode(sp)
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("request", help="Dispatch a request URI as the HTTP gateway would")
    sp.add_argument("uri")
    sp.add_argument("--host", required=True, help="Value of the Host header")
    sp.add_argument("--server-name", default=None, help="Server name (default: $SERVER_NAME or localhost)")
    sp.add_argument("--method", default="GET")
    _add_root(sp)
    _add_extension(sp)
    _add_mode(sp)
    sp.set_defaults(func=cmd_request)

    sp = sub.add_parser("list", help="List modules in the root package")
    _add_root(sp)
    _add_extension(sp)
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("new", help="Create an empty module file")
    sp.add_argument("name")
    _add_root(sp)
    _add_extension(sp)
    sp.set_defaults(func=cmd_new)

    sp = sub.add_parser("remove", help="Delete a module file")
    sp.add_argument("name")
    _add_root(sp)
    _add_extension(sp)
    sp.set_defaults(func=cmd_remove)

    sp = sub.add_parser("env", help="Show the merged environment or one value")
    sp.add_argument("name", nargs="?")
    _add_root(sp)
    sp.set_defaults(func=cmd_env)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    # choices are not checked against the $SKE_LOG_LEVEL default.
    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid log level {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args) or 0)
    except SkeError as e:
        print(f"{PROG}: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
