"""Command line interface for objstore.

Usage:
    objstore backends
    objstore --config storages.yaml ls media images/
    objstore --config storages.yaml put media logo.png ./logo.png
    objstore --config storages.yaml cat media logo.png > logo.png
    objstore --config storages.yaml resolve images
    objstore --config storages.yaml url media logo.png --scheme http
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from objstore.base import StorageBackend
from objstore.capabilities import dynamic_url, supported_capabilities
from objstore.config import load_manager
from objstore.errors import ConfigurationError, StorageError
from objstore.logging_config import setup_logging
from objstore.manager import StorageManager
from objstore.registry import FACTORIES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "storages.yaml"


def _manager(args: argparse.Namespace) -> StorageManager:
    return load_manager(args.config, env_file=args.env_file)


def _storage(manager: StorageManager, name: str) -> StorageBackend:
    storage = manager.resolve_name(name)
    if storage is None:
        raise ConfigurationError(
            f"Unknown storage: {name}",
            field="storage",
            value=name,
            suggestion=f"Configured storages: {', '.join(manager.names_registered()) or 'none'}",
        )
    return storage


def cmd_backends(args: argparse.Namespace) -> int:
    for name in FACTORIES.list_backends():
        print(name)
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    manager = _manager(args)
    discovery = manager.discover(args.name, args.context)
    for revision in discovery.history:
        print(f"  {revision.resolver.label}: {revision.previous} -> {revision.name}")
    storage = manager.get(discovery.name)
    if storage is None:
        print(f"{args.name} -> {discovery.name} (not registered)")
        return 1
    capabilities = ", ".join(supported_capabilities(storage)) or "none"
    print(f"{args.name} -> {discovery.name} [{storage.backend_type}] capabilities: {capabilities}")
    return 0


def cmd_ls(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    for obj in storage.list(args.path):
        modified = obj.last_modified.isoformat() if obj.last_modified else "-"
        print(f"{modified}  {obj.path}")
    return 0


def cmd_stat(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    info = storage.stat(args.path)
    if info is None:
        print(f"{args.path}: not found", file=sys.stderr)
        return 1
    print(f"path:     {info.path}")
    print(f"name:     {info.name}")
    print(f"size:     {info.size}")
    print(f"modified: {info.modified.isoformat() if info.modified else '-'}")
    print(f"is_dir:   {info.is_dir}")
    return 0


def cmd_cat(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    with storage.get(args.path) as handle:
        sys.stdout.buffer.write(handle.read())
    sys.stdout.flush()
    return 0


def cmd_put(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    if args.source and args.source != "-":
        with open(args.source, "rb") as f:
            obj = storage.put(args.path, f)
    else:
        obj = storage.put(args.path, sys.stdin.buffer.read())
    print(obj.url())
    return 0


def cmd_rm(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    storage.delete(args.path)
    logger.info("Deleted %s from %s", args.path, args.storage)
    return 0


def cmd_url(args: argparse.Namespace) -> int:
    storage = _storage(_manager(args), args.storage)
    if args.scheme or args.host:
        print(dynamic_url(storage, args.scheme or "", args.host or "", *args.paths))
    else:
        print(storage.get_url(*args.paths))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="objstore",
        description="Inspect and manipulate configured object storages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List registered backend types
    objstore backends

    # Show how a logical name resolves
    objstore --config storages.yaml resolve images

    # Upload from stdin
    echo hello | objstore --config storages.yaml put local notes/hello.txt
        """,
    )
    parser.add_argument(
        "--config",
        "-c",
        default=os.environ.get("OBJSTORE_CONFIG", DEFAULT_CONFIG),
        help="Storage configuration file (default: $OBJSTORE_CONFIG or storages.yaml)",
    )
    parser.add_argument(
        "--env-file",
        help="Load environment variables from this .env file first",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("backends", help="List registered backend types")
    p.set_defaults(func=cmd_backends)

    p = sub.add_parser("resolve", help="Show how a logical storage name resolves")
    p.add_argument("name")
    p.add_argument("--context", help="Opaque context value passed to resolvers")
    p.set_defaults(func=cmd_resolve)

    p = sub.add_parser("ls", help="List objects under a path")
    p.add_argument("storage")
    p.add_argument("path", nargs="?", default="")
    p.set_defaults(func=cmd_ls)

    for name, func, help_text in (
        ("stat", cmd_stat, "Describe an object"),
        ("cat", cmd_cat, "Write an object's content to stdout"),
        ("rm", cmd_rm, "Delete an object"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("storage")
        p.add_argument("path")
        p.set_defaults(func=func)

    p = sub.add_parser("put", help="Store a file (or stdin) as an object")
    p.add_argument("storage")
    p.add_argument("path")
    p.add_argument("source", nargs="?", help="Local file to upload (default: stdin)")
    p.set_defaults(func=cmd_put)

    p = sub.add_parser("url", help="Print the public URL of an object")
    p.add_argument("storage")
    p.add_argument("paths", nargs="+")
    p.add_argument("--scheme", help="Override the endpoint scheme")
    p.add_argument("--host", help="Override the endpoint host")
    p.set_defaults(func=cmd_url)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, json_format=args.json_logs)

    try:
        return args.func(args)
    except StorageError as e:
        logger.debug(
            "Command %s failed", args.command, exc_info=True, extra={"command": args.command}
        )
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
