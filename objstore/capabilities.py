"""Optional backend capabilities.

Each capability is a mixin a backend opts into. Callers detect support with
``isinstance`` or use the helper functions below, which raise the matching
CapabilityUnavailableError subclass when a backend lacks the feature.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Any, Callable, Dict, Iterable, List

from fsspec.implementations.dirfs import DirFileSystem

from objstore.base import Endpoint, StorageBackend, join_url
from objstore.errors import (
    AssetFSUnavailableError,
    DynamicURLUnavailableError,
    InvalidPathError,
    ObjectNotFoundError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AssetFSSupport",
    "DynamicURLSupport",
    "HTTPServeSupport",
    "ReadOnlyDirFileSystem",
    "asset_fs",
    "dynamic_url",
    "supported_capabilities",
]

StartResponse = Callable[..., Any]


class DynamicURLSupport:
    """Backends whose URLs can be rebuilt with another scheme or host."""

    def get_dynamic_url(self, scheme: str = "", host: str = "", *segments: str) -> str:
        endpoint: Endpoint = self.get_endpoint()  # type: ignore[attr-defined]
        return join_url(endpoint.dynamic_url(scheme, host), segments)


class AssetFSSupport:
    """Backends that can export a read-only filesystem of static assets."""

    def get_asset_fs(self) -> DirFileSystem:
        """Return the read-only asset filesystem. Backends override this."""
        raise AssetFSUnavailableError(
            storage=getattr(self, "backend_type", None), operation="get_asset_fs"
        )


class HTTPServeSupport:
    """Backends that can serve object content over HTTP as a WSGI app.

    The request path is used as the object path. Only GET and HEAD are
    answered; anything else gets 405.
    """

    def serve_http(self, environ: Dict[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        method = environ.get("REQUEST_METHOD", "GET").upper()
        path = environ.get("PATH_INFO", "")

        if method not in ("GET", "HEAD"):
            start_response(
                "405 Method Not Allowed",
                [("Allow", "GET, HEAD"), ("Content-Type", "text/plain")],
            )
            return [b"Method Not Allowed"]

        try:
            body = self.read_bytes(path)  # type: ignore[attr-defined]
        except (ObjectNotFoundError, InvalidPathError):
            logger.debug("HTTP %s %s: not found", method, path)
            start_response("404 Not Found", [("Content-Type", "text/plain")])
            return [b"Not Found"]

        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        start_response(
            "200 OK",
            [("Content-Type", content_type), ("Content-Length", str(len(body)))],
        )
        return [b""] if method == "HEAD" else [body]


class ReadOnlyDirFileSystem(DirFileSystem):
    """DirFileSystem that refuses every mutating call."""

    cachable = False

    def _refuse(self, *args: Any, **kwargs: Any) -> None:
        raise PermissionError("Asset filesystem is read-only")

    rm = rm_file = rmdir = _refuse
    mkdir = makedirs = touch = _refuse
    pipe = pipe_file = put = put_file = _refuse
    copy = cp_file = mv = _refuse

    def open(self, path: str, mode: str = "rb", *args: Any, **kwargs: Any) -> Any:
        if any(flag in mode for flag in ("w", "a", "x", "+")):
            raise PermissionError(f"Asset filesystem is read-only (mode {mode!r})")
        return super().open(path, mode, *args, **kwargs)


def dynamic_url(storage: StorageBackend, scheme: str = "", host: str = "", *segments: str) -> str:
    """Build a URL with an overridden scheme/host.

    Raises:
        DynamicURLUnavailableError: If the backend cannot do it
    """
    if not isinstance(storage, DynamicURLSupport):
        raise DynamicURLUnavailableError(
            storage=storage.backend_type, operation="get_dynamic_url"
        )
    return storage.get_dynamic_url(scheme, host, *segments)


def asset_fs(storage: StorageBackend) -> DirFileSystem:
    """Return the backend's read-only asset filesystem.

    Raises:
        AssetFSUnavailableError: If the backend does not export one
    """
    if not isinstance(storage, AssetFSSupport):
        raise AssetFSUnavailableError(storage=storage.backend_type, operation="get_asset_fs")
    return storage.get_asset_fs()


def supported_capabilities(storage: StorageBackend) -> List[str]:
    """Names of the optional capabilities a backend provides."""
    names = []
    if isinstance(storage, DynamicURLSupport):
        names.append("dynamic_url")
    if isinstance(storage, AssetFSSupport):
        names.append("asset_fs")
    if isinstance(storage, HTTPServeSupport):
        names.append("http")
    return names
