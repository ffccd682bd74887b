"""Local filesystem storage backend."""

from __future__ import annotations

import logging
import shutil
import stat as stat_module
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

import fsspec
from pydantic import BaseModel, ConfigDict

from objstore.base import Content, Endpoint, FileInfo, StorageBackend, StorageObject, normalize_path
from objstore.capabilities import (
    AssetFSSupport,
    DynamicURLSupport,
    HTTPServeSupport,
    ReadOnlyDirFileSystem,
)
from objstore.context import FactoryContext
from objstore.errors import (
    AssetFSUnavailableError,
    InvalidPathError,
    ObjectNotFoundError,
    StorageIOError,
)
from objstore.registry import register_backend
from objstore.backends.helpers import build_endpoint, parse_backend_config

logger = logging.getLogger(__name__)

__all__ = ["FileSystemConfig", "FileSystemStorage"]


class FileSystemConfig(BaseModel):
    """Configuration bag for the ``fs`` backend."""

    model_config = ConfigDict(extra="forbid")

    root_dir: str
    endpoint: Optional[Union[str, Dict[str, str]]] = None
    assets_dir: str = "assets"


class FileSystemStorage(StorageBackend, DynamicURLSupport, AssetFSSupport, HTTPServeSupport):
    """Local filesystem storage backend.

    Objects are files below ``root_dir``. Paths that would resolve outside
    the root are rejected with InvalidPathError.

    Without a configured endpoint, URLs are ``file://`` URLs of the root.

    Example:
        >>> storage = FileSystemStorage("~/data", endpoint=Endpoint(path="/files"))
        >>> storage.put("docs/readme.txt", b"hello")
        >>> storage.get_url("docs/readme.txt")
        '/files/docs/readme.txt'
    """

    backend_type = "fs"

    def __init__(
        self,
        root_dir: Union[str, Path],
        endpoint: Optional[Endpoint] = None,
        assets_dir: str = "assets",
    ) -> None:
        self.base = Path(root_dir).expanduser().resolve()
        self.endpoint = endpoint if endpoint is not None else Endpoint(scheme="file", path=self.base.as_posix())
        self.assets_dir = assets_dir
        logger.info("Initialized filesystem storage at %s", self.base)

    def _resolve_path(self, path: str) -> Path:
        """Map a logical path to an absolute path inside the root."""
        key = normalize_path(path)
        if not key:
            return self.base
        resolved = (self.base / key).resolve()
        if resolved != self.base and self.base not in resolved.parents:
            raise InvalidPathError(
                "Path escapes the storage root",
                storage=self.backend_type,
                path=path,
                details={"root": str(self.base)},
            )
        return resolved

    def _key(self, full_path: Path) -> str:
        return full_path.relative_to(self.base).as_posix()

    def stat(self, path: str) -> Optional[FileInfo]:
        resolved = self._resolve_path(path)
        try:
            st = resolved.stat()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            logger.error("Failed to stat %s: %s", resolved, e)
            raise StorageIOError(
                f"Could not stat {path!r}",
                storage=self.backend_type,
                operation="stat",
                path=path,
                cause=e,
            ) from e

        key = self._key(resolved) if resolved != self.base else ""
        return FileInfo(
            path=key,
            name=resolved.name,
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime),
            is_dir=stat_module.S_ISDIR(st.st_mode),
        )

    def get(self, path: str) -> BinaryIO:
        resolved = self._resolve_path(path)
        try:
            if resolved.is_dir():
                raise IsADirectoryError(str(resolved))
            return resolved.open("rb")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise ObjectNotFoundError(
                f"Object not found: {path}",
                storage=self.backend_type,
                operation="get",
                path=path,
            ) from e
        except OSError as e:
            logger.error("Failed to open %s: %s", resolved, e)
            raise StorageIOError(
                f"Could not read {path!r}",
                storage=self.backend_type,
                operation="get",
                path=path,
                cause=e,
            ) from e

    def put(self, path: str, content: Content) -> StorageObject:
        resolved = self._resolve_path(path)
        if resolved == self.base:
            raise InvalidPathError(
                "Cannot write to the storage root",
                storage=self.backend_type,
                operation="put",
                path=path,
            )

        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            with resolved.open("wb") as dst:
                shutil.copyfileobj(self._as_stream(content), dst)
            modified = datetime.fromtimestamp(resolved.stat().st_mtime)
        except OSError as e:
            logger.error("Failed to write %s: %s", resolved, e)
            raise StorageIOError(
                f"Could not write {path!r}",
                storage=self.backend_type,
                operation="put",
                path=path,
                cause=e,
            ) from e

        logger.debug("Wrote %s", resolved)
        return self._object(self._key(resolved), modified)

    def delete(self, path: str) -> None:
        resolved = self._resolve_path(path)
        if resolved == self.base or resolved.is_dir():
            raise ObjectNotFoundError(
                f"Not an object: {path}",
                storage=self.backend_type,
                operation="delete",
                path=path,
                suggestion="Directories are removed implicitly; delete the objects inside",
            )

        try:
            resolved.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(
                f"Object not found: {path}",
                storage=self.backend_type,
                operation="delete",
                path=path,
            ) from e
        except OSError as e:
            logger.error("Failed to delete %s: %s", resolved, e)
            raise StorageIOError(
                f"Could not delete {path!r}",
                storage=self.backend_type,
                operation="delete",
                path=path,
                cause=e,
            ) from e
        logger.debug("Deleted %s", resolved)

    def list(self, path: str = "") -> List[StorageObject]:
        resolved = self._resolve_path(path)
        if not resolved.is_dir():
            return []

        objects: List[StorageObject] = []
        for item in sorted(resolved.rglob("*")):
            if not item.is_file():
                continue
            modified = datetime.fromtimestamp(item.stat().st_mtime)
            objects.append(self._object(self._key(item), modified))
        return objects

    def get_endpoint(self) -> Endpoint:
        return self.endpoint

    def get_asset_fs(self) -> ReadOnlyDirFileSystem:
        """Return a read-only fsspec filesystem over ``<root>/<assets_dir>``.

        Raises:
            AssetFSUnavailableError: If the assets directory does not exist
        """
        assets = self._resolve_path(self.assets_dir)
        if not assets.is_dir():
            raise AssetFSUnavailableError(
                f"Assets directory {assets} does not exist",
                storage=self.backend_type,
                operation="get_asset_fs",
            )
        return ReadOnlyDirFileSystem(path=assets.as_posix(), fs=fsspec.filesystem("file"))


@register_backend("fs", "filesystem", "local")
def _filesystem_factory(context: Optional[FactoryContext], config: Dict) -> FileSystemStorage:
    cfg = parse_backend_config(FileSystemConfig, config, "fs")
    root_dir = context.format_path(cfg.root_dir) if context else cfg.root_dir
    return FileSystemStorage(
        root_dir,
        endpoint=build_endpoint(cfg.endpoint, context),
        assets_dir=cfg.assets_dir,
    )
