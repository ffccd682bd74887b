"""FTP storage backend.

Uses ftplib with a small pool of control connections. Remote paths are
relative to the login directory, below the configured ``root_dir``.
"""

from __future__ import annotations

import ftplib
import logging
import posixpath
import queue
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from objstore.base import Content, Endpoint, FileInfo, StorageBackend, StorageObject, normalize_path
from objstore.capabilities import DynamicURLSupport
from objstore.context import FactoryContext
from objstore.errors import ObjectNotFoundError, StorageIOError
from objstore.registry import register_backend
from objstore.backends.helpers import build_endpoint, parse_backend_config

logger = logging.getLogger(__name__)

__all__ = ["FTPConfig", "FTPConnectionPool", "FTPStorage"]

# Spool downloads to disk past this size
SPOOL_MAX_SIZE = 8 * 1024 * 1024

class FTPConfig(BaseModel):
    """Configuration bag for the ``ftp`` backend."""

    model_config = ConfigDict(extra="forbid")

    hosts: List[str] = Field(min_length=1)
    root_dir: str = ""
    user: str = "anonymous"
    password: str = ""
    endpoint: Optional[Union[str, Dict[str, str]]] = None
    connections_per_host: int = Field(default=5, ge=1)
    timeout: float = Field(default=0, ge=0)


def split_host(host: str) -> Tuple[str, int]:
    """Split ``host[:port]`` into its parts, defaulting the port to 21."""
    name, sep, port = host.rpartition(":")
    if sep and port.isdigit():
        return name, int(port)
    return host, 21


def parse_ftp_time(value: str) -> Optional[datetime]:
    """Parse an MDTM/MLSD timestamp (``YYYYMMDDHHMMSS[.fff]``, UTC)."""
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def is_not_found(error: ftplib.Error) -> bool:
    return str(error)[:3] == "550"


class FTPConnectionPool:
    """Bounded pool of logged-in FTP control connections.

    At most ``connections_per_host * len(hosts)`` connections are in use at
    once. New connections try each host in order until one accepts the
    login. A connection goes back to the pool after a clean block or a
    permanent (5xx) reply; any other exception may leave a reply unread,
    so the connection is dropped.
    """

    def __init__(
        self,
        hosts: List[str],
        user: str = "anonymous",
        password: str = "",
        connections_per_host: int = 5,
        timeout: Optional[float] = None,
        ftp_class: Optional[Callable[[], ftplib.FTP]] = None,
    ) -> None:
        if not hosts:
            raise ValueError("At least one FTP host is required")
        self.hosts = list(hosts)
        self.user = user
        self.password = password
        self.timeout = timeout
        self._ftp_class = ftp_class
        self._semaphore = threading.BoundedSemaphore(connections_per_host * len(self.hosts))
        self._idle: "queue.LifoQueue[ftplib.FTP]" = queue.LifoQueue()

    def _connect(self) -> ftplib.FTP:
        last_error: Optional[BaseException] = None
        for host in self.hosts:
            address, port = split_host(host)
            conn = (self._ftp_class or ftplib.FTP)()
            try:
                conn.connect(address, port, timeout=self.timeout)
                conn.login(self.user, self.password)
                conn.voidcmd("TYPE I")
            except ftplib.all_errors as e:
                logger.warning("FTP connection to %s failed: %s", host, e)
                conn.close()
                last_error = e
                continue
            logger.debug("Opened FTP connection to %s as %s", host, self.user)
            return conn
        if last_error is None:
            raise StorageIOError("No FTP hosts configured", storage="ftp", operation="connect")
        raise last_error

    @contextmanager
    def connection(self) -> Iterator[ftplib.FTP]:
        """Borrow a connection for the duration of the block."""
        self._semaphore.acquire()
        try:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = self._connect()

            broken = False
            try:
                yield conn
            except ftplib.error_perm:
                raise
            except BaseException:
                broken = True
                raise
            finally:
                if broken:
                    logger.debug("Dropping broken FTP connection")
                    conn.close()
                else:
                    self._idle.put(conn)
        finally:
            self._semaphore.release()

    def close(self) -> None:
        """Log out of every idle connection."""
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            try:
                conn.quit()
            except ftplib.all_errors as e:
                logger.debug("FTP QUIT failed, closing socket: %s", e)
                conn.close()


class FTPStorage(StorageBackend, DynamicURLSupport):
    """FTP storage backend.

    Example:
        >>> storage = FTPStorage(["ftp.example.com:21"], root_dir="pub/media",
        ...                      endpoint=Endpoint.parse("https://cdn.example.com/media"))
        >>> storage.remote_path("/a/b/")
        'pub/media/a/b'

    Listing relies on MLSD; stat relies on SIZE and MDTM.
    """

    backend_type = "ftp"

    def __init__(
        self,
        hosts: List[str],
        root_dir: str = "",
        user: str = "anonymous",
        password: str = "",
        endpoint: Optional[Endpoint] = None,
        connections_per_host: int = 5,
        timeout: float = 0,
        ftp_class: Optional[Callable[[], ftplib.FTP]] = None,
    ) -> None:
        if not hosts:
            raise ValueError("At least one FTP host is required")

        self.root_dir = root_dir.strip("/")
        if endpoint is None:
            endpoint = Endpoint(
                scheme="ftp",
                host=hosts[0],
                path="/" + self.root_dir if self.root_dir else "",
            )
        self.endpoint = endpoint
        self._pool = FTPConnectionPool(
            hosts,
            user=user,
            password=password,
            connections_per_host=connections_per_host,
            timeout=timeout or None,
            ftp_class=ftp_class,
        )

        # Fail at construction time if no host accepts the login
        try:
            with self._pool.connection():
                pass
        except ftplib.all_errors as e:
            logger.error("Failed to connect to FTP hosts %s: %s", hosts, e)
            raise StorageIOError(
                "Could not connect to any FTP host",
                storage=self.backend_type,
                operation="connect",
                details={"hosts": ", ".join(hosts), "user": user},
                cause=e,
            ) from e
        logger.info("Initialized FTP storage on %s (root %r)", ", ".join(hosts), self.root_dir)

    def key(self, path: str) -> str:
        """Normalize a logical path, accepting ``//host/path`` URLs of the endpoint."""
        if path.startswith("//"):
            prefix = "//" + self.endpoint.host + self.endpoint.path
            if path.startswith(prefix):
                path = path[len(prefix):]
        return normalize_path(path)

    def remote_path(self, path: str) -> str:
        """Map a logical path to the path used on the server."""
        key = self.key(path)
        if not self.root_dir:
            return key
        return posixpath.join(self.root_dir, key) if key else self.root_dir

    def _io_error(self, operation: str, path: str, error: BaseException) -> StorageIOError:
        logger.error("FTP %s failed for %s: %s", operation, path, error)
        return StorageIOError(
            f"FTP {operation} failed for {path!r}",
            storage=self.backend_type,
            operation=operation,
            path=path,
            cause=error,
        )

    def _not_found(self, operation: str, path: str, error: BaseException) -> ObjectNotFoundError:
        return ObjectNotFoundError(
            f"Object not found: {path}",
            storage=self.backend_type,
            operation=operation,
            path=path,
            cause=error,
        )

    @staticmethod
    def _is_dir(conn: ftplib.FTP, remote: str) -> bool:
        origin = conn.pwd()
        try:
            conn.cwd(remote)
        except ftplib.error_perm:
            return False
        conn.cwd(origin)
        return True

    def _ensure_dirs(self, conn: ftplib.FTP, directory: str) -> None:
        current = ""
        for part in directory.split("/"):
            if not part:
                continue
            current = posixpath.join(current, part) if current else part
            if not self._is_dir(conn, current):
                logger.debug("Creating FTP directory %s", current)
                conn.mkd(current)

    def stat(self, path: str) -> Optional[FileInfo]:
        key = self.key(path)
        remote = self.remote_path(path)
        name = posixpath.basename(key)
        try:
            with self._pool.connection() as conn:
                try:
                    size = conn.size(remote)
                except ftplib.error_perm as e:
                    if not is_not_found(e):
                        raise
                    if remote and self._is_dir(conn, remote):
                        return FileInfo(path=key, name=name, is_dir=True)
                    return None
                modified = None
                try:
                    modified = parse_ftp_time(conn.sendcmd("MDTM " + remote)[4:].strip())
                except ftplib.error_perm as e:
                    logger.debug("MDTM unavailable for %s: %s", remote, e)
        except ftplib.all_errors as e:
            raise self._io_error("stat", path, e) from e

        return FileInfo(path=key, name=name, size=size or 0, modified=modified)

    def get(self, path: str) -> BinaryIO:
        remote = self.remote_path(path)
        spooled = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        try:
            with self._pool.connection() as conn:
                conn.retrbinary("RETR " + remote, spooled.write)
        except ftplib.error_perm as e:
            spooled.close()
            if is_not_found(e):
                raise self._not_found("get", path, e) from e
            raise self._io_error("get", path, e) from e
        except ftplib.all_errors as e:
            spooled.close()
            raise self._io_error("get", path, e) from e

        spooled.seek(0)
        return spooled

    def put(self, path: str, content: Content) -> StorageObject:
        key = self.key(path)
        remote = self.remote_path(path)
        stream = self._as_stream(content)
        try:
            with self._pool.connection() as conn:
                self._ensure_dirs(conn, posixpath.dirname(remote))
                conn.storbinary("STOR " + remote, stream)
        except ftplib.all_errors as e:
            raise self._io_error("put", path, e) from e

        logger.debug("Stored ftp:%s", remote)
        return self._object(key, datetime.now(timezone.utc))

    def delete(self, path: str) -> None:
        remote = self.remote_path(path)
        try:
            with self._pool.connection() as conn:
                conn.delete(remote)
        except ftplib.error_perm as e:
            if is_not_found(e):
                raise self._not_found("delete", path, e) from e
            raise self._io_error("delete", path, e) from e
        except ftplib.all_errors as e:
            raise self._io_error("delete", path, e) from e
        logger.debug("Deleted ftp:%s", remote)

    def list(self, path: str = "") -> List[StorageObject]:
        key = self.key(path)
        remote = self.remote_path(path)
        objects: List[StorageObject] = []
        try:
            with self._pool.connection() as conn:
                pending = [(remote, key)]
                while pending:
                    directory, prefix = pending.pop()
                    try:
                        entries = list(conn.mlsd(directory, facts=["type", "modify"]))
                    except ftplib.error_perm as e:
                        if is_not_found(e) and directory == remote:
                            return []
                        raise
                    for name, facts in entries:
                        kind = facts.get("type", "file")
                        if kind in ("cdir", "pdir") or name in (".", ".."):
                            continue
                        child_remote = posixpath.join(directory, name) if directory else name
                        child_key = posixpath.join(prefix, name) if prefix else name
                        if kind == "dir":
                            pending.append((child_remote, child_key))
                        else:
                            modified = parse_ftp_time(facts["modify"]) if "modify" in facts else None
                            objects.append(self._object(child_key, modified))
        except ftplib.all_errors as e:
            raise self._io_error("list", path, e) from e

        return sorted(objects, key=lambda o: o.path)

    def get_endpoint(self) -> Endpoint:
        return self.endpoint

    def close(self) -> None:
        self._pool.close()


@register_backend("ftp")
def _ftp_factory(context: Optional[FactoryContext], config: Dict[str, Any]) -> FTPStorage:
    cfg = parse_backend_config(FTPConfig, config, "ftp")
    hosts, root_dir, user, password = cfg.hosts, cfg.root_dir, cfg.user, cfg.password
    if context is not None:
        hosts = [context.format(host) for host in hosts]
        root_dir = context.format(root_dir)
        user = context.format(user)
        password = context.format(password)
    return FTPStorage(
        hosts,
        root_dir=root_dir,
        user=user,
        password=password,
        endpoint=build_endpoint(cfg.endpoint, context),
        connections_per_host=cfg.connections_per_host,
        timeout=cfg.timeout,
    )
