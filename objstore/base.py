"""Abstract base class for storage backends.

Defines the interface that all storage backends must implement, plus the
value types they exchange with callers: Endpoint, FileInfo and
StorageObject.
"""

from __future__ import annotations

import io
import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, List, Optional, Sequence, Union
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

__all__ = [
    "Content",
    "Endpoint",
    "FileInfo",
    "StorageBackend",
    "StorageObject",
    "join_url",
    "normalize_path",
]

Content = Union[bytes, bytearray, BinaryIO]


@dataclass(frozen=True)
class Endpoint:
    """Where a backend's objects are externally addressable.

    Example:
        >>> Endpoint("https", "example.com", "/root").url()
        'https://example.com/root'
        >>> Endpoint(host="cdn", path="/x").url()
        'cdn/x'
    """

    scheme: str = ""
    host: str = ""
    path: str = ""

    @classmethod
    def parse(cls, text: str) -> "Endpoint":
        """Build an Endpoint from a URL string.

        Accepts absolute URLs (``https://cdn/x``), scheme-relative URLs
        (``//cdn/x``) and bare paths (``/x``).
        """
        if not text:
            return cls()
        parts = urlsplit(text)
        return cls(scheme=parts.scheme, host=parts.netloc, path=parts.path.rstrip("/"))

    def url(self) -> str:
        """Render scheme, host and path in that order."""
        return self.dynamic_url()

    def dynamic_url(self, scheme: str = "", host: str = "") -> str:
        """Render the URL, overriding scheme and/or host when given."""
        url = scheme or self.scheme
        if url:
            url += "://"
        url += host or self.host
        return url + self.path


@dataclass
class FileInfo:
    """Information about a stored object, as returned by stat()."""

    path: str
    name: str
    size: int = 0
    modified: Optional[datetime] = None
    is_dir: bool = False


@dataclass(frozen=True)
class StorageObject:
    """A single stored item.

    Immutable snapshot; content is always fetched again through the owning
    backend.
    """

    path: str
    name: str
    storage: "StorageBackend" = field(repr=False, compare=False)
    last_modified: Optional[datetime] = None

    def get(self) -> BinaryIO:
        """Open the object's current content through its backend."""
        return self.storage.get(self.path)

    def url(self) -> str:
        return self.storage.get_url(self.path)


def normalize_path(path: str) -> str:
    """Normalize a logical path into a key without outer slashes.

    Example:
        >>> normalize_path("/a//b/")
        'a/b'
        >>> normalize_path("")
        ''
    """
    path = (path or "").replace("\\", "/").strip("/")
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


def join_url(url: str, segments: Sequence[str]) -> str:
    """Append path segments to a base URL.

    The base loses its trailing slash and each segment its leading one.
    """
    if not segments:
        return url
    return url.rstrip("/") + "/" + "/".join(s.lstrip("/") for s in segments)


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Provides a uniform interface for storing, fetching, listing and
    deleting objects on different storage systems (local filesystem, FTP,
    S3, ...). Paths are logical keys relative to the backend root.

    Optional features (dynamic URLs, asset filesystems, HTTP serving) live in
    :mod:`objstore.capabilities` and are detected with ``isinstance``.
    """

    backend_type: str = "abstract"

    @abstractmethod
    def stat(self, path: str) -> Optional[FileInfo]:
        """Describe the object at a path.

        Args:
            path: Logical path relative to the backend root

        Returns:
            FileInfo, or None when nothing exists at the path

        Raises:
            StorageIOError: For any failure other than absence
        """
        pass

    @abstractmethod
    def get(self, path: str) -> BinaryIO:
        """Open the object's content for reading.

        Args:
            path: Logical path relative to the backend root

        Returns:
            Binary file object positioned at the start; caller closes it

        Raises:
            ObjectNotFoundError: If the object does not exist
            StorageIOError: For other failures
        """
        pass

    @abstractmethod
    def put(self, path: str, content: Content) -> StorageObject:
        """Store content at a path, replacing what was there.

        Missing parent directories or prefixes are created. A seekable
        stream is rewound before it is read.

        Args:
            path: Logical path relative to the backend root
            content: Bytes or a binary stream

        Returns:
            StorageObject describing the written item
        """
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the object at a path.

        Whether a missing path raises depends on the backend.
        """
        pass

    @abstractmethod
    def list(self, path: str = "") -> List[StorageObject]:
        """List the objects under a path.

        Only leaf objects are returned; the queried path itself and any
        directory entries are excluded.
        """
        pass

    @abstractmethod
    def get_endpoint(self) -> Endpoint:
        """Return the endpoint objects are published under."""
        pass

    def get_url(self, *segments: str) -> str:
        """Build a public URL for the given path segments.

        Example:
            >>> storage.get_url("a", "/b")  # endpoint https://example.com/root
            'https://example.com/root/a/b'
        """
        return join_url(self.get_endpoint().url(), segments)

    # Convenience methods (can be overridden for efficiency)

    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        return self.stat(path) is not None

    def read_bytes(self, path: str) -> bytes:
        """Read an object's whole content."""
        with self.get(path) as handle:
            return handle.read()

    def close(self) -> None:
        """Release connections or sessions held by the backend."""

    def _object(
        self, path: str, last_modified: Optional[datetime] = None
    ) -> StorageObject:
        return StorageObject(
            path=path,
            name=posixpath.basename(path),
            storage=self,
            last_modified=last_modified,
        )

    @staticmethod
    def _as_stream(content: Content) -> BinaryIO:
        """Wrap bytes in a stream and rewind seekable streams."""
        if isinstance(content, (bytes, bytearray)):
            return io.BytesIO(content)
        seekable = getattr(content, "seekable", None)
        if seekable is not None and seekable():
            content.seek(0)
        return content

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(endpoint={self.get_endpoint().url()!r})"
