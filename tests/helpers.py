"""Shared test helpers."""

import io
from typing import List, Optional

from objstore.base import Endpoint, FileInfo, StorageBackend, StorageObject, normalize_path


class MemoryStorage(StorageBackend):
    """Minimal in-memory backend for exercising code above the contract."""

    backend_type = "memory"

    def __init__(self, endpoint=Endpoint()):
        self.endpoint = endpoint
        self.data = {}
        self.closed = False

    def stat(self, path: str) -> Optional[FileInfo]:
        key = normalize_path(path)
        if key not in self.data:
            return None
        return FileInfo(path=key, name=key.rsplit("/", 1)[-1], size=len(self.data[key]))

    def get(self, path):
        return io.BytesIO(self.data[normalize_path(path)])

    def put(self, path, content):
        key = normalize_path(path)
        self.data[key] = self._as_stream(content).read()
        return self._object(key)

    def delete(self, path):
        del self.data[normalize_path(path)]

    def list(self, path="") -> List[StorageObject]:
        return [self._object(k) for k in sorted(self.data)]

    def get_endpoint(self):
        return self.endpoint

    def close(self):
        self.closed = True
