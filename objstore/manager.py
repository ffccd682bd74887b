"""Storage manager: named backend instances plus defaults.

The manager owns a mapping of logical names to live backends, a
``default`` backend, a ``default_fs`` backend, a static Names table and a
name resolution chain. Callers ask for a backend by logical name; the
chain may rewrite that name before the mapping is consulted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from objstore.base import StorageBackend
from objstore.names import Names
from objstore.resolver import NameDiscovery, NameResolverChain

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT", "DEFAULT_FS", "STORAGES", "StorageManager", "get_default_manager"]

DEFAULT = "default"
DEFAULT_FS = "default_fs"


class StorageManager:
    """Holds named storage backends and resolves logical names to them.

    Args:
        default: Backend returned for the name "default" and as fallback
        default_fs: Backend returned for the name "default_fs"
        names: Static name table; a new one is created when omitted
        resolvers: Resolution chain. When omitted, a chain is created whose
            first step rewrites names through ``names``.

    Example:
        >>> manager = StorageManager()
        >>> manager.register("media", storage)
        >>> manager.names.alias("media", "images")
        >>> manager.resolve_name("images") is storage
        True
    """

    def __init__(
        self,
        default: Optional[StorageBackend] = None,
        default_fs: Optional[StorageBackend] = None,
        names: Optional[Names] = None,
        resolvers: Optional[NameResolverChain] = None,
    ) -> None:
        self._default = default
        self._default_fs = default_fs
        self.names = names if names is not None else Names()
        self._storages: Dict[str, StorageBackend] = {}

        if resolvers is None:
            resolvers = NameResolverChain()
            resolvers.register("names", self._resolve_from_names)
        self.resolvers = resolvers

    def _resolve_from_names(self, discovery: NameDiscovery) -> None:
        name = self.names.get(discovery.name)
        if name != discovery.name:
            discovery.set_name(name)

    @property
    def default(self) -> Optional[StorageBackend]:
        return self._default

    @default.setter
    def default(self, storage: Optional[StorageBackend]) -> None:
        previous, self._default = self._default, storage
        self._release(previous, storage, DEFAULT)

    @property
    def default_fs(self) -> Optional[StorageBackend]:
        return self._default_fs

    @default_fs.setter
    def default_fs(self, storage: Optional[StorageBackend]) -> None:
        previous, self._default_fs = self._default_fs, storage
        self._release(previous, storage, DEFAULT_FS)

    def register(self, name: str, storage: StorageBackend) -> None:
        """Register a backend under a name, replacing any previous one.

        A replaced backend that is no longer referenced by another name or
        as a default is closed. The same applies when ``default`` or
        ``default_fs`` is reassigned.
        """
        previous = self._storages.get(name)
        self._storages[name] = storage
        logger.debug("Registered storage %r: %r", name, storage)
        self._release(previous, storage, name)

    def _release(
        self, previous: Optional[StorageBackend], current: Optional[StorageBackend], name: str
    ) -> None:
        if previous is None or previous is current or self._is_referenced(previous):
            return
        logger.info("Closing replaced storage %r", name)
        previous.close()

    def _is_referenced(self, storage: StorageBackend) -> bool:
        if storage is self.default or storage is self.default_fs:
            return True
        return any(s is storage for s in self._storages.values())

    def get(self, name: str) -> Optional[StorageBackend]:
        if name == DEFAULT:
            return self.default
        if name == DEFAULT_FS:
            return self.default_fs
        return self._storages.get(name)

    def get_or_default(self, name: str) -> Optional[StorageBackend]:
        storage = self.get(name)
        if storage is None:
            storage = self.default
        return storage

    def discover(self, name: str, context: Any = None) -> NameDiscovery:
        """Run the resolution chain and return its audit record."""
        return self.resolvers.discover(name, context)

    def resolve_name(self, name: str, context: Any = None) -> Optional[StorageBackend]:
        """Rewrite name through the chain, then get()."""
        return self.get(self.resolvers.resolve(name, context))

    def resolve_name_or_default(self, name: str, context: Any = None) -> Optional[StorageBackend]:
        """Rewrite name through the chain, then get_or_default()."""
        return self.get_or_default(self.resolvers.resolve(name, context))

    def names_registered(self) -> List[str]:
        return sorted(self._storages)

    def close(self) -> None:
        """Close every distinct backend held by the manager."""
        seen: List[StorageBackend] = []
        for storage in [self.default, self.default_fs, *self._storages.values()]:
            if storage is None or any(s is storage for s in seen):
                continue
            seen.append(storage)
            storage.close()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __repr__(self) -> str:
        return f"StorageManager(storages={self.names_registered()!r})"


STORAGES = StorageManager()


def get_default_manager() -> StorageManager:
    """Return the process-wide manager."""
    return STORAGES
