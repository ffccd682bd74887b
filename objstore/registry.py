"""Backend factory registry.

Maps a backend type name (``fs``, ``ftp``, ``s3``, ...) to a factory that
turns a configuration bag into a live StorageBackend.

This module provides:
- FactoryRegistry: an explicit, instance-scoped registry
- FACTORIES: the process-wide default registry
- register_backend(): decorator registering into FACTORIES
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from objstore.base import StorageBackend
from objstore.context import FactoryContext
from objstore.errors import ConstructionError, FactoryNotFoundError

logger = logging.getLogger(__name__)

__all__ = [
    "FACTORIES",
    "FactoryRegistry",
    "StorageFactory",
    "list_backends",
    "register_backend",
]

StorageFactory = Callable[[Optional[FactoryContext], Dict[str, Any]], StorageBackend]


class FactoryRegistry:
    """Registry of backend factories keyed by lower-cased type name.

    Registering a name twice silently replaces the earlier factory.

    Example:
        >>> registry = FactoryRegistry()
        >>> registry.register("memory", lambda ctx, cfg: MemoryStorage())
        >>> storage = registry.create("memory", {})
    """

    def __init__(self) -> None:
        self._factories: Dict[str, StorageFactory] = {}

    def register(self, type_name: str, factory: StorageFactory) -> None:
        key = type_name.lower()
        if key in self._factories:
            logger.debug("Replacing storage factory %r", key)
        self._factories[key] = factory

    def resolve(self, type_name: str) -> Optional[StorageFactory]:
        """Return the factory for a type, or None."""
        return self._factories.get(type_name.lower())

    def get(self, type_name: str) -> StorageFactory:
        """Return the factory for a type.

        Raises:
            FactoryNotFoundError: Naming the registered types
        """
        factory = self.resolve(type_name)
        if factory is None:
            raise FactoryNotFoundError(type_name, available=self.list_backends())
        return factory

    def create(
        self,
        type_name: str,
        config: Optional[Mapping[str, Any]] = None,
        context: Optional[FactoryContext] = None,
    ) -> StorageBackend:
        """Build a backend instance through its registered factory.

        Args:
            type_name: Registered backend type
            config: Backend configuration bag
            context: Optional templating context passed to the factory

        Returns:
            The constructed backend

        Raises:
            ConstructionError: If the type is unknown or the factory fails
        """
        factory = self.get(type_name)
        try:
            backend = factory(context, dict(config or {}))
        except ConstructionError:
            raise
        except Exception as e:
            logger.error("Failed to construct %s storage: %s", type_name, e)
            raise ConstructionError(
                f"Could not construct '{type_name}' storage: {e}",
                type_name=type_name,
                cause=e,
            ) from e
        logger.debug("Constructed %s storage: %r", type_name, backend)
        return backend

    def list_backends(self) -> List[str]:
        """Return all registered type names, sorted."""
        return sorted(self._factories)

    def clear(self) -> None:
        self._factories.clear()

    def __contains__(self, type_name: object) -> bool:
        return isinstance(type_name, str) and type_name.lower() in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self.list_backends())

    def __len__(self) -> int:
        return len(self._factories)


FACTORIES = FactoryRegistry()


def register_backend(
    name: str, *aliases: str
) -> Callable[[StorageFactory], StorageFactory]:
    """Decorator to register a backend factory in FACTORIES.

    Usage:
        @register_backend("memory", "mem")
        def _memory_factory(context, config):
            return MemoryStorage()
    """

    def decorator(factory: StorageFactory) -> StorageFactory:
        for type_name in (name,) + aliases:
            FACTORIES.register(type_name, factory)
        return factory

    return decorator


def list_backends() -> List[str]:
    """Return all type names registered in FACTORIES."""
    return FACTORIES.list_backends()
