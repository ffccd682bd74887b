"""Backend-agnostic object storage.

One contract for storing, fetching, listing and deleting named blobs on
interchangeable backends, plus the pieces that pick a backend by logical
name: a factory registry, a storage manager and a name resolution chain.

Example:
    >>> from objstore import FACTORIES, StorageManager
    >>> manager = StorageManager()
    >>> manager.register("local", FACTORIES.create("fs", {"root_dir": "./data"}))
    >>> manager.names.alias("local", "uploads")
    >>> manager.resolve_name("uploads").put("hello.txt", b"hi")
"""

from objstore.base import Endpoint, FileInfo, StorageBackend, StorageObject
from objstore.capabilities import (
    AssetFSSupport,
    DynamicURLSupport,
    HTTPServeSupport,
    asset_fs,
    dynamic_url,
)
from objstore.context import FactoryContext
from objstore.errors import (
    AssetFSUnavailableError,
    CapabilityUnavailableError,
    ConfigurationError,
    ConstructionError,
    DuplicateAliasError,
    DynamicURLUnavailableError,
    FactoryNotFoundError,
    InvalidPathError,
    ObjectNotFoundError,
    StorageError,
    StorageIOError,
)
from objstore.manager import STORAGES, StorageManager, get_default_manager
from objstore.names import Names
from objstore.registry import FACTORIES, FactoryRegistry, list_backends, register_backend
from objstore.resolver import NameDiscovery, NameResolver, NameResolverChain, Revision

# Registers the built-in backend factories
import objstore.backends  # noqa: E402,F401

__version__ = "0.1.0"

__all__ = [
    "AssetFSSupport",
    "AssetFSUnavailableError",
    "CapabilityUnavailableError",
    "ConfigurationError",
    "ConstructionError",
    "DuplicateAliasError",
    "DynamicURLSupport",
    "DynamicURLUnavailableError",
    "Endpoint",
    "FACTORIES",
    "FactoryContext",
    "FactoryNotFoundError",
    "FactoryRegistry",
    "FileInfo",
    "HTTPServeSupport",
    "InvalidPathError",
    "NameDiscovery",
    "NameResolver",
    "NameResolverChain",
    "Names",
    "ObjectNotFoundError",
    "Revision",
    "STORAGES",
    "StorageBackend",
    "StorageError",
    "StorageIOError",
    "StorageManager",
    "StorageObject",
    "asset_fs",
    "dynamic_url",
    "get_default_manager",
    "list_backends",
    "register_backend",
]
