"""YAML configuration for storage managers.

Example YAML (storages.yaml):

    variables:
      DATA: /srv/data
    default: media
    default_fs: local
    storages:
      local:
        type: fs
        root_dir: ${DATA}/files
        endpoint: /files
      media:
        type: s3
        bucket: media
        endpoint: https://cdn.example.com
    aliases:
      media: [images, videos]
    names:
      uploads: local

Usage:
    settings = load_config("storages.yaml")
    manager = build_manager(settings)
    manager.resolve_name("images").put("logo.png", data)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from objstore.backends.filesystem import FileSystemStorage
from objstore.context import FactoryContext
from objstore.env import load_env_file
from objstore.errors import ConfigurationError
from objstore.manager import StorageManager
from objstore.registry import FACTORIES, FactoryRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "StorageEntry",
    "StorageSettings",
    "build_manager",
    "load_config",
    "load_manager",
]


class StorageEntry(BaseModel):
    """One named storage: its backend type plus the backend's own options."""

    model_config = ConfigDict(extra="allow")

    type: str

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class StorageSettings(BaseModel):
    """Top-level storage configuration."""

    model_config = ConfigDict(extra="forbid")

    variables: Dict[str, Any] = Field(default_factory=dict)
    default: Optional[str] = None
    default_fs: Optional[str] = None
    storages: Dict[str, StorageEntry] = Field(default_factory=dict)
    aliases: Dict[str, List[str]] = Field(default_factory=dict)
    names: Dict[str, str] = Field(default_factory=dict)

    @field_validator("aliases", mode="before")
    @classmethod
    def _single_alias(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: [v] if isinstance(v, str) else v for k, v in value.items()}
        return value


def load_config(config_path: Union[str, Path]) -> StorageSettings:
    """Load and validate a storage configuration file.

    Raises:
        ConfigurationError: If the file is missing, not valid YAML, or does
            not match the expected structure
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            field="config",
            value=str(config_path),
        )

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax: {e}", cause=e) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Configuration root must be a mapping",
            value=type(raw).__name__,
        )

    try:
        settings = StorageSettings.model_validate(raw)
    except ValidationError as e:
        issues = [
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            "Invalid storage configuration",
            details={"issues": "; ".join(issues), "file": str(config_path)},
            cause=e,
        ) from e

    logger.debug("Loaded %d storage definitions from %s", len(settings.storages), config_path)
    return settings


def build_manager(
    settings: StorageSettings,
    registry: Optional[FactoryRegistry] = None,
    context: Optional[FactoryContext] = None,
    manager: Optional[StorageManager] = None,
) -> StorageManager:
    """Construct every configured backend and register it in a manager.

    Args:
        settings: Validated configuration
        registry: Factory registry (defaults to FACTORIES)
        context: Templating context; ``settings.variables`` are layered on top
        manager: Manager to populate (a new one is created when omitted)

    Returns:
        The populated manager

    Raises:
        ConstructionError: If a backend cannot be built
        ConfigurationError: If default/default_fs name an unknown storage
        DuplicateAliasError: If an alias is declared twice
    """
    registry = registry if registry is not None else FACTORIES
    context = context if context is not None else FactoryContext()
    manager = manager if manager is not None else StorageManager()

    if settings.variables:
        context = context.with_variables(**context.format_options(settings.variables))

    for name, entry in settings.storages.items():
        logger.info("Creating storage %r (type %s)", name, entry.type)
        manager.register(name, registry.create(entry.type, entry.options, context))

    if settings.default:
        manager.default = _lookup(manager, settings.default, "default")

    if settings.default_fs:
        storage = _lookup(manager, settings.default_fs, "default_fs")
        if not isinstance(storage, FileSystemStorage):
            raise ConfigurationError(
                "default_fs must name a filesystem storage",
                field="default_fs",
                value=settings.default_fs,
                details={"type": storage.backend_type},
            )
        manager.default_fs = storage

    for real, aliases in settings.aliases.items():
        if aliases:
            manager.names.alias(real, *aliases)

    for key, value in settings.names.items():
        manager.names.set(key, value)

    return manager


def _lookup(manager: StorageManager, name: str, field: str) -> Any:
    storage = manager.get(name)
    if storage is None:
        raise ConfigurationError(
            f"{field} refers to an undefined storage",
            field=field,
            value=name,
            suggestion=f"Define it under 'storages' (known: {', '.join(manager.names_registered()) or 'none'})",
        )
    return storage


def load_manager(
    config_path: Union[str, Path],
    env_file: Optional[Union[str, Path]] = None,
    registry: Optional[FactoryRegistry] = None,
    manager: Optional[StorageManager] = None,
) -> StorageManager:
    """Load an optional .env file, then a config file, then build a manager."""
    if env_file is not None:
        if not load_env_file(env_file):
            logger.warning("Env file %s not found or empty", env_file)
    return build_manager(load_config(config_path), registry=registry, manager=manager)
