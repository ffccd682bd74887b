"""Tests for objstore/config.py - YAML storage configuration."""

import textwrap

import pytest

from objstore.backends.filesystem import FileSystemStorage
from objstore.config import StorageSettings, build_manager, load_config, load_manager
from objstore.context import FactoryContext
from objstore.errors import ConfigurationError, ConstructionError, DuplicateAliasError
from objstore.manager import StorageManager
from objstore.registry import FactoryRegistry

from tests.helpers import MemoryStorage


def write_config(tmp_path, body, name="storages.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_full_config(self, tmp_path):
        """All sections are parsed."""
        path = write_config(
            tmp_path,
            """
            variables:
              DATA: /srv/data
            default: local
            default_fs: local
            storages:
              local:
                type: fs
                root_dir: ${DATA}/files
                endpoint: /files
            aliases:
              local: [uploads, tmp]
              other: single
            names:
              legacy: local
            """,
        )
        settings = load_config(path)

        assert settings.variables == {"DATA": "/srv/data"}
        assert settings.default == "local"
        assert settings.storages["local"].type == "fs"
        assert settings.storages["local"].options == {"root_dir": "${DATA}/files", "endpoint": "/files"}
        assert settings.aliases == {"local": ["uploads", "tmp"], "other": ["single"]}
        assert settings.names == {"legacy": "local"}

    def test_empty_file(self, tmp_path):
        """An empty file is an empty configuration."""
        settings = load_config(write_config(tmp_path, ""))
        assert settings.storages == {}

    def test_missing_file(self, tmp_path):
        """A missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        """YAML syntax errors raise ConfigurationError."""
        path = write_config(tmp_path, "storages: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_root_must_be_mapping(self, tmp_path):
        """A list at the root is rejected."""
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(write_config(tmp_path, "- a\n- b\n"))

    def test_unknown_section(self, tmp_path):
        """Unknown top-level keys are reported."""
        path = write_config(tmp_path, "storage:\n  a: {type: fs}\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "storage" in exc_info.value.details["issues"]

    def test_entry_requires_type(self, tmp_path):
        """Each storage entry must name its type."""
        path = write_config(tmp_path, "storages:\n  a:\n    root_dir: /tmp\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "storages.a.type" in exc_info.value.details["issues"]


class TestBuildManager:
    """Tests for build_manager()."""

    def test_builds_filesystem_storages(self, tmp_path):
        """Storages are constructed, registered and templated."""
        settings = StorageSettings.model_validate(
            {
                "variables": {"DATA": str(tmp_path)},
                "default": "local",
                "default_fs": "local",
                "storages": {
                    "local": {"type": "fs", "root_dir": "${DATA}/files", "endpoint": "/files"},
                    "assets": {"type": "filesystem", "root_dir": "${DATA}/assets"},
                },
                "aliases": {"local": ["uploads"]},
                "names": {"legacy": "assets"},
            }
        )
        manager = build_manager(settings)

        local = manager.get("local")
        assert isinstance(local, FileSystemStorage)
        assert local.base == (tmp_path / "files").resolve()
        assert manager.default is local
        assert manager.default_fs is local
        assert manager.resolve_name("uploads") is local
        assert manager.resolve_name("legacy") is manager.get("assets")

        local.put("a.txt", b"a")
        assert (tmp_path / "files" / "a.txt").read_bytes() == b"a"
        assert local.get_url("a.txt") == "/files/a.txt"

    def test_context_variables_layered(self, tmp_path):
        """Config variables may reference context variables."""
        settings = StorageSettings.model_validate(
            {
                "variables": {"DATA": "${BASE}/data"},
                "storages": {"local": {"type": "fs", "root_dir": "${DATA}"}},
            }
        )
        context = FactoryContext(variables={"BASE": str(tmp_path)})
        manager = build_manager(settings, context=context)
        assert manager.get("local").base == (tmp_path / "data").resolve()

    def test_custom_registry(self):
        """Storages are built through the supplied registry."""
        registry = FactoryRegistry()
        registry.register("memory", lambda ctx, cfg: MemoryStorage())
        settings = StorageSettings.model_validate({"storages": {"m": {"type": "memory"}}, "default": "m"})

        manager = build_manager(settings, registry=registry)

        assert isinstance(manager.default, MemoryStorage)

    def test_populates_existing_manager(self, tmp_path):
        """An existing manager is filled in place."""
        manager = StorageManager()
        settings = StorageSettings.model_validate(
            {"storages": {"local": {"type": "fs", "root_dir": str(tmp_path)}}}
        )
        assert build_manager(settings, manager=manager) is manager
        assert "local" in manager

    def test_unknown_type(self):
        """An unregistered backend type raises ConstructionError."""
        settings = StorageSettings.model_validate({"storages": {"x": {"type": "azure"}}})
        with pytest.raises(ConstructionError, match="azure"):
            build_manager(settings)

    def test_invalid_backend_options(self, tmp_path):
        """Unknown backend options raise ConstructionError."""
        settings = StorageSettings.model_validate(
            {"storages": {"x": {"type": "fs", "root_dir": str(tmp_path), "bucket": "b"}}}
        )
        with pytest.raises(ConstructionError, match="bucket"):
            build_manager(settings)

    def test_unknown_default(self, tmp_path):
        """default must name a configured storage."""
        settings = StorageSettings.model_validate({"default": "missing"})
        with pytest.raises(ConfigurationError) as exc_info:
            build_manager(settings)
        assert exc_info.value.field == "default"

    def test_default_fs_must_be_filesystem(self):
        """default_fs must name a filesystem storage."""
        registry = FactoryRegistry()
        registry.register("memory", lambda ctx, cfg: MemoryStorage())
        settings = StorageSettings.model_validate(
            {"storages": {"m": {"type": "memory"}}, "default_fs": "m"}
        )
        with pytest.raises(ConfigurationError) as exc_info:
            build_manager(settings, registry=registry)
        assert exc_info.value.field == "default_fs"

    def test_duplicate_alias_across_entries(self):
        """The same alias under two storages is rejected."""
        settings = StorageSettings.model_validate({"aliases": {"a": ["x"], "b": ["x"]}})
        with pytest.raises(DuplicateAliasError):
            build_manager(settings)


class TestLoadManager:
    """Tests for load_manager()."""

    def test_env_file(self, tmp_path, monkeypatch):
        """Variables from a .env file are visible to the config."""
        monkeypatch.delenv("OBJSTORE_TEST_ROOT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text(f"OBJSTORE_TEST_ROOT={tmp_path / 'root'}\n", encoding="utf-8")
        config = write_config(
            tmp_path,
            """
            default: local
            storages:
              local:
                type: fs
                root_dir: ${OBJSTORE_TEST_ROOT}
            """,
        )

        try:
            manager = load_manager(config, env_file=env_file)
            assert manager.default.base == (tmp_path / "root").resolve()
        finally:
            monkeypatch.delenv("OBJSTORE_TEST_ROOT", raising=False)

    def test_missing_env_file_is_tolerated(self, tmp_path):
        """A missing .env file only logs a warning."""
        config = write_config(tmp_path, "storages: {}\n")
        manager = load_manager(config, env_file=tmp_path / "missing.env")
        assert manager.names_registered() == []


class TestReload:
    """Tests for building into a manager that already holds storages."""

    @pytest.fixture
    def registry(self):
        registry = FactoryRegistry()
        registry.register("memory", lambda ctx, cfg: MemoryStorage())
        return registry

    def test_reload_closes_replaced_default(self, registry):
        """The previous default is closed once the new one takes its place."""
        settings = StorageSettings.model_validate(
            {"storages": {"media": {"type": "memory"}}, "default": "media"}
        )
        manager = build_manager(settings, registry=registry)
        first = manager.get("media")

        build_manager(settings, registry=registry, manager=manager)

        assert first.closed is True
        assert manager.default is manager.get("media")
        assert manager.default is not first
        assert manager.default.closed is False

    def test_reload_keeps_default_still_registered(self, registry):
        """A previous default still registered under another name stays open."""
        first = MemoryStorage()
        manager = StorageManager(default=first)
        manager.register("legacy", first)
        settings = StorageSettings.model_validate(
            {"storages": {"media": {"type": "memory"}}, "default": "media"}
        )

        build_manager(settings, registry=registry, manager=manager)

        assert manager.default is manager.get("media")
        assert first.closed is False
