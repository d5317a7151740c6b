"""Unit tests for typed config store operations."""

from __future__ import annotations

import json
import tomllib
from typing import ClassVar

from pydantic import BaseModel
import pytest
import yaml

from core.errors import (
    StrataDecodeError,
    StrataEncodeError,
    StrataIOError,
    StrataMigrationError,
    StrataNotLoadedError,
    StrataRegistryError,
    StrataUnregisteredSchemaError,
)
from store.config_store import ConfigStore
from store.schema_registry import SchemaRegistry, build_registry
from tests.fixture_paths import copy_fixture
from tests.sample_schemas import (
    BasicConfig,
    EndpointConfig,
    NestedConfig,
    RetryConfig,
    ServerConfig,
    UnregisteredConfig,
    build_sample_registry,
)


def _loaded_store(strata_config, *schemas: type) -> ConfigStore:
    store = ConfigStore(build_registry(*schemas), strata_config)
    store.load_all()
    return store


def test_store_creates_config_directory(strata_config) -> None:
    """Building a store should create the config directory."""
    ConfigStore(SchemaRegistry(), strata_config)

    assert strata_config.config_dir.is_dir()


def test_store_freezes_registry(strata_config) -> None:
    """Registrations after the store is built should be rejected."""
    registry = build_registry(ServerConfig)
    ConfigStore(registry, strata_config)

    with pytest.raises(StrataRegistryError):
        registry.register(BasicConfig)

    assert registry.frozen


def test_store_raises_when_directory_cannot_be_created(strata_config) -> None:
    """A config directory blocked by a file should be an IO error."""
    strata_config.config_dir.parent.mkdir(parents=True, exist_ok=True)
    strata_config.config_dir.write_text("not a directory", encoding="utf-8")

    with pytest.raises(StrataIOError):
        ConfigStore(SchemaRegistry(), strata_config)

    assert True


def test_load_creates_missing_file_from_defaults(strata_config) -> None:
    """Loading an absent file should persist the schema defaults."""
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    store.load(BasicConfig)

    stored = tomllib.loads(store.config_path(BasicConfig).read_text(encoding="utf-8"))
    assert stored == {"_version": 1, "name": "default_name", "count": 42, "enabled": True}


def test_get_returns_defaults_for_new_file(strata_config) -> None:
    """A freshly created schema should hold its default value."""
    store = _loaded_store(strata_config, BasicConfig)

    assert store.get(BasicConfig) == BasicConfig()


def test_get_before_load_raises_not_loaded(strata_config) -> None:
    """Reading a registered but unloaded schema is a programming error."""
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    with pytest.raises(StrataNotLoadedError):
        store.get(BasicConfig)

    assert not store.is_loaded(BasicConfig)


def test_get_unregistered_schema_raises(strata_config) -> None:
    """Unregistered schemas should fail with their file name."""
    store = _loaded_store(strata_config, BasicConfig)

    with pytest.raises(StrataUnregisteredSchemaError, match="unregistered.toml"):
        store.get(UnregisteredConfig)

    assert True


def test_load_unregistered_schema_raises(strata_config) -> None:
    """Loading an unregistered schema should fail without touching disk."""
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    with pytest.raises(StrataUnregisteredSchemaError):
        store.load(UnregisteredConfig)

    assert not (strata_config.config_dir / "unregistered.toml").exists()


def test_load_migrates_and_rewrites_old_file(strata_config) -> None:
    """Old files should be migrated in memory and rewritten at the new version."""
    copy_fixture("configs/server_v1.toml", strata_config.config_dir, "server.toml")
    store = ConfigStore(build_sample_registry(), strata_config)

    store.load(ServerConfig)

    stored = tomllib.loads((strata_config.config_dir / "server.toml").read_text("utf-8"))
    assert store.get(ServerConfig) == ServerConfig(host="prod", port=443, use_tls=True) and (
        stored["_version"] == 2
    )


def test_load_unversioned_json_runs_every_step(strata_config) -> None:
    """Files without a version field should migrate from version 1."""
    copy_fixture("configs/retry_unversioned.json", strata_config.config_dir, "retry.json")
    store = ConfigStore(build_sample_registry(), strata_config)

    store.load(RetryConfig)

    stored = json.loads((strata_config.config_dir / "retry.json").read_text("utf-8"))
    assert stored == {"_version": 3, "name": "legacy_config", "timeout": 60, "max_retries": 5}


def test_load_yaml_renames_field(strata_config) -> None:
    """YAML files should migrate through a renaming step."""
    copy_fixture("configs/endpoint_v1.yaml", strata_config.config_dir, "endpoint.yaml")
    store = ConfigStore(build_sample_registry(), strata_config)

    store.load(EndpointConfig)

    stored = yaml.safe_load((strata_config.config_dir / "endpoint.yaml").read_text("utf-8"))
    assert store.get(EndpointConfig).host == "myserver.example.com" and "hostname" not in stored


def test_load_current_file_is_not_rewritten(strata_config) -> None:
    """Files already at the current version should be left byte-identical."""
    path = strata_config.config_dir / "basic.toml"
    strata_config.config_dir.mkdir(parents=True)
    original = '_version = 1\nname = "kept"\n'
    path.write_text(original, encoding="utf-8")
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    store.load(BasicConfig)

    assert store.get(BasicConfig).count == 42 and path.read_text("utf-8") == original


def test_load_empty_file_uses_defaults(strata_config) -> None:
    """Blank files should decode as an unversioned empty record."""
    strata_config.config_dir.mkdir(parents=True)
    (strata_config.config_dir / "basic.toml").write_text("\n", encoding="utf-8")
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    store.load(BasicConfig)

    assert store.get(BasicConfig) == BasicConfig()


def test_load_invalid_field_type_raises_decode_error(strata_config) -> None:
    """Records violating the schema should fail and leave the schema unloaded."""
    copy_fixture("configs/basic_bad_type.toml", strata_config.config_dir, "basic.toml")
    store = ConfigStore(build_registry(BasicConfig), strata_config)

    with pytest.raises(StrataDecodeError, match="BasicConfig"):
        store.load(BasicConfig)

    assert not store.is_loaded(BasicConfig)


def test_load_newer_file_raises_migration_error(strata_config) -> None:
    """Files written by a newer release should not be downgraded."""
    strata_config.config_dir.mkdir(parents=True)
    path = strata_config.config_dir / "server.toml"
    path.write_text('_version = 7\nhost = "future"\n', encoding="utf-8")
    store = ConfigStore(build_sample_registry(), strata_config)

    with pytest.raises(StrataMigrationError):
        store.load(ServerConfig)

    assert path.read_text("utf-8") == '_version = 7\nhost = "future"\n'


def test_load_all_stops_at_first_failure(strata_config) -> None:
    """Schemas before the failure stay loaded and later ones are skipped."""
    copy_fixture("configs/basic_bad_type.toml", strata_config.config_dir, "basic.toml")
    store = ConfigStore(build_registry(ServerConfig, BasicConfig, NestedConfig), strata_config)

    with pytest.raises(StrataDecodeError):
        store.load_all()

    assert store.is_loaded(ServerConfig) and not store.is_loaded(NestedConfig)


def test_nested_defaults_round_trip_through_toml(strata_config) -> None:
    """Nested models, lists, and unset optionals should survive a reload."""
    _loaded_store(strata_config, NestedConfig)

    reloaded = _loaded_store(strata_config, NestedConfig)

    assert reloaded.get(NestedConfig) == NestedConfig()


def test_update_mutates_in_place_and_persists(strata_config) -> None:
    """In-place mutations should be visible and written to disk."""
    store = _loaded_store(strata_config, ServerConfig)

    def set_port(config: ServerConfig) -> None:
        config.port = 9090

    store.update(ServerConfig, set_port)

    reloaded = _loaded_store(strata_config, ServerConfig)
    assert store.get(ServerConfig).port == 9090 and reloaded.get(ServerConfig).port == 9090


def test_update_accepts_replacement_value(strata_config) -> None:
    """A mutator may return a new value of the schema type."""
    store = _loaded_store(strata_config, BasicConfig)

    result = store.update(BasicConfig, lambda config: config.model_copy(update={"count": 7}))

    assert result.count == 7 and store.get(BasicConfig).count == 7


def test_update_rejects_foreign_replacement(strata_config) -> None:
    """A mutator returning another type should fail before writing."""
    store = _loaded_store(strata_config, BasicConfig)

    with pytest.raises(StrataEncodeError, match="expected a BasicConfig instance"):
        store.update(BasicConfig, lambda config: {"count": 7})

    assert store.get(BasicConfig) == BasicConfig()


def test_update_propagates_mutator_error_without_writing(strata_config) -> None:
    """Mutator failures should surface unchanged and skip persistence."""
    store = _loaded_store(strata_config, ServerConfig)
    path = store.config_path(ServerConfig)
    before = path.read_bytes()

    def fail(config: ServerConfig) -> None:
        config.port = 1
        raise ValueError("rejected")

    with pytest.raises(ValueError, match="rejected"):
        store.update(ServerConfig, fail)

    assert path.read_bytes() == before


def test_update_before_load_raises_not_loaded(strata_config) -> None:
    """Updates require a loaded schema."""
    store = ConfigStore(build_registry(ServerConfig), strata_config)

    with pytest.raises(StrataNotLoadedError):
        store.update(ServerConfig, lambda config: None)

    assert not store.config_path(ServerConfig).exists()


def test_begin_edit_returns_detached_copy(strata_config) -> None:
    """Changes to an edit copy should not affect the held value."""
    store = _loaded_store(strata_config, NestedConfig)

    edited = store.begin_edit(NestedConfig)
    edited.items.append("item3")
    edited.nested.inner_value = 5

    assert store.get(NestedConfig) == NestedConfig()


def test_commit_edit_persists_changes(strata_config) -> None:
    """Committed edits should become current and reach disk."""
    store = _loaded_store(strata_config, ServerConfig)
    edited = store.begin_edit(ServerConfig)
    edited.host = "edited.example.com"

    store.commit_edit(ServerConfig, edited)

    reloaded = _loaded_store(strata_config, ServerConfig)
    assert store.get(ServerConfig).host == reloaded.get(ServerConfig).host == "edited.example.com"


def test_abandoned_edit_changes_nothing(strata_config) -> None:
    """Dropping an edit copy should leave memory and disk untouched."""
    store = _loaded_store(strata_config, ServerConfig)
    before = store.config_path(ServerConfig).read_bytes()

    edited = store.begin_edit(ServerConfig)
    edited.port = 1

    assert store.get(ServerConfig).port == 8080 and (
        store.config_path(ServerConfig).read_bytes() == before
    )


def test_commit_edit_rejects_invalid_value(strata_config) -> None:
    """Invalid edits should fail and leave memory and disk untouched."""
    store = _loaded_store(strata_config, RetryConfig)
    before = store.config_path(RetryConfig).read_bytes()
    edited = store.begin_edit(RetryConfig)
    edited.max_retries = 500

    with pytest.raises(StrataDecodeError, match="max_retries"):
        store.commit_edit(RetryConfig, edited)

    assert store.get(RetryConfig).max_retries == 3 and (
        store.config_path(RetryConfig).read_bytes() == before
    )


def test_commit_edit_rejects_foreign_type(strata_config) -> None:
    """Only instances of the schema type can be committed."""
    store = _loaded_store(strata_config, ServerConfig)

    with pytest.raises(StrataEncodeError):
        store.commit_edit(ServerConfig, BasicConfig())

    assert store.get(ServerConfig) == ServerConfig()


def test_commit_edit_before_load_raises_not_loaded(strata_config) -> None:
    """Edits cannot be committed to a schema that was never loaded."""
    store = ConfigStore(build_registry(ServerConfig), strata_config)

    with pytest.raises(StrataNotLoadedError):
        store.commit_edit(ServerConfig, ServerConfig())

    assert True


def test_for_directory_uses_explicit_path(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """An explicit directory should override the environment."""
    monkeypatch.setenv("STRATA_CONFIG_DIR", str(tmp_path / "from-env"))
    monkeypatch.setenv("STRATA_DURABLE_WRITES", "false")

    store = ConfigStore.for_directory(tmp_path / "explicit", build_registry(BasicConfig))

    assert store.config_dir == (tmp_path / "explicit").resolve()


def test_schemas_lists_registration_order(strata_config) -> None:
    """Registered schemas should be listed in registration order."""
    store = ConfigStore(build_sample_registry(), strata_config)

    assert store.schemas() == (
        ServerConfig,
        BasicConfig,
        RetryConfig,
        EndpointConfig,
        NestedConfig,
    )


def test_failing_migration_leaves_file_untouched(strata_config) -> None:
    """A step failure should surface as a migration error without writing."""
    path = copy_fixture("configs/server_v1.toml", strata_config.config_dir, "server.toml")
    before = path.read_bytes()
    registry = build_registry(ServerConfig)

    @registry.migration(ServerConfig, from_version=1)
    def broken(record: dict) -> None:
        raise KeyError("use_tls")

    store = ConfigStore(registry, strata_config)

    with pytest.raises(StrataMigrationError, match="from version 1 to 2"):
        store.load(ServerConfig)

    assert path.read_bytes() == before and not store.is_loaded(ServerConfig)


def test_second_load_is_idempotent(strata_config, sample_registry) -> None:
    """Reloading a migrated file should yield the same value without a rewrite."""
    copy_fixture("configs/retry_unversioned.json", strata_config.config_dir, "retry.json")
    first = ConfigStore(sample_registry, strata_config)
    first.load(RetryConfig)
    migrated = first.config_path(RetryConfig).read_bytes()

    second = ConfigStore(build_sample_registry(), strata_config)
    second.load(RetryConfig)

    assert second.get(RetryConfig) == first.get(RetryConfig) and (
        second.config_path(RetryConfig).read_bytes() == migrated
    )


def test_explicit_save_rewrites_held_value(strata_config) -> None:
    """Saving should restore a file removed after load."""
    store = _loaded_store(strata_config, BasicConfig)
    store.config_path(BasicConfig).unlink()

    store.save(BasicConfig)

    assert store.config_path(BasicConfig).exists()


class ProxyConfig(BaseModel):
    VERSION: ClassVar[int] = 1
    FILE_NAME: ClassVar[str] = "proxy.toml"

    proxy: str | None = "http://corp-proxy:3128"


class ProxyJsonConfig(BaseModel):
    VERSION: ClassVar[int] = 1
    FILE_NAME: ClassVar[str] = "proxy.json"

    proxy: str | None = "http://corp-proxy:3128"


def _clear_proxy(config: BaseModel) -> None:
    config.proxy = None


def test_update_rejects_none_lost_by_toml(strata_config) -> None:
    """A None that would reload as a non-None default should not be written to TOML."""
    store = _loaded_store(strata_config, ProxyConfig)
    before = store.config_path(ProxyConfig).read_bytes()

    with pytest.raises(StrataEncodeError, match="proxy = None"):
        store.update(ProxyConfig, _clear_proxy)

    assert store.config_path(ProxyConfig).read_bytes() == before


def test_update_keeps_none_in_json(strata_config) -> None:
    """Formats with null should persist None and reload it."""
    store = _loaded_store(strata_config, ProxyJsonConfig)

    store.update(ProxyJsonConfig, _clear_proxy)

    reloaded = _loaded_store(strata_config, ProxyJsonConfig)
    assert reloaded.get(ProxyJsonConfig).proxy is None


def test_update_rejects_ill_typed_value(strata_config) -> None:
    """A mutation leaving a wrongly typed field should fail before writing."""
    store = _loaded_store(strata_config, ServerConfig)
    before = store.config_path(ServerConfig).read_bytes()

    with pytest.raises(StrataEncodeError, match="ServerConfig"):
        store.update(ServerConfig, lambda config: setattr(config, "port", "not-a-port"))

    assert store.config_path(ServerConfig).read_bytes() == before and (
        _loaded_store(strata_config, ServerConfig).get(ServerConfig).port == 8080
    )


def test_update_rejects_constraint_violation(strata_config) -> None:
    """A mutation breaking a field constraint should fail before writing."""
    store = _loaded_store(strata_config, RetryConfig)
    before = store.config_path(RetryConfig).read_bytes()

    with pytest.raises(StrataDecodeError, match="max_retries"):
        store.update(RetryConfig, lambda config: setattr(config, "max_retries", 500))

    assert store.config_path(RetryConfig).read_bytes() == before
