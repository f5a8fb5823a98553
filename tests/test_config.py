"""Tests for gravedigger.config."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from gravedigger.config import (
    DEFAULTS,
    ConfigError,
    _deep_merge,
    _validate,
    default_config_path,
    default_graveyard,
    load_config,
    resolve_graveyard_root,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's own environment out of these tests."""
    monkeypatch.delenv("GRAVEYARD", raising=False)
    monkeypatch.delenv("XDG_DATA_HOME", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal config.yaml in tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"graveyard": "~/rip", "restore_conflict": "rename"}))
    return path


class TestDeepMerge:
    def test_flat_merge(self) -> None:
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        assert _deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        base = {"x": {"a": 1, "b": 2}}
        override = {"x": {"b": 3}}
        assert _deep_merge(base, override) == {"x": {"a": 1, "b": 3}}

    def test_does_not_mutate_base(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base["a"]["b"] == 1


class TestValidate:
    def test_defaults_valid(self) -> None:
        _validate(_deep_merge(DEFAULTS, {}))  # Should not raise

    def test_graveyard_must_be_string(self) -> None:
        config = _deep_merge(DEFAULTS, {"graveyard": ["a", "b"]})
        with pytest.raises(ConfigError, match="graveyard"):
            _validate(config)

    def test_unknown_partial_copy_policy(self) -> None:
        config = _deep_merge(DEFAULTS, {"partial_copy": "shred"})
        with pytest.raises(ConfigError, match="partial_copy"):
            _validate(config)

    def test_unknown_restore_conflict_policy(self) -> None:
        config = _deep_merge(DEFAULTS, {"restore_conflict": "overwrite"})
        with pytest.raises(ConfigError, match="restore_conflict"):
            _validate(config)

    def test_inspect_not_mapping(self) -> None:
        config = _deep_merge(DEFAULTS, {"inspect": 3})
        with pytest.raises(ConfigError, match="inspect.*mapping"):
            _validate(config)

    def test_inspect_counts(self) -> None:
        config = _deep_merge(DEFAULTS, {"inspect": {"lines": -1}})
        with pytest.raises(ConfigError, match="inspect.lines"):
            _validate(config)

    def test_threshold_rejects_bool(self) -> None:
        config = _deep_merge(DEFAULTS, {"big_file_threshold": True})
        with pytest.raises(ConfigError, match="big_file_threshold"):
            _validate(config)


class TestLoadConfig:
    def test_loads_and_merges_defaults(self, config_file: Path) -> None:
        config = load_config(config_file)
        assert config["graveyard"] == "~/rip"
        assert config["restore_conflict"] == "rename"
        assert config["partial_copy"] == "remove"
        assert config["inspect"] == {"lines": 6, "files": 6}

    def test_default_location_optional(self) -> None:
        assert load_config() == DEFAULTS

    def test_default_location_used(self, tmp_path: Path) -> None:
        path = default_config_path()
        assert path == tmp_path / "xdg_config" / "gravedigger" / "config.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("partial_copy: keep\n")
        assert load_config()["partial_copy"] == "keep"

    def test_explicit_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config not found"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_is_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == DEFAULTS

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("just a string")
        with pytest.raises(ConfigError, match="YAML mapping"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("graveyard: [unclosed")
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_config(path)


class TestResolveGraveyardRoot:
    def test_flag_wins(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("GRAVEYARD", str(tmp_path / "env"))
        config = _deep_merge(DEFAULTS, {"graveyard": str(tmp_path / "cfg")})
        assert resolve_graveyard_root(config, tmp_path / "flag") == tmp_path / "flag"

    def test_env_beats_config(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("GRAVEYARD", str(tmp_path / "env"))
        config = _deep_merge(DEFAULTS, {"graveyard": str(tmp_path / "cfg")})
        assert resolve_graveyard_root(config) == tmp_path / "env"

    def test_config_beats_xdg(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
        config = _deep_merge(DEFAULTS, {"graveyard": str(tmp_path / "cfg")})
        assert resolve_graveyard_root(config) == tmp_path / "cfg"

    def test_xdg_data_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
        assert resolve_graveyard_root(DEFAULTS) == tmp_path / "xdg" / "graveyard"

    def test_fallback_is_per_user_tempdir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("USER", "mortician")
        assert default_graveyard().name == "graveyard-mortician"
        assert resolve_graveyard_root(DEFAULTS) == default_graveyard()

    def test_tilde_expanded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        config = _deep_merge(DEFAULTS, {"graveyard": "~/rip"})
        assert resolve_graveyard_root(config) == tmp_path / "rip"
