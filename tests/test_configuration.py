"""Tests for the layered configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from feedsync import configuration


def _prepare_repo_defaults(tmp_path: Path, content: str = "runtime:\n  name: feedsync\n") -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "10-defaults.yml").write_text(content, encoding="utf-8")
    return config_dir


def _write_override(home: Path, content: str) -> None:
    cfg_dir = home / "config"
    cfg_dir.mkdir(parents=True, exist_ok=True)
    (cfg_dir / "local.yml").write_text(content, encoding="utf-8")


def test_resolve_home_dir_uses_env(tmp_path: Path):
    env = {"FEEDSYNC_HOME": str(tmp_path / "home")}
    assert configuration.resolve_home_dir(env=env) == tmp_path / "home"


def test_resolve_home_dir_default():
    assert configuration.resolve_home_dir(env={}) == Path(configuration.DEFAULT_HOME)


def test_repo_defaults_cover_storage(tmp_path: Path):
    home = tmp_path / "home"
    home.mkdir()

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "ready"
    storage = bundle.section("storage")
    assert storage["chunk_size"] == 4096
    assert storage["metrics_context"] == "/hawkular/metrics/"
    assert bundle.section("inventory")["enabled"] is True


def test_home_overrides_and_env_merge(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    repo_dir = _prepare_repo_defaults(tmp_path, content="storage:\n  url: http://default:8080\n")
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)
    home = tmp_path / "home"
    _write_override(home, "storage:\n  url: http://override:8080\n  feed_id: feed1\n")

    bundle = configuration.load_runtime_configuration(
        home,
        env={"FEEDSYNC_TENANT_ID": "acme", "FEEDSYNC_LOG_LEVEL": "DEBUG"},
    )

    assert bundle.status == "ready"
    assert bundle.merged["storage"]["url"] == "http://override:8080"
    assert bundle.merged["storage"]["feed_id"] == "feed1"
    assert bundle.merged["storage"]["tenant_id"] == "acme"
    assert bundle.merged["logging"]["level"] == "DEBUG"
    assert bundle.env_overrides == {"storage": {"tenant_id": "acme"}, "logging": {"level": "DEBUG"}}
    assert len(bundle.files_loaded) == 2


def test_missing_home_is_reported(tmp_path: Path):
    bundle = configuration.load_runtime_configuration(tmp_path / "missing", env={})

    assert bundle.status == "missing"
    assert bundle.has_errors


def test_home_that_is_a_file_is_invalid(tmp_path: Path):
    home = tmp_path / "home"
    home.write_text("", encoding="utf-8")

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "invalid"


def test_bad_yaml_is_reported(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(home, "storage: [\n")

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "invalid"
    assert any("Failed to parse" in diag.message for diag in bundle.diagnostics)


def test_invalid_types_raise_diagnostics(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(
        home,
        """
        inventory:
          enabled: "yes"
        """,
    )

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "invalid"
    assert any("inventory.enabled" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["inventory"]["enabled"] is True


def test_chunk_size_must_be_positive(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(home, "storage:\n  chunk_size: 0\n")

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "invalid"
    assert any("storage.chunk_size" in diag.message for diag in bundle.diagnostics)
    assert bundle.merged["storage"]["chunk_size"] == 4096


def test_bool_is_not_an_int(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(home, "storage:\n  chunk_size: true\n")

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "invalid"


def test_unknown_keys_warn(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(
        home,
        """
        mystery:
          value: 1
        """,
    )

    bundle = configuration.load_runtime_configuration(home, env={})

    assert bundle.status == "ready"
    assert any("Unknown configuration key" in diag.message for diag in bundle.diagnostics)


def test_non_mapping_file_is_ignored(tmp_path: Path):
    home = tmp_path / "home"
    _write_override(home, "- just\n- a list\n")

    bundle = configuration.load_runtime_configuration(home, env={})

    assert any(diag.level == "warning" and "does not contain a mapping" in diag.message for diag in bundle.diagnostics)
