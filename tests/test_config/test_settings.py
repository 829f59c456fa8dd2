"""Tests for configuration loading and command-line overrides."""

from __future__ import annotations

import pytest
import yaml
from pydantic import ValidationError

from solr_exporter.__main__ import apply_overrides, build_parser
from solr_exporter.config.settings import Settings, load_config, parse_listen_address


def _write_yaml(path, data):
    path.write_text(yaml.dump(data, default_flow_style=False))
    return path


# --- defaults ---

def test_defaults():
    settings = Settings()

    assert settings.solr.address == "http://localhost:8983"
    assert settings.solr.context_path == "/solr"
    assert settings.solr.timeout == 5.0
    assert settings.web.port == 9231
    assert settings.web.telemetry_path == "/metrics"
    assert settings.collectors.mbeans is True
    assert settings.collectors.supplementary == ["ping", "admin_metrics"]
    assert settings.logging.level == "INFO"


def test_load_config_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))

    assert load_config() == Settings()


# --- YAML loading ---

def test_load_config_from_file(tmp_path):
    path = _write_yaml(tmp_path / "config.yaml", {
        "solr": {"address": "http://solr1:8983", "excluded_core": "^tmp_", "ignored_cores": ["logs"]},
        "web": {"port": 9999},
        "collectors": {"jvm": True, "admin_metrics": False},
        "logging": {"level": "debug", "format": "text"},
    })

    settings = load_config(path)

    assert settings.solr.address == "http://solr1:8983"
    assert settings.solr.excluded_core == "^tmp_"
    assert settings.solr.ignored_cores == ["logs"]
    assert settings.web.port == 9999
    assert settings.collectors.supplementary == ["ping", "jvm"]
    assert settings.logging.level == "DEBUG"
    assert settings.logging.format == "text"


def test_load_config_discovers_local_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_yaml(tmp_path / "solr-exporter.yaml", {"web": {"port": 9300}})

    assert load_config().web.port == 9300


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_config(path) == Settings()


def test_env_var_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("SOLR_HOST", "solr.internal")
    path = _write_yaml(tmp_path / "config.yaml", {
        "solr": {"address": "http://${SOLR_HOST}:8983", "context_path": "${UNSET_VAR}"},
    })

    settings = load_config(path)

    assert settings.solr.address == "http://solr.internal:8983"
    assert settings.solr.context_path == "/${UNSET_VAR}"


# --- validation ---

@pytest.mark.parametrize("raw, expected", [
    ("/solr", "/solr"),
    ("solr", "/solr"),
    ("/solr/", "/solr"),
    ("", ""),
])
def test_context_path_normalized(raw, expected):
    assert Settings.model_validate({"solr": {"context_path": raw}}).solr.context_path == expected


def test_invalid_regex_rejected():
    with pytest.raises(ValidationError):
        Settings.model_validate({"solr": {"excluded_core": "(unclosed"}})


def test_relative_telemetry_path_rejected():
    with pytest.raises(ValidationError):
        Settings.model_validate({"web": {"telemetry_path": "metrics"}})


def test_unknown_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings.model_validate({"logging": {"level": "chatty"}})


# --- listen address ---

@pytest.mark.parametrize("raw, expected", [
    (":9231", ("0.0.0.0", 9231)),
    ("127.0.0.1:8080", ("127.0.0.1", 8080)),
    ("localhost:1", ("localhost", 1)),
])
def test_parse_listen_address(raw, expected):
    assert parse_listen_address(raw) == expected


@pytest.mark.parametrize("raw", ["9231", "host:", "host:http"])
def test_parse_listen_address_invalid(raw):
    with pytest.raises(ValueError):
        parse_listen_address(raw)


# --- command-line overrides ---

def test_overrides_layer_on_settings():
    args = build_parser().parse_args([
        "--solr-address", "http://other:8983",
        "--solr-context-path", "search",
        "--solr-timeout", "2.5",
        "--excluded-core", "_old$",
        "--ignore-core", "a", "--ignore-core", "b",
        "--listen-address", "127.0.0.1:9000",
        "--telemetry-path", "/probe",
        "--enable-jvm",
        "--log-level", "warning",
    ])
    base = Settings.model_validate({"solr": {"ignored_cores": ["z"]}})

    settings = apply_overrides(base, args)

    assert settings.solr.address == "http://other:8983"
    assert settings.solr.context_path == "/search"
    assert settings.solr.timeout == 2.5
    assert settings.solr.excluded_core == "_old$"
    assert settings.solr.ignored_cores == ["z", "a", "b"]
    assert (settings.web.host, settings.web.port) == ("127.0.0.1", 9000)
    assert settings.web.telemetry_path == "/probe"
    assert settings.collectors.supplementary == ["ping", "jvm", "admin_metrics"]
    assert settings.logging.level == "WARNING"


def test_no_flags_keep_file_values():
    base = Settings.model_validate({"collectors": {"ping": True}, "web": {"port": 1234}})

    settings = apply_overrides(base, build_parser().parse_args([]))

    assert settings == base


def test_bad_listen_address_flag():
    args = build_parser().parse_args(["--listen-address", "nowhere"])

    with pytest.raises(ValueError):
        apply_overrides(Settings(), args)


def test_disable_flags_turn_off_default_collectors():
    args = build_parser().parse_args(["--disable-ping", "--disable-admin-metrics"])

    settings = apply_overrides(Settings(), args)

    assert settings.collectors.ping is False
    assert settings.collectors.admin_metrics is False
    assert settings.collectors.supplementary == []
