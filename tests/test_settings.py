import sys

import pytest

from pico_conventions import ConfigurationError, EnvSource, FlatDictSource, Settings, YamlFileSource, load_settings


def test_defaults():
    settings = load_settings()
    assert settings == Settings()
    assert settings.overlap == "merge"
    assert settings.allow_duplicate_scans is False


def test_env_source(monkeypatch):
    monkeypatch.setenv("PICO_CONVENTIONS_OVERLAP", "Error")
    monkeypatch.setenv("PICO_CONVENTIONS_ALLOW_DUPLICATE_SCANS", "yes")
    settings = load_settings(EnvSource())
    assert settings.overlap == "error"
    assert settings.allow_duplicate_scans is True


def test_custom_env_prefix(monkeypatch):
    monkeypatch.setenv("APP_OVERLAP", "error")
    assert load_settings(EnvSource(prefix="APP_")).overlap == "error"


def test_first_source_wins_and_overrides_beat_sources():
    first = FlatDictSource({"overlap": "error"})
    second = FlatDictSource({"OVERLAP": "merge", "allow_duplicate_scans": True})
    settings = load_settings(first, second)
    assert settings.overlap == "error"
    assert settings.allow_duplicate_scans is True

    settings = load_settings(first, second, overrides={"overlap": "merge", "allow_duplicate_scans": False})
    assert settings.overlap == "merge"
    assert settings.allow_duplicate_scans is False


def test_flat_dict_source_ignores_non_scalars():
    source = FlatDictSource({"overlap": ["error"], "other": 1})
    assert source.get("OVERLAP") is None
    assert source.get("other") == "1"


def test_invalid_values_are_rejected():
    with pytest.raises(ConfigurationError):
        Settings(overlap="ignore")
    with pytest.raises(ConfigurationError):
        load_settings(FlatDictSource({"overlap": "sometimes"}))
    with pytest.raises(ConfigurationError):
        load_settings({"overlap": "error"})


def test_yaml_file_source(tmp_path):
    pytest.importorskip("yaml")
    path = tmp_path / "settings.yaml"
    path.write_text("conventions:\n  overlap: error\n  allow_duplicate_scans: true\n", encoding="utf-8")
    settings = load_settings(YamlFileSource(str(path), section="conventions"))
    assert settings == Settings(overlap="error", allow_duplicate_scans=True)


def test_yaml_file_source_requires_a_mapping(tmp_path):
    pytest.importorskip("yaml")
    path = tmp_path / "settings.yaml"
    path.write_text("- overlap\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        YamlFileSource(str(path))
    with pytest.raises(ConfigurationError):
        YamlFileSource(str(tmp_path / "missing.yaml"))


def test_yaml_file_source_without_pyyaml(tmp_path, monkeypatch):
    monkeypatch.setitem(sys.modules, "yaml", None)
    path = tmp_path / "settings.yaml"
    path.write_text("overlap: error\n", encoding="utf-8")
    with pytest.raises(ConfigurationError) as ei:
        YamlFileSource(str(path))
    assert isinstance(ei.value.__cause__, ImportError)
