import yaml

from orchestrator.config import ConfigManager


def test_missing_file_uses_defaults(tmp_path, capsys):
    config = ConfigManager(str(tmp_path / "missing.yaml"))

    assert config.country == "us"
    assert config.auto_apply_threshold == 0.75
    assert config.cache_ttl_minutes == 60
    assert config.grouping_policy == "smart"
    assert "Config file not found" in capsys.readouterr().out


def test_file_values_merge_over_defaults(tmp_path):
    path = tmp_path / "music-match.yaml"
    path.write_text(yaml.safe_dump({
        "storefront": {"country": "gb"},
        "matching": {"auto_apply_threshold": 0.8},
    }), encoding="utf-8")

    config = ConfigManager(str(path))

    assert config.country == "gb"
    assert config.language == "en-US"
    assert config.auto_apply_threshold == 0.8
    assert config.max_candidates == 10


def test_environment_variables_are_expanded(tmp_path, monkeypatch):
    path = tmp_path / "music-match.yaml"
    path.write_text("cache:\n  path: ${MUSIC_MATCH_CACHE}\n", encoding="utf-8")
    monkeypatch.setenv("MUSIC_MATCH_CACHE", "/tmp/elsewhere.json")

    assert ConfigManager(str(path)).cache_path == "/tmp/elsewhere.json"


def test_set_overrides_with_dot_notation(tmp_path):
    config = ConfigManager(str(tmp_path / "missing.yaml"))
    config.set("matching.mode", "manual")
    config.set("extra.nested.flag", True)

    assert config.mode == "manual"
    assert config.get("extra.nested.flag") is True
    assert config.get("extra.unknown", "fallback") == "fallback"
