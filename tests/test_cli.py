import json

import pytest
import yaml

import cli
from conftest import FakeSource, make_candidate


ELVIS = [
    make_candidate(0, "Hound Dog", "Big Mama Thornton", "Hound Dog: The Peacock Recordings"),
    make_candidate(1, "Hound Dog", "Elvis Presley", "Elvis' Golden Records"),
]


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "music-match.yaml"
    path.write_text(yaml.safe_dump({
        "cache": {"path": str(tmp_path / "state" / "cache.json")},
        "output": {"reports_path": str(tmp_path / "outputs")},
        "http": {"throttle_seconds": 0},
    }), encoding="utf-8")
    return path


@pytest.fixture
def storefront(monkeypatch):
    source = FakeSource()
    monkeypatch.setattr(cli, "StorefrontSource", lambda **kwargs: source)
    return source


def test_parser_reads_global_and_command_options():
    args = cli.build_parser().parse_args(
        ["--dry-run", "--mode", "manual", "genre", "/music", "-r", "--genre-mode", "merge"]
    )
    assert args.dry_run
    assert args.mode == "manual"
    assert args.command == "genre"
    assert args.path == "/music"
    assert args.recursive
    assert args.genre_mode == "merge"


def test_parser_rejects_unknown_mode():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--mode", "yolo", "search"])


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_search_prints_ranked_candidates(config_file, storefront, capsys):
    storefront.results["Hound Dog Elvis Presley"] = ELVIS

    code = cli.main(["--config", str(config_file), "search",
                     "--track", "Hound Dog", "--artist", "Elvis Presley"])

    out = capsys.readouterr().out
    assert code == 0
    first = [line for line in out.splitlines() if line.strip().startswith("1.")][0]
    assert "Elvis Presley" in first
    assert "Verdict: auto_select" in out


def test_search_without_terms_fails(config_file, storefront, capsys):
    assert cli.main(["--config", str(config_file), "search"]) == 1
    assert "Error" in capsys.readouterr().err
    assert storefront.searches == []


def test_genre_command_writes_tags_and_decision_log(config_file, storefront, json_tags, tmp_path):
    folder = tmp_path / "golden"
    track = json_tags(folder, "01.mp3", title="Hound Dog", artist="Elvis Presley",
                      album="Golden Records")
    json_tags(folder, "02.mp3", title="Love Me Tender", artist="Elvis Presley",
              album="Golden Records")
    storefront.results["Golden Records Elvis Presley"] = [
        make_candidate(0, "Golden Records", "Elvis Presley", link="https://x/gr")
    ]
    storefront.genre_map["https://x/gr"] = ["Rock"]

    code = cli.main(["--config", str(config_file), "genre", str(folder)])

    assert code == 0
    assert json.loads(track.read_text(encoding="utf-8"))["genre"] == ["Rock"]
    [log] = list((tmp_path / "outputs").glob("genre-*.jsonl"))
    lines = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    assert [line["action"] for line in lines] == ["AutoApplied", "AutoApplied"]


def test_cache_stats_and_clear(config_file, storefront, capsys, tmp_path):
    storefront.results["Hound Dog Elvis Presley"] = ELVIS
    cli.main(["--config", str(config_file), "search", "--track", "Hound Dog", "--artist", "Elvis Presley"])
    cache_path = tmp_path / "state" / "cache.json"
    assert cache_path.exists()
    capsys.readouterr()

    assert cli.main(["--config", str(config_file), "cache"]) == 0
    assert "Entries: 1" in capsys.readouterr().out

    assert cli.main(["--config", str(config_file), "cache", "clear"]) == 0
    assert not cache_path.exists()
