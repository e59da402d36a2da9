import json
import time

import pytest

from conftest import FakeSource, ScriptedPrompter, make_candidate
from matching.exceptions import ValidationError
from matching.models import Query
from orchestrator.cache import ResultCache
from orchestrator.decision import (
    DecisionEngine,
    DecisionMode,
    ResolutionAction,
    parse_correction,
)
from orchestrator.report import Action, Field, ReportLog


HOUND_DOG = Query(track="Hound Dog", artist="Elvis Presley")

ELVIS = [
    make_candidate(0, "Hound Dog", "Big Mama Thornton", "Hound Dog: The Peacock Recordings", link="https://x/thornton"),
    make_candidate(1, "Hound Dog", "Elvis Presley", "Elvis' Golden Records", link="https://x/elvis"),
]

WEAK = [make_candidate(0, "Dog Days", "Someone Else", "Summer")]


def _engine(source, tmp_path=None, clock=None, **kwargs):
    cache = None
    if tmp_path is not None:
        cache = ResultCache(str(tmp_path / "cache.json"), clock=clock or time.time)
    return DecisionEngine(source, cache=cache, **kwargs)


def test_empty_query_is_rejected_before_lookup():
    source = FakeSource()
    with pytest.raises(ValidationError):
        _engine(source).lookup(Query())
    assert source.searches == []


def test_lookup_uses_cache_on_second_call(tmp_path):
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    engine = _engine(source, tmp_path)

    first = engine.lookup(HOUND_DOG)
    second = engine.lookup(HOUND_DOG)

    assert first == second == ELVIS
    assert source.searches == [HOUND_DOG.term]
    assert engine.lookups == 1


def test_cache_expiry_triggers_new_lookup(tmp_path, clock):
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    engine = _engine(source, tmp_path, clock)

    engine.lookup(HOUND_DOG)
    clock.advance(59)
    engine.lookup(HOUND_DOG)
    assert len(source.searches) == 1

    clock.advance(2)
    engine.lookup(HOUND_DOG)
    assert len(source.searches) == 2


def test_errors_and_misses_are_not_cached(tmp_path):
    source = FakeSource(errors={HOUND_DOG.term: "timeout"})
    engine = _engine(source, tmp_path)

    assert engine.lookup(HOUND_DOG) == []
    assert engine.lookup(HOUND_DOG) == []
    assert len(source.searches) == 2
    assert not (tmp_path / "cache.json").exists()

    # The storefront recovers: the next lookup must see fresh results
    del source.errors[HOUND_DOG.term]
    source.results[HOUND_DOG.term] = ELVIS
    assert engine.lookup(HOUND_DOG) == ELVIS


def test_automatic_mode_applies_hound_dog():
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    resolution = _engine(source).resolve(HOUND_DOG)

    assert resolution.action == ResolutionAction.APPLY
    assert resolution.candidate.artist == "Elvis Presley"
    assert resolution.confidence == 1.0


def test_automatic_mode_suggests_weak_match_and_skips_nothing():
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    engine = _engine(source)

    assert engine.resolve(query).action == ResolutionAction.SUGGEST
    assert engine.resolve(Query(track="Nothing")).action == ResolutionAction.SKIP


def test_interactive_without_console_falls_back_to_suggest(capsys):
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    prompter = ScriptedPrompter(["1"], available=False)
    engine = _engine(source, mode=DecisionMode.INTERACTIVE, prompter=prompter)

    resolution = engine.resolve(query)

    assert resolution.action == ResolutionAction.SUGGEST
    assert prompter.prompts == 0
    assert "falling back to suggestions" in capsys.readouterr().out


def test_manual_without_console_never_applies():
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    prompter = ScriptedPrompter([], available=False)
    engine = _engine(source, mode=DecisionMode.MANUAL, prompter=prompter)

    resolution = engine.resolve(HOUND_DOG)

    assert resolution.action == ResolutionAction.SUGGEST
    assert resolution.candidate.artist == "Elvis Presley"
    assert prompter.prompts == 0


def test_interactive_pick_applies_chosen_candidate():
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    prompter = ScriptedPrompter(["1"])
    engine = _engine(source, mode=DecisionMode.INTERACTIVE, prompter=prompter)

    resolution = engine.resolve(query)

    assert resolution.action == ResolutionAction.APPLY
    assert resolution.candidate.title == "Dog Days"
    assert any("Dog Days" in line for line in prompter.lines)


def test_interactive_does_not_prompt_for_confident_match():
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    prompter = ScriptedPrompter(["q"])
    engine = _engine(source, mode=DecisionMode.INTERACTIVE, prompter=prompter)

    assert engine.resolve(HOUND_DOG).action == ResolutionAction.APPLY
    assert prompter.prompts == 0


def test_manual_mode_always_prompts():
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    prompter = ScriptedPrompter(["s"])
    engine = _engine(source, mode=DecisionMode.MANUAL, prompter=prompter)

    assert engine.resolve(HOUND_DOG).action == ResolutionAction.SKIP
    assert prompter.prompts == 1


def test_correction_requeries_with_new_query():
    bad = Query(track="Hund Dog", artist="Elvis")
    source = FakeSource(results={HOUND_DOG.term: ELVIS})
    prompter = ScriptedPrompter(["Hound Dog|Elvis Presley", "1"])
    engine = _engine(source, mode=DecisionMode.INTERACTIVE, prompter=prompter)

    resolution = engine.resolve(bad)

    assert source.searches == [bad.term, HOUND_DOG.term]
    assert resolution.query == HOUND_DOG
    assert resolution.action == ResolutionAction.APPLY
    # Ranked best first, so pick 1 is Elvis
    assert resolution.candidate.artist == "Elvis Presley"


def test_unrecognised_answers_hit_the_attempt_guard():
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    prompter = ScriptedPrompter(["what", "9", "??", "huh", "1"])
    engine = _engine(source, mode=DecisionMode.MANUAL, prompter=prompter, max_attempts=3)

    resolution = engine.resolve(query)

    assert resolution.action == ResolutionAction.SKIP
    assert prompter.prompts == 4
    assert prompter.answers == ["1"]


def test_abort_stops_the_engine():
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    prompter = ScriptedPrompter(["q"])
    engine = _engine(source, mode=DecisionMode.MANUAL, prompter=prompter)

    assert engine.resolve(query).action == ResolutionAction.ABORT
    assert engine.aborted
    assert engine.resolve(query).action == ResolutionAction.ABORT
    assert len(source.searches) == 1


def test_closed_input_aborts():
    query = Query(track="Dog")
    source = FakeSource(results={query.term: WEAK})
    engine = _engine(source, mode=DecisionMode.MANUAL, prompter=ScriptedPrompter([]))
    assert engine.resolve(query).action == ResolutionAction.ABORT


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hound Dog|Elvis Presley|Golden", Query("Hound Dog", "Elvis Presley", "Golden")),
        ("Hound Dog", Query("Hound Dog", "Elvis", "Old Album")),
        ("=|Elvis Presley", Query("Hund Dog", "Elvis Presley", "Old Album")),
        ("Hound Dog||", Query("Hound Dog", None, None)),
        ("|=|=", Query(None, "Elvis", "Old Album")),
    ],
)
def test_parse_correction(text, expected):
    current = Query("Hund Dog", "Elvis", "Old Album")
    assert parse_correction(text, current) == expected


def test_parse_correction_rejects_empty_and_extra_segments():
    current = Query("Song", "Artist", "Album")
    with pytest.raises(ValidationError):
        parse_correction("||", current)
    with pytest.raises(ValidationError):
        parse_correction("a|b|c|d", current)


def test_genres_are_cached(tmp_path):
    source = FakeSource(genres={"https://x/elvis": ["Rock"]})
    engine = _engine(source, tmp_path)
    candidate = ELVIS[1]

    assert engine.genres(candidate) == ["Rock"]
    assert engine.genres(candidate) == ["Rock"]
    assert source.genre_lookups == ["https://x/elvis"]


def test_record_writes_json_line(tmp_path):
    log_path = tmp_path / "reports" / "genre.jsonl"
    engine = _engine(FakeSource(), report=ReportLog(str(log_path)), dry_run=True)

    record = engine.record("/music/a.mp3", Field.GENRE, None, "Rock", 0.91, Action.AUTO_APPLIED)

    assert record.dry_run
    line = json.loads(log_path.read_text(encoding="utf-8").strip())
    assert line["field"] == "Genre"
    assert line["action"] == "AutoApplied"
    assert line["new_value"] == "Rock"
    assert line["dry_run"] is True
