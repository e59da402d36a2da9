#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Decision engine: lookup, score, rank and decide.

    Query -> cache | storefront search -> score -> rank -> decide

Modes:
    automatic    apply confident matches, log the rest as suggestions
    interactive  apply confident matches, ask about the rest
    manual       ask about every lookup

Prompts need an interactive console. Without one the engine falls back
to suggestions so a batch never blocks on input.
"""

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from matching.exceptions import ValidationError
from matching.models import Candidate, Query, ScoredCandidate
from matching.ranker import CandidateRanker, MatchClass
from matching.scorer import SimilarityScorer
from sources.base import DataSource, OutcomeKind
from .cache import ResultCache
from .report import Action, DecisionRecord, Field, ReportLog


class DecisionMode(Enum):
    """How much the user is involved"""
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    INTERACTIVE = "interactive"

    @classmethod
    def parse(cls, value: Any) -> "DecisionMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "automatic").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown mode: {value}") from None


class ResolutionAction(Enum):
    """Outcome of resolving one query"""
    APPLY = "apply"
    SUGGEST = "suggest"
    SKIP = "skip"
    ABORT = "abort"


@dataclass
class Resolution:
    """What to do for a query, and with which candidate"""
    action: ResolutionAction
    query: Query
    chosen: Optional[ScoredCandidate] = None
    ranked: List[ScoredCandidate] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.chosen.display_score if self.chosen else 0.0

    @property
    def candidate(self) -> Optional[Candidate]:
        return self.chosen.candidate if self.chosen else None


# ==================== Prompting ====================

class Prompter(ABC):
    """Source of user answers"""

    @abstractmethod
    def available(self) -> bool:
        """Whether a user can answer"""
        pass

    @abstractmethod
    def show(self, line: str) -> None:
        pass

    @abstractmethod
    def ask(self, prompt: str) -> Optional[str]:
        """Answer text, or None when input is closed"""
        pass


class ConsolePrompter(Prompter):
    """Prompts on stdin/stdout"""

    def available(self) -> bool:
        try:
            return sys.stdin.isatty() and sys.stdout.isatty()
        except (AttributeError, ValueError):
            return False

    def show(self, line: str) -> None:
        print(line)

    def ask(self, prompt: str) -> Optional[str]:
        try:
            return input(prompt)
        except EOFError:
            return None


def parse_correction(text: str, current: Query) -> Query:
    """
    Parse a 'Title|Artist|Album' correction.

    An empty segment wipes the field, '=' keeps the current value and
    missing trailing segments keep their current values.

    Raises:
        ValidationError: More than three segments, or nothing left to search
    """
    segments = text.split("|")
    if len(segments) > 3:
        raise ValidationError("Expected at most Title|Artist|Album")

    current_values = [current.track, current.artist, current.album]
    values = []
    for i, current_value in enumerate(current_values):
        if i >= len(segments):
            values.append(current_value)
            continue
        segment = segments[i].strip()
        if segment == "=":
            values.append(current_value)
        elif segment == "":
            values.append(None)
        else:
            values.append(segment)

    return Query(track=values[0], artist=values[1], album=values[2]).validate()


class PromptState(Enum):
    PRESENT = "present"
    REQUERY = "requery"


class PromptSession:
    """
    Interactive pick / correct / skip / abort loop.

    Answers:
        <n>                   pick candidate n
        Title|Artist|Album    search again with a corrected query
        s or empty            skip
        q                     abort the batch

    Corrections and unrecognised answers count as attempts; once
    max_attempts is exceeded the query is skipped.
    """

    def __init__(self, engine: "DecisionEngine", prompter: Prompter, max_attempts: int = 3):
        self.engine = engine
        self.prompter = prompter
        self.max_attempts = max_attempts

    def run(self, query: Query, ranked: List[ScoredCandidate]) -> Resolution:
        state = PromptState.PRESENT
        attempts = 0

        while True:
            if state == PromptState.REQUERY:
                ranked = self.engine.rank(query)
                state = PromptState.PRESENT
                continue

            self._present(query, ranked)
            answer = self.prompter.ask("Pick #, Title|Artist|Album, [s]kip, [q]uit: ")
            if answer is None:
                return Resolution(ResolutionAction.ABORT, query, ranked=ranked)

            answer = answer.strip()
            lowered = answer.lower()

            if lowered in ("", "s", "skip"):
                return Resolution(ResolutionAction.SKIP, query, ranked=ranked)
            if lowered in ("q", "quit", "abort"):
                return Resolution(ResolutionAction.ABORT, query, ranked=ranked)

            if answer.isdigit() and 1 <= int(answer) <= len(ranked):
                return Resolution(
                    ResolutionAction.APPLY, query, chosen=ranked[int(answer) - 1], ranked=ranked
                )

            attempts += 1
            if attempts > self.max_attempts:
                self.prompter.show("  Too many attempts, skipping")
                return Resolution(ResolutionAction.SKIP, query, ranked=ranked)

            if "|" in answer:
                try:
                    query = parse_correction(answer, query)
                except ValidationError as e:
                    self.prompter.show(f"  {e}")
                    continue
                state = PromptState.REQUERY
            else:
                self.prompter.show(f"  Not understood: {answer}")

    def _present(self, query: Query, ranked: List[ScoredCandidate]) -> None:
        self.prompter.show(f"Query: {query}")
        if not ranked:
            self.prompter.show("  No candidates")
            return
        for i, scored in enumerate(ranked, 1):
            self.prompter.show(
                f"  {i:2d}. [{scored.display_score:.2f}] {scored.candidate.describe()}"
            )


# ==================== Engine ====================

class DecisionEngine:
    """
    Runs the lookup and decision pipeline for one batch.

    The cache, report log and prompter are injected so one instance is
    shared by every lookup of the batch.
    """

    def __init__(
        self,
        source: DataSource,
        cache: Optional[ResultCache] = None,
        scorer: Optional[SimilarityScorer] = None,
        ranker: Optional[CandidateRanker] = None,
        report: Optional[ReportLog] = None,
        mode: DecisionMode = DecisionMode.AUTOMATIC,
        prompter: Optional[Prompter] = None,
        dry_run: bool = False,
        max_candidates: int = 10,
        max_attempts: int = 3,
        verbose: bool = False
    ):
        self.source = source
        self.cache = cache
        self.scorer = scorer or SimilarityScorer()
        self.ranker = ranker or CandidateRanker()
        self.report = report or ReportLog()
        self.mode = DecisionMode.parse(mode)
        self.prompter = prompter
        self.dry_run = dry_run
        self.max_candidates = max_candidates
        self.max_attempts = max_attempts
        self.verbose = verbose

        self.aborted = False
        self.lookups = 0
        self._fallback_warned = False

    @property
    def name(self) -> str:
        return "Decision"

    def lookup(self, query: Query) -> List[Candidate]:
        """
        Candidates for a query, from the cache or the storefront.

        Raises:
            ValidationError: Query has no fields
        """
        query.validate()
        term, locale = query.term, self.source.locale

        if self.cache is not None:
            cached = self.cache.get(term, locale)
            if cached is not None:
                self.log(f"Cache hit: '{term}' ({len(cached)} candidates)", "DEBUG")
                return cached

        self.lookups += 1
        outcome = self.source.search(query, self.max_candidates)

        if outcome.kind == OutcomeKind.ERROR:
            self.log(f"Lookup failed for '{term}': {outcome.reason}", "DEBUG")
            return []

        if self.cache is not None and outcome.cacheable:
            self.cache.put(term, locale, outcome.candidates)
        return outcome.candidates

    def rank(self, query: Query) -> List[ScoredCandidate]:
        """Scored candidates, best first"""
        return self.ranker.rank(self.scorer.score_all(query, self.lookup(query)))

    def genres(self, candidate: Candidate) -> List[str]:
        """Genres of a candidate, from the cache or its item page"""
        if not candidate.link:
            return []
        locale = self.source.locale

        if self.cache is not None:
            cached = self.cache.get_genres(candidate.link, locale)
            if cached is not None:
                return cached

        genres = self.source.genres(candidate)
        if self.cache is not None:
            self.cache.put_genres(candidate.link, locale, genres)
        return genres

    def can_prompt(self) -> bool:
        return self.prompter is not None and self.prompter.available()

    def resolve(self, query: Query) -> Resolution:
        """
        Decide what to do for a query.

        Returns:
            Resolution with APPLY (chosen candidate), SUGGEST (top
            candidate, not applied), SKIP or ABORT
        """
        if self.aborted:
            return Resolution(ResolutionAction.ABORT, query)

        candidates = self.lookup(query)
        scored = self.scorer.score_all(query, candidates)

        wants_prompt = self.mode in (DecisionMode.MANUAL, DecisionMode.INTERACTIVE)
        interactive = wants_prompt and self.can_prompt()
        if wants_prompt and not interactive and not self._fallback_warned:
            self.log("No interactive console, falling back to suggestions", "WARN")
            self._fallback_warned = True

        classification = self.ranker.classify(scored, interactive=interactive)
        ranked = classification.ranked

        if interactive and (
            self.mode == DecisionMode.MANUAL or
            classification.kind in (MatchClass.AMBIGUOUS, MatchClass.NO_MATCH)
        ):
            resolution = PromptSession(self, self.prompter, self.max_attempts).run(query, ranked)
        elif classification.kind == MatchClass.AUTO_SELECT and self.mode != DecisionMode.MANUAL:
            resolution = Resolution(ResolutionAction.APPLY, query, classification.top, ranked)
        elif classification.kind == MatchClass.NO_MATCH:
            resolution = Resolution(ResolutionAction.SKIP, query, ranked=ranked)
        else:
            resolution = Resolution(ResolutionAction.SUGGEST, query, classification.top, ranked)

        if resolution.action == ResolutionAction.ABORT:
            self.log("Aborted by user")
            self.aborted = True

        return resolution

    def record(
        self,
        file: str,
        field: Field,
        old_value: Optional[str],
        new_value: Optional[str],
        confidence: float,
        action: Action,
        note: Optional[str] = None
    ) -> DecisionRecord:
        """Create a decision record and send it to the report log"""
        record = DecisionRecord(
            file=file,
            field=field,
            old_value=old_value,
            new_value=new_value,
            confidence=confidence,
            action=action,
            dry_run=self.dry_run,
            note=note
        )
        self.report.log(record)
        return record

    def log(self, message: str, level: str = "INFO") -> None:
        if level == "DEBUG" and not self.verbose:
            return
        if level == "INFO":
            print(f"[{self.name}] {message}")
        else:
            print(f"[{self.name}] {level}: {message}")
