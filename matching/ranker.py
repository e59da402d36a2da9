#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Ranking and classification of scored candidates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .models import ScoredCandidate, SearchKind


class MatchClass(Enum):
    """How confident the top candidate is"""
    AUTO_SELECT = "auto_select"
    SUGGEST = "suggest"
    AMBIGUOUS = "ambiguous"
    NO_MATCH = "no_match"


@dataclass
class Classification:
    """Ranked candidates with the verdict on the top one"""
    kind: MatchClass
    ranked: List[ScoredCandidate] = field(default_factory=list)

    @property
    def top(self) -> Optional[ScoredCandidate]:
        return self.ranked[0] if self.ranked else None

    @property
    def confidence(self) -> float:
        return self.top.display_score if self.top else 0.0


def is_corroborated(scored: ScoredCandidate) -> bool:
    """
    True when a score is backed by more than the position bonus.

    Track and album searches need (track > 0.2 and (artist > 0.2 or
    album > 0.2)) or album > 0.4. Artist searches need artist > 0.4.
    """
    if scored.kind == SearchKind.ARTIST:
        return scored.artist_score > 0.4
    if scored.track_score > 0.2 and (scored.artist_score > 0.2 or scored.album_score > 0.2):
        return True
    return scored.album_score > 0.4


class CandidateRanker:
    """
    Sorts scored candidates and decides whether the best one can be
    applied without confirmation.
    """

    def __init__(self, threshold: float = 0.75):
        self.threshold = threshold

    def rank(self, scored: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
        """Score descending, then the storefront's own order"""
        return sorted(scored, key=lambda s: (-s.score, s.index))

    def classify(self, scored: Iterable[ScoredCandidate], interactive: bool = False) -> Classification:
        """
        Rank and classify.

        Args:
            scored: Scored candidates in any order
            interactive: Whether a user can be asked to choose

        Returns:
            Classification with AUTO_SELECT when the top candidate clears
            the threshold and is corroborated, AMBIGUOUS when a prompt is
            possible, SUGGEST otherwise, NO_MATCH when empty
        """
        ranked = self.rank(scored)
        if not ranked:
            return Classification(MatchClass.NO_MATCH, ranked)

        top = ranked[0]
        if top.score >= self.threshold and is_corroborated(top):
            return Classification(MatchClass.AUTO_SELECT, ranked)
        if interactive:
            return Classification(MatchClass.AMBIGUOUS, ranked)
        return Classification(MatchClass.SUGGEST, ranked)
