#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Similarity scoring between a query and scraped candidates.

Scores favour title identity over artist/album corroboration. The
storefront's own result order only matters once semantic scores are
equal, through a small position bonus.

Track search:
    score = 0.80 * track + 0.15 * artist + 0.05 * album + bonuses

Album search:
    score = 0.85 * album + 0.15 * artist + bonuses (incl. joint match)

Artist search:
    score = artist + bonuses
"""

from dataclasses import dataclass
from typing import AbstractSet, Iterable, List, Optional

from .models import Bonuses, Candidate, Query, ScoredCandidate, SearchKind
from .normalize import normalize, tokens


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable weights and bonuses"""
    subset_score: float = 0.95

    track_weight: float = 0.80
    track_artist_weight: float = 0.15
    track_album_weight: float = 0.05

    album_weight: float = 0.85
    album_artist_weight: float = 0.15

    exact_title_bonus: float = 0.20
    album_contains_bonus: float = 0.08
    exact_artist_bonus: float = 0.06
    joint_match_bonus: float = 0.10

    # Depends on how informative the backend's own ranking is
    position_bonus: float = 0.03


def hybrid_similarity(a: AbstractSet[str], b: AbstractSet[str], subset_score: float = 0.95) -> float:
    """
    Token-subset aware Jaccard similarity.

    Args:
        a: Query tokens
        b: Candidate tokens
        subset_score: Returned when every token of a is in b

    Returns:
        0.0 if either set is empty, subset_score if a is a subset of b,
        otherwise |a & b| / |a | b|
    """
    if not a or not b:
        return 0.0
    if a <= b:
        return subset_score
    return len(a & b) / len(a | b)


class SimilarityScorer:
    """
    Scores candidates against a query.

    Pure: the same (query, candidate) pair always produces the same
    ScoredCandidate.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def score(self, query: Query, candidate: Candidate) -> ScoredCandidate:
        kind = query.kind
        if kind == SearchKind.TRACK:
            return self._score_track(query, candidate)
        elif kind == SearchKind.ALBUM:
            return self._score_album(query, candidate)
        elif kind == SearchKind.ARTIST:
            return self._score_artist(query, candidate)
        raise ValueError(f"Unknown search kind: {kind}")

    def score_all(self, query: Query, candidates: Iterable[Candidate]) -> List[ScoredCandidate]:
        return [self.score(query, c) for c in candidates]

    def similarity(self, a: Optional[str], b: Optional[str]) -> float:
        return hybrid_similarity(tokens(a), tokens(b), self.weights.subset_score)

    def _position_bonus(self, candidate: Candidate) -> float:
        return self.weights.position_bonus / (1 + max(candidate.index, 0))

    def _score_track(self, query: Query, candidate: Candidate) -> ScoredCandidate:
        w = self.weights

        track_score = self.similarity(query.track, candidate.title)
        artist_score = self.similarity(query.artist, candidate.artist) if query.artist else 0.0
        # Catches singles named after their parent album
        album_score = self.similarity(query.track, candidate.album)

        base = (
            w.track_weight * track_score +
            w.track_artist_weight * artist_score +
            w.track_album_weight * album_score
        )

        q_track = normalize(query.track)
        q_artist = normalize(query.artist)
        c_title = normalize(candidate.title)
        c_album = normalize(candidate.album)
        c_artist = normalize(candidate.artist)

        bonuses = Bonuses(
            exact_title=w.exact_title_bonus if q_track and q_track == c_title else 0.0,
            album_contains=w.album_contains_bonus if q_track and q_track in c_album else 0.0,
            exact_artist=w.exact_artist_bonus if q_artist and q_artist == c_artist else 0.0,
            position=self._position_bonus(candidate)
        )

        return ScoredCandidate(
            candidate=candidate,
            kind=SearchKind.TRACK,
            track_score=track_score,
            artist_score=artist_score,
            album_score=album_score,
            bonuses=bonuses,
            score=base + bonuses.total
        )

    def _score_album(self, query: Query, candidate: Candidate) -> ScoredCandidate:
        w = self.weights

        # Album lockups put the album name in the title link
        album_text = candidate.title or candidate.album
        artist_text = candidate.album_artist_text()

        album_score = self.similarity(query.album, album_text)
        artist_score = self.similarity(query.artist, artist_text) if query.artist else 0.0

        base = w.album_weight * album_score + w.album_artist_weight * artist_score

        q_album = normalize(query.album)
        q_artist = normalize(query.artist)
        joint = (
            album_score >= w.subset_score and artist_score >= w.subset_score
        )

        bonuses = Bonuses(
            exact_title=w.exact_title_bonus if q_album and q_album == normalize(album_text) else 0.0,
            exact_artist=w.exact_artist_bonus if q_artist and q_artist == normalize(artist_text) else 0.0,
            position=self._position_bonus(candidate),
            joint_match=w.joint_match_bonus if joint else 0.0
        )

        return ScoredCandidate(
            candidate=candidate,
            kind=SearchKind.ALBUM,
            artist_score=artist_score,
            album_score=album_score,
            bonuses=bonuses,
            score=base + bonuses.total
        )

    def _score_artist(self, query: Query, candidate: Candidate) -> ScoredCandidate:
        w = self.weights

        artist_text = candidate.title or candidate.artist
        artist_score = self.similarity(query.artist, artist_text)

        q_artist = normalize(query.artist)
        bonuses = Bonuses(
            exact_artist=w.exact_title_bonus if q_artist and q_artist == normalize(artist_text) else 0.0,
            position=self._position_bonus(candidate)
        )

        return ScoredCandidate(
            candidate=candidate,
            kind=SearchKind.ARTIST,
            artist_score=artist_score,
            bonuses=bonuses,
            score=artist_score + bonuses.total
        )
