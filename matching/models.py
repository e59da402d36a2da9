#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Data model shared by the scorer, ranker, cache and decision engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError


class SearchKind(Enum):
    """What a query is looking for"""
    TRACK = "track"
    ALBUM = "album"
    ARTIST = "artist"


@dataclass(frozen=True)
class Query:
    """Track/artist/album text being searched for"""
    track: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None

    def __post_init__(self):
        # Blank strings are stored as None
        for name in ("track", "artist", "album"):
            value = getattr(self, name)
            if value is not None:
                value = str(value).strip() or None
                object.__setattr__(self, name, value)

    @property
    def is_empty(self) -> bool:
        return not (self.track or self.artist or self.album)

    def validate(self) -> "Query":
        """Raise ValidationError if no field is set"""
        if self.is_empty:
            raise ValidationError("Query needs at least one of track, artist or album")
        return self

    @property
    def kind(self) -> SearchKind:
        if self.track:
            return SearchKind.TRACK
        if self.album:
            return SearchKind.ALBUM
        return SearchKind.ARTIST

    @property
    def term(self) -> str:
        """Raw search term sent to the storefront"""
        if self.kind == SearchKind.TRACK:
            parts = [self.track, self.artist, self.album]
        elif self.kind == SearchKind.ALBUM:
            parts = [self.album, self.artist]
        else:
            parts = [self.artist]
        return " ".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, Any]:
        return {"track": self.track, "artist": self.artist, "album": self.album}

    def __str__(self) -> str:
        return f"{self.track or '-'} | {self.artist or '-'} | {self.album or '-'}"


@dataclass(frozen=True)
class Candidate:
    """One scraped search result"""
    index: int
    image_url: str = ""
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    link: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "image_url": self.image_url,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "link": self.link
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        return cls(
            index=int(data.get("index", 0)),
            image_url=data.get("image_url") or "",
            title=data.get("title"),
            artist=data.get("artist"),
            album=data.get("album"),
            link=data.get("link")
        )

    def album_artist_text(self) -> Optional[str]:
        """
        Artist text of an album lockup.

        A subtitle without a separator is parsed as album-only; on album
        lockups that text is the artist, so fall back to it.
        """
        if self.artist:
            return self.artist
        if self.title and self.album and self.album != self.title:
            return self.album
        return None

    def describe(self) -> str:
        parts = [self.title or "?"]
        if self.artist:
            parts.append(f"by {self.artist}")
        if self.album and self.album != self.title:
            parts.append(f"[{self.album}]")
        return " ".join(parts)


@dataclass(frozen=True)
class Bonuses:
    """Tie-break bonuses added on top of the weighted base score"""
    exact_title: float = 0.0
    album_contains: float = 0.0
    exact_artist: float = 0.0
    position: float = 0.0
    joint_match: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.exact_title + self.album_contains + self.exact_artist +
            self.position + self.joint_match
        )


@dataclass(frozen=True)
class ScoredCandidate:
    """Candidate with its sub-scores; score is raw and may exceed 1.0"""
    candidate: Candidate
    kind: SearchKind
    track_score: float = 0.0
    artist_score: float = 0.0
    album_score: float = 0.0
    bonuses: Bonuses = field(default_factory=Bonuses)
    score: float = 0.0

    @property
    def index(self) -> int:
        return self.candidate.index

    @property
    def display_score(self) -> float:
        return max(0.0, min(1.0, self.score))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "kind": self.kind.value,
            "track_score": round(self.track_score, 4),
            "artist_score": round(self.artist_score, 4),
            "album_score": round(self.album_score, 4),
            "bonus": round(self.bonuses.total, 4),
            "score": round(self.score, 4)
        }


def candidates_to_dicts(candidates: List[Candidate]) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in candidates]
