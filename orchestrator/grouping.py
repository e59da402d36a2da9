#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Grouping of tracks for directory-wide lookups.

Tracks that resolve to the same (artist, album) pair share one remote
lookup, but only when more than one file shares the pair. A lone file
keeps a track-level key so a mislabeled track does not inherit an
album-wide tag set.

Artist resolution policies:
    PER_TRACK / PREFER_TRACK_ARTIST  track artist
    PREFER_ALBUM_ARTIST              album artist, else track artist
    SMART                            album artist when it is not a
                                     various-artists marker and the
                                     folder has at most one distinct
                                     track artist, else track artist
"""

import os
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from matching.exceptions import MatcherError
from matching.models import Query
from matching.normalize import compact, normalize

AUDIO_EXTENSIONS = {'.mp3', '.m4a', '.mp4', '.flac', '.ogg', '.opus'}

VARIOUS_ARTISTS_MARKERS = {"various", "va", "compilation", "variousartists"}


class ArtistPolicy(Enum):
    """Which artist tag drives a lookup"""
    PER_TRACK = "per-track"
    PREFER_ALBUM_ARTIST = "prefer-album-artist"
    PREFER_TRACK_ARTIST = "prefer-track-artist"
    SMART = "smart"

    @classmethod
    def parse(cls, value: Any) -> "ArtistPolicy":
        """Accepts 'smart', 'PerTrack', 'prefer_album_artist', ..."""
        if isinstance(value, cls):
            return value
        wanted = str(value or "").lower().replace('-', '').replace('_', '').replace(' ', '')
        for policy in cls:
            if policy.value.replace('-', '') == wanted:
                return policy
        raise ValueError(f"Unknown grouping policy: {value}")


def is_various_artists(name: Optional[str]) -> bool:
    """True for 'Various Artists', 'VA', 'V.A.', 'Compilation', ..."""
    return compact(name) in VARIOUS_ARTISTS_MARKERS


class SiblingIndex:
    """
    Distinct track artists per directory, computed once per batch run.

    Directories are primed from tracks the batch already read; any other
    directory is scanned with the injected reader.
    """

    def __init__(self, reader: Optional[Callable[[str], Any]] = None):
        self._reader = reader
        self._artists: Dict[str, FrozenSet[str]] = {}
        self.scans = 0

    def prime(self, directory: str, tracks: Iterable[Any]) -> None:
        key = self._key(directory)
        if key not in self._artists:
            self._artists[key] = self._distinct(tracks)

    def artists(self, directory: str) -> FrozenSet[str]:
        key = self._key(directory)
        if key not in self._artists:
            self._artists[key] = self._scan(directory)
        return self._artists[key]

    def _scan(self, directory: str) -> FrozenSet[str]:
        if self._reader is None:
            return frozenset()

        self.scans += 1
        tracks = []
        try:
            entries = sorted(Path(directory).iterdir())
        except OSError as e:
            print(f"[Grouping] Warning: Cannot list {directory}: {e}")
            return frozenset()

        for entry in entries:
            if not entry.is_file() or entry.suffix.lower() not in AUDIO_EXTENSIONS:
                continue
            try:
                tracks.append(self._reader(str(entry)))
            except MatcherError as e:
                print(f"[Grouping] Warning: Skipping sibling {entry.name}: {e}")
        return self._distinct(tracks)

    @staticmethod
    def _distinct(tracks: Iterable[Any]) -> FrozenSet[str]:
        return frozenset(
            normalize(t.artist) for t in tracks if normalize(getattr(t, 'artist', None))
        )

    @staticmethod
    def _key(directory: str) -> str:
        return os.path.normcase(os.path.abspath(directory))


@dataclass(frozen=True)
class GroupKey:
    """Normalized lookup key; album-level keys have an empty title"""
    artist: str
    album: str
    title: str = ""

    @property
    def is_album_level(self) -> bool:
        return not self.title


@dataclass
class TrackGroup:
    """Files sharing one remote lookup"""
    key: GroupKey
    artist: Optional[str]
    album: Optional[str]
    title: Optional[str] = None
    tracks: List[Any] = field(default_factory=list)

    def query(self) -> Query:
        """Album search for album-level groups, track search otherwise"""
        if self.key.is_album_level:
            return Query(artist=self.artist, album=self.album)
        return Query(track=self.title, artist=self.artist, album=self.album)

    def fallback_query(self) -> Optional[Query]:
        """Artist-only lookup used when the main lookup finds nothing"""
        if not self.artist:
            return None
        query = Query(artist=self.artist)
        return None if query == self.query() else query


class GroupingPolicy:
    """
    Resolves the lookup artist of each track and coalesces tracks into
    lookup groups.
    """

    def __init__(self, policy: ArtistPolicy = ArtistPolicy.SMART,
                 siblings: Optional[SiblingIndex] = None):
        self.policy = ArtistPolicy.parse(policy)
        self.siblings = siblings or SiblingIndex()

    def resolve_artist(self, track: Any, policy: Optional[ArtistPolicy] = None) -> str:
        """
        Artist to search with for a track.

        Args:
            track: Object with artist, album_artist and path attributes
            policy: Override for the configured policy

        Returns:
            Artist name (may be empty)
        """
        policy = ArtistPolicy.parse(policy) if policy is not None else self.policy
        track_artist = (getattr(track, 'artist', None) or '').strip()
        album_artist = (getattr(track, 'album_artist', None) or '').strip()

        if policy == ArtistPolicy.PER_TRACK:
            return track_artist
        elif policy == ArtistPolicy.PREFER_TRACK_ARTIST:
            return track_artist
        elif policy == ArtistPolicy.PREFER_ALBUM_ARTIST:
            return album_artist or track_artist
        elif policy == ArtistPolicy.SMART:
            if album_artist and not is_various_artists(album_artist):
                directory = os.path.dirname(str(track.path))
                if len(self.siblings.artists(directory)) <= 1:
                    return album_artist
            return track_artist
        raise ValueError(f"Unhandled policy: {policy}")

    def group(self, tracks: List[Any]) -> List[TrackGroup]:
        """
        Coalesce tracks into lookup groups.

        Args:
            tracks: Tracks with title, artist, album_artist, album, path

        Returns:
            Groups in first-seen order
        """
        by_directory: Dict[str, List[Any]] = {}
        for track in tracks:
            by_directory.setdefault(os.path.dirname(str(track.path)), []).append(track)
        for directory, members in by_directory.items():
            self.siblings.prime(directory, members)

        resolved = []
        for track in tracks:
            artist = self.resolve_artist(track)
            album = (getattr(track, 'album', None) or '').strip()
            resolved.append((track, artist, album, (normalize(artist), normalize(album))))

        pair_counts = Counter(pair for _, _, _, pair in resolved)

        groups: Dict[GroupKey, TrackGroup] = {}
        for track, artist, album, pair in resolved:
            title = (getattr(track, 'title', None) or '').strip() or Path(str(track.path)).stem
            shared = pair_counts[pair] > 1 and any(pair)
            if shared:
                key = GroupKey(pair[0], pair[1])
            else:
                key = GroupKey(pair[0], pair[1], normalize(title) or normalize(str(track.path)))

            group = groups.get(key)
            if group is None:
                group = TrackGroup(
                    key=key,
                    artist=artist or None,
                    album=album or None,
                    title=None if shared else title
                )
                groups[key] = group
            group.tracks.append(track)

        return list(groups.values())


def group_tracks(tracks: List[Any], policy: ArtistPolicy = ArtistPolicy.SMART,
                 siblings: Optional[SiblingIndex] = None) -> Dict[GroupKey, List[Any]]:
    """Tracks keyed by their lookup group"""
    return {g.key: g.tracks for g in GroupingPolicy(policy, siblings).group(tracks)}
