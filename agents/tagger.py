#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tag I/O for MP3, M4A and FLAC files.

Reads go through mutagen's easy interface. Writes are atomic from the
caller's point of view:

    copy file -> temp file (same folder) -> write tags -> os.replace

so a file either ends up with the new tags or is left untouched. Lock
contention (OSError) is retried with exponential backoff.
"""

import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import mutagen
from mutagen import MutagenError
from mutagen.flac import FLAC, Picture
from mutagen.id3 import APIC
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4, MP4Cover

from matching.exceptions import TagReadError, WriteError

ALBUM_ARTIST_KEYS = ('albumartist', 'album artist', 'album_artist')


class GenreMode(Enum):
    """How new genres combine with existing ones"""
    REPLACE = "replace"
    MERGE = "merge"

    @classmethod
    def parse(cls, value: Any) -> "GenreMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "replace").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown genre mode: {value}") from None


@dataclass
class TrackTags:
    """Tags read from one audio file"""
    path: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album_artist: Optional[str] = None
    album: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    raw_tags: Dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return Path(self.path).name

    @property
    def genre(self) -> Optional[str]:
        return "; ".join(self.genres) if self.genres else None


@dataclass
class WriteResult:
    """Outcome of a tag write"""
    path: str
    ok: bool
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    old_artist: Optional[str] = None
    old_album_artist: Optional[str] = None
    changed: bool = True
    attempts: int = 0


@dataclass
class RetryPolicy:
    """Bounded exponential backoff for transient write failures"""
    max_attempts: int = 4
    backoff_seconds: float = 0.5
    sleep: Callable[[float], None] = time.sleep

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))


# ==================== Reading ====================

def _first(audio, key: str) -> Optional[str]:
    try:
        values = audio.get(key)
    except (KeyError, ValueError):
        return None
    if not values:
        return None
    if isinstance(values, (list, tuple)):
        values = values[0]
    text = str(values).strip()
    return text or None


def _all(audio, key: str) -> List[str]:
    try:
        values = audio.get(key)
    except (KeyError, ValueError):
        return []
    if not values:
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    return [str(v).strip() for v in values if str(v).strip()]


def read_tags(path: str) -> TrackTags:
    """
    Read title, artist, album artist, album and genres.

    Files mutagen does not recognise give a result with only the path.

    Raises:
        TagReadError: The file cannot be opened at all
    """
    if not os.path.isfile(path):
        raise TagReadError(f"Not a file: {path}")

    try:
        audio = mutagen.File(path, easy=True)
    except (MutagenError, OSError) as e:
        raise TagReadError(f"Cannot open {path}: {e}") from e

    tags = TrackTags(path=str(path))
    if audio is None or audio.tags is None:
        return tags

    tags.title = _first(audio, 'title')
    tags.artist = _first(audio, 'artist')
    tags.album = _first(audio, 'album')
    for key in ALBUM_ARTIST_KEYS:
        tags.album_artist = _first(audio, key)
        if tags.album_artist:
            break
    tags.genres = _all(audio, 'genre')

    try:
        keys = list(audio.keys())
    except (KeyError, ValueError):
        keys = []
    for key in keys:
        values = _all(audio, key)
        if values:
            tags.raw_tags[key] = "; ".join(values)

    return tags


# ==================== Writing ====================

def merge_genres(existing: List[str], incoming: List[str],
                 mode: GenreMode = GenreMode.REPLACE, max_genres: int = 0) -> List[str]:
    """
    Combine genre lists.

    Duplicates are dropped case-insensitively, first spelling wins.
    max_genres <= 0 means no cap.
    """
    combined = list(incoming) if mode == GenreMode.REPLACE else list(existing) + list(incoming)

    seen = set()
    result = []
    for genre in combined:
        name = (genre or "").strip()
        if not name or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        result.append(name)

    if max_genres > 0:
        result = result[:max_genres]
    return result


def _write_once(path: Path, apply: Callable[[Any], None], easy: bool) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=path.suffix, dir=str(path.parent))
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copy2(str(path), tmp_name)
        audio = mutagen.File(tmp_name, easy=easy)
        if audio is None:
            raise WriteError(f"Unsupported format: {path.name}")
        if audio.tags is None:
            audio.add_tags()
        apply(audio)
        audio.save()
        os.replace(tmp_name, str(path))
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def atomic_write(path: str, apply: Callable[[Any], None], easy: bool = True,
                 retry: Optional[RetryPolicy] = None) -> int:
    """
    Apply a tag change through a temp copy and replace the original.

    Args:
        path: Audio file
        apply: Callback that edits the opened mutagen object
        easy: Open with mutagen's easy interface
        retry: Backoff policy for OSError / MutagenError

    Returns:
        Number of attempts used

    Raises:
        WriteError: Unsupported file, or still failing after max_attempts
    """
    retry = retry or RetryPolicy()
    target = Path(path)
    attempt = 0

    while True:
        attempt += 1
        try:
            _write_once(target, apply, easy)
            return attempt
        except (OSError, MutagenError) as e:
            if attempt >= retry.max_attempts:
                raise WriteError(f"{target.name}: {e} (after {attempt} attempts)") from e
            retry.sleep(retry.delay(attempt))


def write_genre(path: str, genres: List[str], mode: GenreMode = GenreMode.REPLACE,
                max_genres: int = 0, dry_run: bool = False,
                retry: Optional[RetryPolicy] = None) -> WriteResult:
    """
    Write genres to a file.

    Returns:
        WriteResult with old and new genre text; changed is False when
        the file already holds the same genres

    Raises:
        TagReadError: File cannot be opened
        WriteError: Write failed after retries
    """
    current = read_tags(path)
    new_genres = merge_genres(current.genres, genres, GenreMode.parse(mode), max_genres)
    result = WriteResult(
        path=str(path),
        ok=True,
        old_value=current.genre,
        new_value="; ".join(new_genres) or None
    )

    if [g.casefold() for g in new_genres] == [g.casefold() for g in current.genres]:
        result.changed = False
        return result
    if dry_run:
        return result

    def apply(audio):
        audio['genre'] = new_genres

    result.attempts = atomic_write(path, apply, retry=retry)
    return result


def write_artist(path: str, artist: Optional[str] = None, album_artist: Optional[str] = None,
                 dry_run: bool = False, retry: Optional[RetryPolicy] = None) -> WriteResult:
    """
    Write the artist and/or album artist of a file.

    Fields passed as None are left alone.

    Raises:
        TagReadError: File cannot be opened
        WriteError: Write failed after retries
    """
    current = read_tags(path)
    result = WriteResult(
        path=str(path),
        ok=True,
        old_artist=current.artist,
        old_album_artist=current.album_artist,
        old_value=current.album_artist if artist is None else current.artist,
        new_value=album_artist if artist is None else artist
    )

    updates = {}
    if artist and artist != current.artist:
        updates['artist'] = artist
    if album_artist and album_artist != current.album_artist:
        updates['albumartist'] = album_artist

    if not updates:
        result.changed = False
        return result
    if dry_run:
        return result

    def apply(audio):
        for key, value in updates.items():
            audio[key] = [value]

    result.attempts = atomic_write(path, apply, retry=retry)
    return result


def image_mime_type(image_data: bytes) -> str:
    if image_data[:8] == b'\x89PNG\r\n\x1a\n':
        return 'image/png'
    return 'image/jpeg'


def embed_cover(path: str, image_data: bytes, retry: Optional[RetryPolicy] = None) -> int:
    """
    Replace the embedded front cover of an MP3, M4A or FLAC file.

    Returns:
        Number of attempts used

    Raises:
        WriteError: Unsupported format or write failure
    """
    mime_type = image_mime_type(image_data)

    def apply(audio):
        if isinstance(audio, MP3):
            audio.tags.delall('APIC')
            audio.tags.add(
                APIC(
                    encoding=3,  # UTF-8
                    mime=mime_type,
                    type=3,  # Front cover
                    desc='Cover',
                    data=image_data
                )
            )
        elif isinstance(audio, MP4):
            if mime_type == 'image/png':
                cover = MP4Cover(image_data, imageformat=MP4Cover.FORMAT_PNG)
            else:
                cover = MP4Cover(image_data, imageformat=MP4Cover.FORMAT_JPEG)
            audio.tags['covr'] = [cover]
        elif isinstance(audio, FLAC):
            picture = Picture()
            picture.type = 3  # Front cover
            picture.mime = mime_type
            picture.desc = 'Cover'
            picture.data = image_data
            audio.clear_pictures()
            audio.add_picture(picture)
        else:
            raise WriteError(f"Cannot embed cover in {Path(path).name}")

    return atomic_write(path, apply, easy=False, retry=retry)
