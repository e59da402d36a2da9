#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Artist Agent - Corrects artist and album artist tags.

Album-level groups are matched with an album search and correct the
AlbumArtist tag; single tracks are matched with a track search and
correct the Artist tag.
"""

from typing import Any, Dict, Optional

from matching.exceptions import TagReadError, WriteError
from matching.models import SearchKind
from orchestrator.decision import Resolution, ResolutionAction
from orchestrator.grouping import TrackGroup
from orchestrator.report import Action, Field
from .base import BaseAgent
from .tagger import write_artist


class ArtistAgent(BaseAgent):
    """Agent responsible for artist tag correction"""

    @property
    def name(self) -> str:
        return "Artist"

    @property
    def field(self) -> Field:
        return Field.ARTIST

    @staticmethod
    def field_for(item: TrackGroup) -> Field:
        return Field.ALBUM_ARTIST if item.key.is_album_level else Field.ARTIST

    def process(self, item: TrackGroup) -> Dict[str, Any]:
        resolution = self.engine.resolve(item.query())
        if resolution.action == ResolutionAction.ABORT:
            return self.abort(item)

        field = self.field_for(item)
        new_artist = self._artist_from(resolution)
        actions = [
            self._apply(track, field, resolution, new_artist)
            for track in item.tracks
        ]

        return {
            "path": self.describe(item),
            "status": self.status_for(actions),
            "files": len(item.tracks),
            "field": field.value,
            "artist": new_artist,
            "confidence": resolution.confidence
        }

    def abort(self, item: TrackGroup) -> Dict[str, Any]:
        field = self.field_for(item)
        for track in item.tracks:
            self.engine.record(track.path, field, None, None, 0.0, Action.ABORTED)
        return {"path": self.describe(item), "status": "aborted", "files": len(item.tracks)}

    @staticmethod
    def _artist_from(resolution: Resolution) -> Optional[str]:
        if resolution.action not in (ResolutionAction.APPLY, ResolutionAction.SUGGEST):
            return None
        candidate = resolution.candidate
        if candidate is None:
            return None
        # Album lockups carry the artist as their only subtitle text
        if resolution.query.kind == SearchKind.ALBUM:
            return candidate.album_artist_text()
        return candidate.artist

    def _apply(self, track, field: Field, resolution: Resolution,
               new_artist: Optional[str]) -> Action:
        confidence = resolution.confidence
        old_value = track.album_artist if field == Field.ALBUM_ARTIST else track.artist

        if not new_artist:
            self.engine.record(track.path, field, old_value, None, confidence,
                               Action.SKIPPED, note="no match")
            return Action.SKIPPED

        if old_value == new_artist:
            self.engine.record(track.path, field, old_value, new_artist, confidence,
                               Action.SKIPPED, note="unchanged")
            return Action.SKIPPED

        if resolution.action == ResolutionAction.SUGGEST:
            self.engine.record(track.path, field, old_value, new_artist, confidence,
                               Action.SUGGESTED, note=resolution.candidate.describe())
            return Action.SUGGESTED

        try:
            if field == Field.ALBUM_ARTIST:
                write_artist(track.path, album_artist=new_artist,
                             dry_run=self.engine.dry_run, retry=self.retry_policy)
            else:
                write_artist(track.path, artist=new_artist,
                             dry_run=self.engine.dry_run, retry=self.retry_policy)
        except (TagReadError, WriteError) as e:
            self.log_error(str(e))
            self.engine.record(track.path, field, old_value, new_artist, confidence,
                               Action.FAILED, note=str(e))
            return Action.FAILED

        self.engine.record(track.path, field, old_value, new_artist, confidence,
                           Action.AUTO_APPLIED, note=resolution.candidate.describe())
        return Action.AUTO_APPLIED
