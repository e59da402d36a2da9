#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Genre Agent - Sets genre tags from storefront item pages.

Responsibilities:
- One lookup per group of tracks sharing an (artist, album) pair
- Artist-only fallback when an album lookup yields no genres
- Replace or merge genres, capped at genre.max_genres
- One decision record per file
"""

from typing import Any, Dict, List, Optional, Tuple

from matching.exceptions import TagReadError, WriteError
from orchestrator.decision import Resolution, ResolutionAction
from orchestrator.grouping import TrackGroup
from orchestrator.report import Action, Field
from .base import BaseAgent
from .tagger import GenreMode, merge_genres, write_genre


class GenreAgent(BaseAgent):
    """
    Agent responsible for genre correction.

    Applies genres for confident matches, records suggestions for the
    rest and never writes in dry-run mode.
    """

    def __init__(self, config, engine, grouping=None):
        super().__init__(config, engine, grouping)
        self.mode = GenreMode.parse(self.get_config('genre.mode', 'replace'))
        self.max_genres = int(self.get_config('genre.max_genres', 3))

    @property
    def name(self) -> str:
        return "Genre"

    @property
    def field(self) -> Field:
        return Field.GENRE

    def process(self, item: TrackGroup) -> Dict[str, Any]:
        """
        Look up genres for a group and apply them to its files.

        Args:
            item: Tracks sharing one lookup

        Returns:
            Result dictionary with status and per-action counts
        """
        resolution, genres = self.lookup_genres(item)

        if resolution.action == ResolutionAction.ABORT:
            return self.abort(item)

        actions = [
            self._apply(track, resolution, genres)
            for track in item.tracks
        ]

        return {
            "path": self.describe(item),
            "status": self.status_for(actions),
            "files": len(item.tracks),
            "genres": genres,
            "confidence": resolution.confidence
        }

    def lookup_genres(self, item: TrackGroup) -> Tuple[Resolution, List[str]]:
        """
        Resolve a group and read the chosen candidate's genres.

        Album-level groups that end up without genres retry with an
        artist-only lookup.
        """
        resolution = self.engine.resolve(item.query())
        genres = self._genres_for(resolution)

        if not genres and item.key.is_album_level and resolution.action != ResolutionAction.ABORT:
            fallback = item.fallback_query()
            if fallback is not None:
                self.log(f"No genres for {item.query()}, trying {fallback}")
                fallback_resolution = self.engine.resolve(fallback)
                fallback_genres = self._genres_for(fallback_resolution)
                if fallback_genres or fallback_resolution.action == ResolutionAction.ABORT:
                    return fallback_resolution, fallback_genres

        return resolution, genres

    def _genres_for(self, resolution: Resolution) -> List[str]:
        if resolution.action not in (ResolutionAction.APPLY, ResolutionAction.SUGGEST):
            return []
        if resolution.candidate is None:
            return []
        return self.engine.genres(resolution.candidate)

    def _apply(self, track, resolution: Resolution, genres: List[str]) -> Action:
        confidence = resolution.confidence
        old_value = track.genre

        if not genres:
            note = "no match" if resolution.chosen is None else "no genres listed"
            self.engine.record(track.path, Field.GENRE, old_value, None, confidence,
                               Action.SKIPPED, note=note)
            return Action.SKIPPED

        if resolution.action == ResolutionAction.SUGGEST:
            suggested = merge_genres(track.genres, genres, self.mode, self.max_genres)
            self.engine.record(track.path, Field.GENRE, old_value, "; ".join(suggested),
                               confidence, Action.SUGGESTED, note=self._describe(resolution))
            return Action.SUGGESTED

        try:
            result = write_genre(
                track.path, genres, self.mode, self.max_genres,
                dry_run=self.engine.dry_run, retry=self.retry_policy
            )
        except (TagReadError, WriteError) as e:
            self.log_error(str(e))
            self.engine.record(track.path, Field.GENRE, old_value, "; ".join(genres),
                               confidence, Action.FAILED, note=str(e))
            return Action.FAILED

        if not result.changed:
            self.engine.record(track.path, Field.GENRE, old_value, result.new_value,
                               confidence, Action.SKIPPED, note="unchanged")
            return Action.SKIPPED

        self.engine.record(track.path, Field.GENRE, old_value, result.new_value,
                           confidence, Action.AUTO_APPLIED, note=self._describe(resolution))
        return Action.AUTO_APPLIED

    @staticmethod
    def _describe(resolution: Resolution) -> Optional[str]:
        return resolution.candidate.describe() if resolution.candidate else None
