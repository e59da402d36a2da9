#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cover Agent - Downloads artwork for album folders.

Responsibilities:
- One lookup per folder, using the folder's largest lookup group
- Item page refinement for larger artwork
- Save as cover.jpg (cover.filename) next to the tracks
- Optionally embed into MP3/M4A/FLAC files
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from matching.exceptions import FetchError, WriteError
from matching.models import Query
from orchestrator.decision import Resolution, ResolutionAction
from orchestrator.grouping import TrackGroup
from orchestrator.report import Action, Field
from .base import BaseAgent
from .tagger import embed_cover


class CoverAgent(BaseAgent):
    """
    Agent responsible for cover art.

    Works per folder rather than per group: a folder gets one image even
    when its tracks split into several lookup groups.
    """

    def __init__(self, config, engine, grouping=None):
        super().__init__(config, engine, grouping)
        self.size = int(self.get_config('cover.size', 1000))
        self.filename = self.get_config('cover.filename', 'cover.jpg')
        self.embed = bool(self.get_config('cover.embed', False))

    @property
    def name(self) -> str:
        return "Cover"

    @property
    def field(self) -> Field:
        return Field.IMAGE

    def plan(self, groups: List[TrackGroup]) -> List[TrackGroup]:
        """One item per folder, looked up with the folder's largest group"""
        by_directory: Dict[str, List[TrackGroup]] = {}
        for group in groups:
            directory = os.path.dirname(str(group.tracks[0].path))
            by_directory.setdefault(directory, []).append(group)

        items = []
        for directory, members in by_directory.items():
            lead = max(members, key=lambda g: len(g.tracks))
            tracks = [t for g in members for t in g.tracks]
            items.append(TrackGroup(
                key=lead.key,
                artist=lead.artist,
                album=lead.album,
                title=lead.title,
                tracks=tracks
            ))
        return items

    def process(self, item: TrackGroup) -> Dict[str, Any]:
        directory = os.path.dirname(str(item.tracks[0].path))
        return self.fetch_cover(item.query(), directory, [t.path for t in item.tracks])

    def fetch_cover(self, query: Query, target_dir: str,
                    embed_into: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Find, download and save artwork for a query.

        Args:
            query: Track, album or artist query
            target_dir: Folder the image is saved in
            embed_into: Audio files to embed the image into (when enabled)

        Returns:
            Result dictionary with status, image path and source URL
        """
        embed_into = embed_into or []
        target = Path(target_dir) / self.filename
        old_value = str(target) if target.exists() else None
        result = {"path": str(target), "status": "skipped", "url": None}

        resolution = self.engine.resolve(query)
        if resolution.action == ResolutionAction.ABORT:
            self.engine.record(str(target), Field.IMAGE, old_value, None, 0.0, Action.ABORTED)
            for path in embed_into:
                self.engine.record(path, Field.IMAGE, None, None, 0.0, Action.ABORTED)
            result["status"] = "aborted"
            return result

        confidence = resolution.confidence
        url = self.artwork_url(resolution, query)
        result["url"] = url
        result["confidence"] = confidence

        if url is None:
            note = "no match" if resolution.chosen is None else "no artwork"
            self.engine.record(str(target), Field.IMAGE, old_value, None, confidence,
                               Action.SKIPPED, note=note)
            return result

        if resolution.action == ResolutionAction.SUGGEST:
            self.engine.record(str(target), Field.IMAGE, old_value, url, confidence,
                               Action.SUGGESTED, note=resolution.candidate.describe())
            result["status"] = "success"
            return result

        if self.engine.dry_run:
            self.engine.record(str(target), Field.IMAGE, old_value, url, confidence,
                               Action.AUTO_APPLIED, note=resolution.candidate.describe())
            for path in embed_into if self.embed else []:
                self.engine.record(path, Field.IMAGE, None, url, confidence, Action.AUTO_APPLIED)
            result["status"] = "success"
            return result

        try:
            image_data = self.engine.source.download(url)
            self.save_image(image_data, target)
        except (FetchError, OSError) as e:
            self.log_error(f"Cover for {query} failed: {e}")
            self.engine.record(str(target), Field.IMAGE, old_value, url, confidence,
                               Action.FAILED, note=str(e))
            result["status"] = "failed"
            return result

        self.log(f"  Saved {target}")
        self.engine.record(str(target), Field.IMAGE, old_value, url, confidence,
                           Action.AUTO_APPLIED, note=resolution.candidate.describe())
        result["status"] = "success"

        if self.embed:
            embedded = self.embed_all(embed_into, image_data, url, confidence)
            result["embedded"] = embedded
            if embedded < len(embed_into):
                result["status"] = "failed"

        return result

    def artwork_url(self, resolution: Resolution, query: Query) -> Optional[str]:
        """
        Artwork URL for the resolved candidate.

        The candidate's item page usually carries larger artwork than the
        search lockup; the lockup image is used when the page has none.
        """
        if resolution.action not in (ResolutionAction.APPLY, ResolutionAction.SUGGEST):
            return None
        candidate = resolution.candidate
        if candidate is None:
            return None

        source = self.engine.source
        if candidate.link and resolution.action == ResolutionAction.APPLY:
            page = source.item(candidate.link, self.size, match_track_hint=query.track)
            if page is not None and page.image_url:
                return page.image_url
        return source.artwork_url(candidate, self.size)

    def save_image(self, image_data: bytes, target: Path) -> None:
        """Write through a temporary folder, then move into place"""
        with tempfile.TemporaryDirectory(prefix="cover-") as tmp_dir:
            tmp_path = Path(tmp_dir) / target.name
            with open(tmp_path, 'wb') as f:
                f.write(image_data)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(tmp_path), str(target))

    def embed_all(self, paths: List[str], image_data: bytes, url: str, confidence: float) -> int:
        """Embed into each file, returns the number embedded"""
        embedded = 0
        for path in paths:
            try:
                embed_cover(path, image_data, retry=self.retry_policy)
            except WriteError as e:
                self.log(f"    Failed to embed in {Path(path).name}: {e}")
                self.engine.record(path, Field.IMAGE, None, url, confidence,
                                   Action.FAILED, note=str(e))
                continue
            embedded += 1
            self.engine.record(path, Field.IMAGE, None, url, confidence, Action.AUTO_APPLIED)

        self.log(f"  Embedded cover in {embedded}/{len(paths)} files")
        return embedded
