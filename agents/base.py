#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base class for batch agents.
All agents (Genre, Artist, Cover) inherit from this.
"""

from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional
import time

from matching.exceptions import TagReadError
from orchestrator.decision import DecisionEngine
from orchestrator.grouping import AUDIO_EXTENSIONS, GroupingPolicy, SiblingIndex, TrackGroup
from orchestrator.report import Action, Field
from .tagger import RetryPolicy, TrackTags, read_tags


def find_audio_files(directory: str, recursive: bool = False) -> List[Path]:
    """Audio files in a folder, sorted by path"""
    path = Path(directory)
    pattern = '**/*' if recursive else '*'
    return sorted(
        p for p in path.glob(pattern)
        if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
    )


class BaseAgent(ABC):
    """
    Abstract base class for batch agents.

    An agent reads the tags of a folder, groups the tracks, runs one
    lookup per group through the shared DecisionEngine and records a
    decision for every file:
    - Genre: genre tags
    - Artist: artist / album artist tags
    - Cover: folder image and embedded artwork
    """

    def __init__(self, config, engine: DecisionEngine, grouping: Optional[GroupingPolicy] = None):
        """
        Initialize agent with configuration and the batch's decision engine.

        Args:
            config: ConfigManager instance
            engine: DecisionEngine shared by every lookup of the batch
            grouping: Grouping policy (default: configured policy)
        """
        self.config = config
        self.engine = engine
        self.grouping = grouping or GroupingPolicy(
            config.grouping_policy, SiblingIndex(read_tags)
        )
        self.sleep = time.sleep
        self._start_time: Optional[float] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name identifier"""
        pass

    @property
    @abstractmethod
    def field(self) -> Field:
        """Field recorded for files this agent skips or aborts"""
        pass

    @abstractmethod
    def process(self, item: TrackGroup) -> Dict[str, Any]:
        """
        Process a single lookup group.

        Args:
            item: Tracks sharing one lookup

        Returns:
            Dictionary with processing results
        """
        pass

    def plan(self, groups: List[TrackGroup]) -> List[TrackGroup]:
        """Work items for a batch; one per lookup group by default"""
        return groups

    def run(self, directory: str, recursive: bool = False) -> Dict[str, Any]:
        """
        Read, group and process every audio file in a folder.

        Returns:
            Summary of batch processing
        """
        files = find_audio_files(directory, recursive)
        self.log(f"Found {len(files)} audio files in {directory}")

        tracks = self.read_all(files)
        groups = self.grouping.group(tracks)
        items = self.plan(groups)
        self.log(f"{len(tracks)} tracks in {len(items)} lookup group(s)")

        def progress(item, result, index):
            self.log_progress(index + 1, len(items), f"{self.describe(item)}: {result.get('status')}")

        results = self.process_batch(items, callback=progress)
        results["files"] = len(files)
        results["lookups"] = self.engine.lookups
        return results

    def read_all(self, files: List[Path]) -> List[TrackTags]:
        tracks = []
        for path in files:
            try:
                tracks.append(read_tags(str(path)))
            except TagReadError as e:
                self.log_error(str(e))
                self.engine.record(str(path), self.field, None, None, 0.0, Action.FAILED,
                                   note=str(e))
        return tracks

    def process_batch(self, items: list, callback=None) -> Dict[str, Any]:
        """
        Process multiple items.

        Stops looking up once the engine is aborted; the remaining files
        are recorded as Aborted.

        Args:
            items: List of items to process
            callback: Optional callback(item, result, index) called after each item

        Returns:
            Summary of batch processing
        """
        results = {
            "total": len(items),
            "success": 0,
            "failed": 0,
            "skipped": 0,
            "aborted": 0,
            "items": []
        }

        self._start_time = time.time()

        for i, item in enumerate(items):
            try:
                if self.engine.aborted:
                    result = self.abort(item)
                else:
                    result = self.process(item)

                status = result.get("status")
                if status == "success":
                    results["success"] += 1
                elif status == "skipped":
                    results["skipped"] += 1
                elif status == "aborted":
                    results["aborted"] += 1
                else:
                    results["failed"] += 1

                results["items"].append(result)

                if callback:
                    callback(item, result, i)

            except Exception as e:
                results["failed"] += 1
                results["items"].append({
                    "path": self.describe(item),
                    "status": "error",
                    "error": str(e)
                })
                self.log_error(f"Error processing {self.describe(item)}: {e}")
                for track in item.tracks:
                    self.engine.record(track.path, self.field, None, None, 0.0,
                                       Action.FAILED, note=str(e))

        results["duration"] = time.time() - self._start_time
        results["actions"] = self.engine.report.counts()
        return results

    def abort(self, item: TrackGroup) -> Dict[str, Any]:
        """Record every file of an unprocessed item as Aborted"""
        for track in item.tracks:
            self.engine.record(track.path, self.field, None, None, 0.0, Action.ABORTED)
        return {"path": self.describe(item), "status": "aborted", "files": len(item.tracks)}

    def status_for(self, actions: List[Action]) -> str:
        """Item status from the actions recorded for its files"""
        counts = Counter(actions)
        if counts[Action.FAILED]:
            return "failed"
        if counts[Action.ABORTED]:
            return "aborted"
        if counts[Action.AUTO_APPLIED] or counts[Action.SUGGESTED]:
            return "success"
        return "skipped"

    @staticmethod
    def describe(item: TrackGroup) -> str:
        return str(item.query()) if item.tracks else "<empty>"

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=int(self.get_config('writes.max_attempts', 4)),
            backoff_seconds=float(self.get_config('writes.backoff_seconds', 0.5)),
            sleep=self.sleep
        )

    def log(self, message: str) -> None:
        """Log a message with agent name prefix"""
        print(f"[{self.name}] {message}")

    def log_error(self, message: str) -> None:
        """Log an error message"""
        print(f"[{self.name}] ERROR: {message}")

    def log_progress(self, current: int, total: int, item_name: str = "") -> None:
        """Log progress update"""
        percent = (current / total * 100) if total > 0 else 0
        elapsed = time.time() - self._start_time if self._start_time else 0

        if elapsed > 0 and current > 0:
            rate = current / elapsed
            remaining = (total - current) / rate if rate > 0 else 0
            eta = f"ETA: {remaining:.0f}s"
        else:
            eta = ""

        self.log(f"[{current}/{total}] ({percent:.0f}%) {item_name} {eta}")

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return self.config.get(key, default)
