#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Decision records and the append-only report log.

Every file touched by a batch gets one record per field: what it held,
what it was (or would be) changed to, the match confidence and the
action taken. Records are written as JSON lines as they are created.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class Field(Enum):
    """Tag or asset a decision is about"""
    ARTIST = "Artist"
    ALBUM_ARTIST = "AlbumArtist"
    GENRE = "Genre"
    IMAGE = "Image"


class Action(Enum):
    """What happened to a file"""
    AUTO_APPLIED = "AutoApplied"
    SUGGESTED = "Suggested"
    SKIPPED = "Skipped"
    ABORTED = "Aborted"
    FAILED = "Failed"


@dataclass(frozen=True)
class DecisionRecord:
    """One immutable entry of the decision log"""
    file: str
    field: Field
    old_value: Optional[str]
    new_value: Optional[str]
    confidence: float
    action: Action
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    dry_run: bool = False
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "field": self.field.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "confidence": round(self.confidence, 4),
            "action": self.action.value,
            "timestamp": self.timestamp,
            "dry_run": self.dry_run,
            "note": self.note
        }


class ReportLog:
    """
    Append-only decision sink.

    log() never raises: a failed write is reported once and the record is
    still kept in memory for the end-of-run summary.
    """

    def __init__(self, log_path: Optional[str] = None):
        """
        Args:
            log_path: JSON-lines file to append to (None = memory only)
        """
        self.log_path = Path(log_path) if log_path else None
        self.records: List[DecisionRecord] = []
        self._write_failed = False

    def log(self, record: DecisionRecord) -> None:
        """Append a record"""
        self.records.append(record)
        if self.log_path is None:
            return
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
        except (OSError, TypeError, ValueError) as e:
            if not self._write_failed:
                print(f"[Report] Warning: Could not write {self.log_path}: {e}")
            self._write_failed = True

    def counts(self) -> Dict[str, int]:
        """Number of records per action"""
        counter = Counter(r.action.value for r in self.records)
        return {action.value: counter.get(action.value, 0) for action in Action}

    def summary(self) -> Dict[str, Any]:
        return {
            "records": len(self.records),
            "actions": self.counts(),
            "files": len({r.file for r in self.records}),
            "log_path": str(self.log_path) if self.log_path else None
        }

    @staticmethod
    def default_path(reports_path: str, operation: str) -> str:
        """Timestamped log file name under the reports folder"""
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        return str(Path(reports_path) / f"{operation}-{stamp}.jsonl")

    def __repr__(self) -> str:
        return f"ReportLog(path={self.log_path}, records={len(self.records)})"
