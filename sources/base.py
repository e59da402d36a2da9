#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base class for data source adapters.
The storefront scraper inherits from this.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional
import time

from matching.models import Candidate, Query


class OutcomeKind(Enum):
    """Kind of remote lookup result"""
    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


@dataclass
class SearchOutcome:
    """
    Result of a remote lookup.

    MISS means the storefront answered with no results; ERROR means the
    fetch or parse failed. Only a HIT with candidates is cache-worthy.
    """
    kind: OutcomeKind
    candidates: List[Candidate] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def hit(cls, candidates: List[Candidate]) -> "SearchOutcome":
        if not candidates:
            return cls(OutcomeKind.MISS)
        return cls(OutcomeKind.HIT, list(candidates))

    @classmethod
    def miss(cls) -> "SearchOutcome":
        return cls(OutcomeKind.MISS)

    @classmethod
    def error(cls, reason: str) -> "SearchOutcome":
        return cls(OutcomeKind.ERROR, reason=reason)

    @property
    def cacheable(self) -> bool:
        return self.kind == OutcomeKind.HIT and bool(self.candidates)


class DataSource(ABC):
    """
    Abstract base class for data sources.

    A data source turns a Query into candidates and resolves genres for
    a chosen candidate.
    """

    def __init__(self, throttle: float = 1.0, verbose: bool = False,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize data source with a fixed request delay.

        Args:
            throttle: Seconds to wait before every remote request
            verbose: Print DEBUG messages
            sleep: Sleep function (replaced in tests)
        """
        self.throttle = throttle
        self.verbose = verbose
        self._sleep = sleep
        self.request_count = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name identifier"""
        pass

    @property
    @abstractmethod
    def locale(self) -> str:
        """Locale string that scopes cache entries"""
        pass

    @abstractmethod
    def search(self, query: Query, max_candidates: int = 0) -> SearchOutcome:
        """
        Search for candidates matching a query.

        Args:
            query: What to look for
            max_candidates: Stop after this many results (0 = unlimited)

        Returns:
            Tagged outcome; never raises for network or markup problems
        """
        pass

    @abstractmethod
    def genres(self, candidate: Candidate) -> List[str]:
        """
        Genres listed on a candidate's item page.

        Returns:
            Genre names, empty when unavailable
        """
        pass

    def _throttle_wait(self) -> None:
        """Fixed delay before each remote request"""
        if self.throttle > 0:
            self._sleep(self.throttle)
        self.request_count += 1

    def log(self, message: str, level: str = "INFO") -> None:
        """Log a message"""
        if level == "DEBUG" and not self.verbose:
            return
        if level == "INFO":
            print(f"[{self.name}] {message}")
        else:
            print(f"[{self.name}] {level}: {message}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(throttle={self.throttle})"
