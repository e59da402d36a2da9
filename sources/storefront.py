#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Apple Music web storefront adapter.

Scrapes the public search pages (no API key), e.g.
    https://music.apple.com/us/search?term=hound+dog+elvis+presley&l=en-US

Item pages (album, song, artist) are fetched for higher resolution
artwork and for the genres listed in their JSON-LD block.

Every request is preceded by a fixed throttle delay.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from matching.exceptions import FetchError, ParseError, SetupError
from matching.models import Candidate, Query, SearchKind
from .base import DataSource, SearchOutcome
from .extractor import CandidateExtractor, parse_document, resize_artwork

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0 Safari/537.36'
)


class StorefrontSource(DataSource):
    """
    Storefront search scraper.

    Provides candidates (title, artist, album, artwork URL, link) for
    track, album and artist queries, and genres for a chosen candidate.
    """

    BASE_URL = "https://music.apple.com"

    # Search page section to read for each query kind
    SECTIONS = {
        SearchKind.TRACK: "songs",
        SearchKind.ALBUM: "albums",
        SearchKind.ARTIST: "artists",
    }

    def __init__(
        self,
        country: str = "us",
        language: str = "en-US",
        base_url: Optional[str] = None,
        timeout: int = 15,
        throttle: float = 1.0,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
        verbose: bool = False,
        **kwargs
    ):
        """
        Initialize storefront source.

        Args:
            country: Two-letter storefront code
            language: Language passed as the l= parameter
            base_url: Override for the storefront host
            timeout: Seconds per HTTP request
            throttle: Seconds to wait before every request
            user_agent: User-Agent header sent with requests
            session: requests.Session to reuse (created when omitted)
            verbose: Print DEBUG messages
        """
        super().__init__(throttle=throttle, verbose=verbose, **kwargs)
        self.country = country.lower()
        self.language = language
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = user_agent or DEFAULT_USER_AGENT
        self.extractor = CandidateExtractor(self.base_url)

    @property
    def name(self) -> str:
        return "Storefront"

    @property
    def locale(self) -> str:
        return f"{self.country}-{self.language}" if self.language else self.country

    def search_url(self, query: Query) -> str:
        """Search page URL for a query"""
        params = {"term": query.term}
        if self.language:
            params["l"] = self.language
        return f"{self.base_url}/{self.country}/search?{urlencode(params)}"

    def fetch(self, url: str, timeout: Optional[int] = None) -> str:
        """
        Fetch a page.

        Raises:
            FetchError: Network error, timeout or non-2xx status
        """
        self._throttle_wait()
        try:
            response = self.session.get(url, timeout=timeout or self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"{url}: {e}") from e
        return response.text

    def search(self, query: Query, max_candidates: int = 0) -> SearchOutcome:
        """
        Search the storefront.

        Args:
            query: Validated query
            max_candidates: Stop after this many results (0 = unlimited)

        Returns:
            HIT with candidates, MISS when the page lists nothing,
            ERROR when the fetch or parse failed
        """
        url = self.search_url(query)
        self.log(f"GET {url}", "DEBUG")

        try:
            page = self.fetch(url)
            candidates = self._parse_results(page, query.kind, max_candidates)
        except SetupError:
            raise
        except (FetchError, ParseError) as e:
            self.log(f"Search failed for '{query.term}': {e}", "DEBUG")
            return SearchOutcome.error(str(e))

        self.log(f"{len(candidates)} result(s) for '{query.term}'", "DEBUG")
        return SearchOutcome.hit(candidates)

    def item(self, link: str, preferred_size: int = 0,
             match_track_hint: Optional[str] = None) -> Optional[Candidate]:
        """
        Read a single item page.

        Returns:
            Candidate with page artwork, or None when unavailable
        """
        if not link:
            return None
        try:
            page = self.fetch(link)
        except FetchError as e:
            self.log(f"Item page failed: {e}", "DEBUG")
            return None

        found = self.extractor.extract_from_page(page, preferred_size, match_track_hint)
        return found[0] if found else None

    def genres(self, candidate: Candidate) -> List[str]:
        """Genres listed on the candidate's item page"""
        if not candidate.link:
            return []
        try:
            page = self.fetch(candidate.link)
        except FetchError as e:
            self.log(f"Genre lookup failed: {e}", "DEBUG")
            return []
        return self.extractor.extract_genres(page)

    def artwork_url(self, candidate: Candidate, size: int = 1000) -> Optional[str]:
        """Candidate artwork resized to size x size"""
        return resize_artwork(candidate.image_url, size) or None

    def download(self, url: str) -> bytes:
        """
        Download an image.

        Raises:
            FetchError: Download failed
        """
        self._throttle_wait()
        try:
            response = self.session.get(url, timeout=max(self.timeout, 60))
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Cover download error: {e}") from e
        return response.content

    def _parse_results(self, page: str, kind: SearchKind, max_candidates: int) -> List[Candidate]:
        """
        Candidates from the section matching the query kind.

        Falls back to the whole page when no labelled section exists.
        """
        soup = self._parse(page)
        section = self._section(soup, self.SECTIONS.get(kind, ""))
        return self.extractor.extract(section if section is not None else soup, max_candidates)

    @staticmethod
    def _parse(page: str) -> Any:
        try:
            return parse_document(page)
        except SetupError:
            raise
        except Exception as e:
            raise ParseError(f"Unreadable page: {e}") from e

    @staticmethod
    def _section(soup, label: str):
        """Shelf whose aria-label or data-testid names the section"""
        if not label:
            return None
        node = soup.find(attrs={"data-testid": f"section-{label}"})
        if node is not None:
            return node
        for node in soup.find_all(attrs={"aria-label": True}):
            if node["aria-label"].strip().lower() == label:
                return node
        return None

    def stats(self) -> Dict[str, Any]:
        return {"requests": self.request_count, "locale": self.locale}
