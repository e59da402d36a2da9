#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Candidate extraction from storefront HTML.

Search pages list results as lockups: an artwork <picture>, a title link
and a subtitle holding "Artist • Album" (or "Artist\\nAlbum", or a dash
or colon variant). Item pages (album, song, artist) carry Open Graph
metadata, a track list and a JSON-LD block with genres.

Missing structure is a soft failure: the extractor returns an empty list
and callers treat it as "no results". A missing HTML parser is a setup
error and raises.
"""

import html
import json
import re
from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

try:
    from bs4 import BeautifulSoup
except ImportError:  # checked at call time
    BeautifulSoup = None

from matching.exceptions import SetupError
from matching.models import Candidate
from matching.normalize import normalize

# Tried in order; the first selector that matches any node wins
RESULT_SELECTORS = (
    "ul.shelf-grid__list > li.shelf-grid__list-item",
    "div.top-search-lockup",
    "div.product-lockup",
)
TITLE_SELECTORS = (
    "[class*='__title'] a",
    "a[title]",
    "a[href]",
)
SUBTITLE_SELECTORS = (
    "[class*='__subtitle']",
    "[class*='__description']",
)
LAZY_IMAGE_ATTRS = ("data-src", "data-lazy-src")

TRACK_ROW_SELECTORS = (
    "div.songs-list-row",
    "li.track-list-item",
)
TRACK_NAME_SELECTORS = (
    "[class*='song-name']",
    "[class*='track-name']",
)
CREATOR_SELECTORS = (
    "[data-testid='product-creator'] a",
    ".product-creator a",
    ".headings__subtitles a",
)

GENERIC_GENRES = {"music"}

_BULLET_RE = re.compile(r"\s*[•·∙]\s*")
_DASH_COLON_RE = re.compile(r"\s+[-‐–—]\s+|\s*[:：]\s+")
_BY_RE = re.compile(r"^(?P<title>.+?)\s+by\s+(?P<artist>.+)$", re.IGNORECASE)
_STORE_SUFFIX_RE = re.compile(r"\s+on\s+apple\s+music\s*$", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
_ARTWORK_SIZE_RE = re.compile(r"/(\d+)x(\d+)([a-z]*)(-\d+)?\.(jpg|jpeg|png|webp)$", re.IGNORECASE)


def _require_parser() -> None:
    if BeautifulSoup is None:
        raise SetupError(
            "beautifulsoup4 is required to parse storefront pages (pip install beautifulsoup4)"
        )


def parse_document(document: Any):
    """Accept raw HTML or an already parsed document"""
    _require_parser()
    if document is None:
        return BeautifulSoup("", "html.parser")
    if isinstance(document, bytes):
        document = document.decode("utf-8", errors="replace")
    if isinstance(document, str):
        return BeautifulSoup(document, "html.parser")
    return document


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = _WS_RE.sub(" ", text).strip()
    return text or None


def _first(node, selectors):
    for selector in selectors:
        found = node.select_one(selector)
        if found is not None:
            return found
    return None


def split_compound(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a subtitle block into (artist, album).

    Preference: bullet, newline, dash/colon, else the whole block is the
    album with no artist.
    """
    if not text or not text.strip():
        return None, None

    if _BULLET_RE.search(text):
        parts = [_clean(p) for p in _BULLET_RE.split(text)]
        parts = [p for p in parts if p]
        if len(parts) >= 2:
            return parts[0], parts[1]
        if parts:
            return None, parts[0]

    lines = [_clean(line) for line in text.splitlines()]
    lines = [line for line in lines if line]
    if len(lines) >= 2:
        return lines[0], lines[1]

    flat = _clean(text)
    parts = _DASH_COLON_RE.split(flat, maxsplit=1)
    if len(parts) == 2 and parts[0].strip() and parts[1].strip():
        return _clean(parts[0]), _clean(parts[1])

    return None, flat


def split_by_phrase(title: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'X by Y' -> (X, Y); (title, None) when the phrase is absent"""
    if not title:
        return title, None
    match = _BY_RE.match(title)
    if not match:
        return title, None
    return _clean(match.group("title")), _clean(match.group("artist"))


def resize_artwork(url: Optional[str], size: int) -> Optional[str]:
    """
    Rewrite a storefront artwork URL to the requested square size.

    Handles the {w}x{h} template form and concrete NNNxNNN sizes.
    """
    if not url or not size or size <= 0:
        return url
    if "{w}" in url or "{h}" in url:
        return (
            url.replace("{w}", str(size))
            .replace("{h}", str(size))
            .replace("{c}", "bb")
            .replace("{f}", "jpg")
        )
    return _ARTWORK_SIZE_RE.sub(
        lambda m: f"/{size}x{size}{m.group(3) or 'bb'}.{m.group(5)}", url
    )


class CandidateExtractor:
    """
    Turns storefront HTML into Candidate lists.

    Example:
        extractor = CandidateExtractor("https://music.apple.com")
        candidates = extractor.extract(html, max_candidates=10)
    """

    def __init__(self, base_url: str = ""):
        self.base_url = base_url

    def extract(self, document: Any, max_candidates: int = 0) -> List[Candidate]:
        """
        Extract search-result candidates.

        Args:
            document: HTML string or parsed document
            max_candidates: Stop after this many (0 or negative = unlimited)

        Returns:
            Candidates in page order; empty when the result list is absent
        """
        soup = parse_document(document)

        nodes = []
        for selector in RESULT_SELECTORS:
            nodes = soup.select(selector)
            if nodes:
                break

        candidates: List[Candidate] = []
        for node in nodes:
            if max_candidates > 0 and len(candidates) >= max_candidates:
                break
            candidate = self._candidate_from_node(node, len(candidates))
            if candidate is not None:
                candidates.append(candidate)

        return candidates

    def extract_from_page(self, document: Any, preferred_size: int = 0,
                          match_track_hint: Optional[str] = None) -> List[Candidate]:
        """
        Extract a single candidate from an item page.

        Args:
            document: HTML string or parsed document
            preferred_size: Square artwork size to request (0 = as found)
            match_track_hint: Track title that must appear in the page's
                track list, when the page has one

        Returns:
            Zero or one candidate
        """
        soup = parse_document(document)

        image_url = self._meta(soup, "og:image")
        if not image_url:
            img = soup.select_one("picture img")
            if img is not None:
                image_url = self._image_url(img.parent or img)
        if not image_url:
            return []

        title = _clean(self._meta(soup, "og:title"))
        if not title:
            heading = soup.find("h1")
            title = _clean(heading.get_text(" ")) if heading else None
        if title:
            title = _STORE_SUFFIX_RE.sub("", title)

        artist = None
        creator = _first(soup, CREATOR_SELECTORS)
        if creator is not None:
            artist = _clean(creator.get_text(" "))
        title, by_artist = split_by_phrase(title)
        artist = artist or by_artist

        if match_track_hint:
            rows = self._track_names(soup)
            if rows:
                matched = self._match_track(rows, match_track_hint)
                if matched is None:
                    return []

        album = title if self._meta(soup, "og:type") == "music.album" else None
        link = self._canonical_link(soup)

        return [Candidate(
            index=0,
            image_url=resize_artwork(self._absolute(image_url), preferred_size) or "",
            title=title,
            artist=artist,
            album=album,
            link=link
        )]

    def extract_genres(self, document: Any) -> List[str]:
        """
        Genres of an item page, from JSON-LD or music:genre meta tags.

        Returns:
            Unique genre names in page order, without the generic "Music"
        """
        soup = parse_document(document)
        found: List[str] = []

        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            try:
                data = json.loads(script.string or script.get_text() or "")
            except ValueError:
                continue
            for block in data if isinstance(data, list) else [data]:
                if not isinstance(block, dict):
                    continue
                value = block.get("genre") or block.get("genres") or []
                if isinstance(value, str):
                    value = [value]
                found.extend(v for v in value if isinstance(v, str))

        if not found:
            for meta in soup.find_all("meta", attrs={"property": "music:genre"}):
                if meta.get("content"):
                    found.append(meta["content"])

        genres: List[str] = []
        seen = set()
        for genre in found:
            genre = _clean(html.unescape(genre))
            key = normalize(genre)
            if not key or key in GENERIC_GENRES or key in seen:
                continue
            seen.add(key)
            genres.append(genre)
        return genres

    # ==================== Helpers ====================

    def _candidate_from_node(self, node, index: int) -> Optional[Candidate]:
        title_link = _first(node, TITLE_SELECTORS)
        title = None
        link = None
        if title_link is not None:
            title = _clean(title_link.get("title")) or _clean(title_link.get_text(" "))
            link = self._absolute(title_link.get("href"))

        artist, album = None, None
        subtitle = _first(node, SUBTITLE_SELECTORS)
        if subtitle is not None:
            artist, album = split_compound(subtitle.get_text("\n"))

        if not artist:
            title, by_artist = split_by_phrase(title)
            artist = by_artist

        image_url = self._image_url(node)
        if not (title or artist or album):
            return None

        return Candidate(
            index=index,
            image_url=image_url or "",
            title=title,
            artist=artist,
            album=album,
            link=link
        )

    def _image_url(self, node) -> Optional[str]:
        """Lazy-load attribute first, then srcset, then src"""
        img = node.find("img")
        if img is not None:
            for attr in LAZY_IMAGE_ATTRS:
                if img.get(attr):
                    return self._absolute(img[attr])

        source = node.find("source", srcset=True)
        if source is not None:
            first = source["srcset"].split(",")[0].strip().split(" ")[0]
            if first:
                return self._absolute(first)

        if img is not None and img.get("src") and not img["src"].startswith("data:"):
            return self._absolute(img["src"])
        return None

    def _track_names(self, soup) -> List[str]:
        names = []
        for selector in TRACK_ROW_SELECTORS:
            rows = soup.select(selector)
            if not rows:
                continue
            for row in rows:
                name = _first(row, TRACK_NAME_SELECTORS)
                text = _clean((name or row).get_text(" "))
                if text:
                    names.append(text)
            break
        return names

    @staticmethod
    def _match_track(names: List[str], hint: str) -> Optional[str]:
        wanted = normalize(hint)
        if not wanted:
            return None
        for name in names:
            have = normalize(name)
            if have == wanted:
                return name
        for name in names:
            have = normalize(name)
            if have and (wanted in have or have in wanted):
                return name
        return None

    @staticmethod
    def _meta(soup, prop: str) -> Optional[str]:
        meta = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
        if meta is not None and meta.get("content"):
            return meta["content"].strip()
        return None

    def _canonical_link(self, soup) -> Optional[str]:
        link = soup.find("link", attrs={"rel": "canonical"})
        if link is not None and link.get("href"):
            return self._absolute(link["href"])
        return self._absolute(self._meta(soup, "og:url"))

    def _absolute(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        url = url.strip()
        if self.base_url and not url.startswith(("http://", "https://")):
            return urljoin(self.base_url, url)
        return url
