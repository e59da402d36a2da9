#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Text normalization for metadata comparison.

Two strings are considered equal for matching purposes when their
normalized forms are equal. Scoring is token-set based, so the
normalized form must tokenize identically regardless of HTML entities,
smart quotes, dashes or accents in the source text.
"""

import html
import re
import unicodedata
from functools import lru_cache
from typing import FrozenSet, Optional

# Dash-like and apostrophe-like characters become separators so that
# "B-52's" stays "b 52 s" instead of collapsing into "b52s".
DASH_CHARS = "-‐‑‒–—―−﹘﹣－"
APOSTROPHE_CHARS = "'’‘‛′`´＇ʼ"

_SEPARATOR_RE = re.compile("[" + re.escape(DASH_CHARS + APOSTROPHE_CHARS) + "]")
_NON_WORD_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


@lru_cache(maxsize=8192)
def _normalize(text: str) -> str:
    # Compose first so decomposed accents are not mistaken for punctuation
    s = unicodedata.normalize("NFC", html.unescape(text))
    s = s.casefold()
    s = _SEPARATOR_RE.sub(" ", s)
    s = _NON_WORD_RE.sub(" ", s)

    # Strip diacritics
    s = unicodedata.normalize("NFD", s)
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Mn")
    s = unicodedata.normalize("NFC", s)

    return _WHITESPACE_RE.sub(" ", s).strip()


def normalize(text: Optional[str]) -> str:
    """
    Canonicalize free text for comparison.

    Args:
        text: Any string, or None

    Returns:
        Lowercase, entity-decoded, accent-free text with punctuation
        replaced by single spaces. Empty string for None or empty input.
    """
    if not text:
        return ""
    return _normalize(str(text))


def tokens(text: Optional[str]) -> FrozenSet[str]:
    """Whitespace-delimited token set of the normalized text"""
    normalized = normalize(text)
    if not normalized:
        return frozenset()
    return frozenset(normalized.split(" "))


def compact(text: Optional[str]) -> str:
    """Normalized text with all spaces removed ("Various Artists" -> "variousartists")"""
    return normalize(text).replace(" ", "")
