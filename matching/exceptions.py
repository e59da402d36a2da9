#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exceptions raised by the matcher.

SetupError and ValidationError stop the current operation.
FetchError and ParseError are downgraded to "no candidates" by the
decision engine; WriteError marks a single file as failed.
"""


class MatcherError(Exception):
    """Base exception for the storefront matcher."""
    pass


class SetupError(MatcherError):
    """A required library or executable is missing."""
    pass


class ValidationError(MatcherError):
    """Invalid input, raised before any remote call."""
    pass


class FetchError(MatcherError):
    """Network failure, timeout or non-2xx response."""
    pass


class ParseError(MatcherError):
    """Fetched document did not have the expected shape."""
    pass


class TagReadError(MatcherError):
    """Audio file could not be opened."""
    pass


class WriteError(MatcherError):
    """Tag write or file replace failed after all retries."""
    pass


class CacheError(MatcherError):
    """Cache file could not be read or written."""
    pass
