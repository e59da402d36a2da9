# Data Source Adapters
# Storefront search scraping and candidate extraction

from .base import DataSource, SearchOutcome, OutcomeKind
from .extractor import CandidateExtractor, resize_artwork, split_compound
from .storefront import StorefrontSource

__all__ = [
    'DataSource',
    'SearchOutcome',
    'OutcomeKind',
    'CandidateExtractor',
    'resize_artwork',
    'split_compound',
    'StorefrontSource'        # Apple Music web storefront
]
