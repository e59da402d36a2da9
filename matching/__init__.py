# Candidate Matching
# Normalization, scoring and ranking of storefront search results

from .models import Query, Candidate, ScoredCandidate, Bonuses, SearchKind
from .normalize import normalize, tokens
from .scorer import SimilarityScorer, ScoringWeights, hybrid_similarity
from .ranker import CandidateRanker, Classification, MatchClass, is_corroborated
from .exceptions import (
    MatcherError, SetupError, ValidationError, FetchError, ParseError,
    TagReadError, WriteError, CacheError
)

__all__ = [
    'Query',
    'Candidate',
    'ScoredCandidate',
    'Bonuses',
    'SearchKind',
    'normalize',
    'tokens',
    'SimilarityScorer',
    'ScoringWeights',
    'hybrid_similarity',
    'CandidateRanker',
    'Classification',
    'MatchClass',
    'is_corroborated',
    'MatcherError',
    'SetupError',
    'ValidationError',
    'FetchError',
    'ParseError',
    'TagReadError',
    'WriteError',
    'CacheError'
]
