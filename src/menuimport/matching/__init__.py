"""Module de matching fichier → catalogue."""

from menuimport.matching.matcher import CatalogMatcher, CollisionIndex, find_top_matches
from menuimport.matching.schema import CatalogEntry, MatchCandidate, MatchResult, MatchStatus
from menuimport.matching.scorers import similarity

__all__ = [
    "CatalogEntry",
    "CatalogMatcher",
    "CollisionIndex",
    "MatchCandidate",
    "MatchResult",
    "MatchStatus",
    "find_top_matches",
    "similarity",
]
