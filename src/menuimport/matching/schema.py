"""Schémas et types pour le matching fichier → catalogue."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchStatus(str, Enum):
    """Niveau de confiance d'un match initial."""

    AUTO = "AUTO"
    NEED_REVIEW = "NEED_REVIEW"
    NO_MATCH = "NO_MATCH"


@dataclass(frozen=True)
class CatalogEntry:
    """Entrée du catalogue (plat) : lue par le matcher, jamais persistée."""

    code: str
    display_name: str
    category_id: str | None = None


@dataclass(frozen=True)
class MatchCandidate:
    """Un candidat de correspondance pour un nom de fichier."""

    code: str
    display_name: str
    confidence: int
    category_id: str | None = None

    def __repr__(self) -> str:
        return f"MatchCandidate(code={self.code!r}, confidence={self.confidence})"


@dataclass(frozen=True)
class MatchResult:
    """Résultat de matching pour un fichier (immuable une fois calculé)."""

    filename: str
    extracted_name: str
    normalized_name: str
    matched_code: str | None
    matched_name: str | None
    confidence: int
    status: MatchStatus
    slug_collision: bool = False
    top_candidates: tuple[MatchCandidate, ...] = ()
    matched_category_id: str | None = None
