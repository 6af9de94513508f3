"""Calcul des scores de similarité entre slugs."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def round_half_up(value: float) -> int:
    """Arrondi au plus proche, .5 vers le haut (valeurs positives)."""
    return int(value + 0.5)


def edit_distance(a: str, b: str) -> int:
    """Distance de Levenshtein (insertion, suppression, substitution : coût 1)."""
    return int(Levenshtein.distance(a, b))


def similarity(a: str, b: str) -> int:
    """
    Score de similarité (0-100) basé sur la distance d'édition.

    100 si a == b, 0 si une seule des chaînes est vide, sinon
    round(100 * (max_len - distance) / max_len). Symétrique.
    """
    if a == b:
        return 100
    if not a or not b:
        return 0
    max_len = max(len(a), len(b))
    distance = edit_distance(a, b)
    return round_half_up(100 * (max_len - distance) / max_len)
