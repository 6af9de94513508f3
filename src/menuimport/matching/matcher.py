"""Moteur de matching : nom de fichier → entrée du catalogue."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from menuimport.config import Config
from menuimport.logging_config import get_logger
from menuimport.matching.schema import CatalogEntry, MatchCandidate, MatchResult, MatchStatus
from menuimport.matching.scorers import similarity
from menuimport.normalize import extract_name_from_filename, normalize_name

logger = get_logger("matcher")


@dataclass(frozen=True)
class NormalizedEntry:
    """Entrée du catalogue avec son slug pré-calculé."""

    entry: CatalogEntry
    slug: str


@dataclass(frozen=True)
class CollisionIndex:
    """
    Index slug → codes, construit une fois par lot.

    Un slug partagé par au moins deux codes est une collision : aucun
    match automatique n'est possible sur ce nom.
    """

    codes_by_slug: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, entries: Iterable[NormalizedEntry]) -> CollisionIndex:
        codes: dict[str, list[str]] = {}
        for ne in entries:
            codes.setdefault(ne.slug, []).append(ne.entry.code)
        index = cls({slug: tuple(c) for slug, c in codes.items()})
        for slug in index.collision_slugs:
            logger.info("Slug collision: %r -> [%s]", slug, ", ".join(index.codes_by_slug[slug]))
        return index

    @property
    def collision_slugs(self) -> frozenset[str]:
        return frozenset(slug for slug, codes in self.codes_by_slug.items() if len(codes) > 1)

    def is_collision(self, slug: str) -> bool:
        return len(self.codes_by_slug.get(slug, ())) > 1


def prepare_candidates(entries: Iterable[CatalogEntry]) -> list[NormalizedEntry]:
    """Ignore les entrées sans nom et pré-calcule les slugs (ordre conservé)."""
    return [
        NormalizedEntry(entry=e, slug=normalize_name(e.display_name))
        for e in entries
        if e.display_name and e.display_name.strip()
    ]


def find_top_matches(
    normalized_name: str,
    candidates: Sequence[NormalizedEntry],
    limit: int = 3,
) -> list[MatchCandidate]:
    """
    Retourne les `limit` meilleurs candidats par confiance décroissante.

    Tri stable : à égalité, l'ordre du catalogue est conservé.
    """
    matches = [
        MatchCandidate(
            code=ne.entry.code,
            display_name=ne.entry.display_name,
            confidence=similarity(normalized_name, ne.slug),
            category_id=ne.entry.category_id,
        )
        for ne in candidates
    ]
    matches.sort(key=lambda c: c.confidence, reverse=True)
    return matches[:limit]


class CatalogMatcher:
    """Matcher entre noms de fichiers et catalogue (un lot = une instance)."""

    def __init__(self, entries: Iterable[CatalogEntry], config: Config | None = None) -> None:
        config = config or Config()
        self.auto_accept_score = config.auto_accept_score
        self.review_score = config.review_score
        self.suggestion_floor = config.suggestion_floor
        self.top_k = config.top_k
        self.candidates = prepare_candidates(entries)
        self.collisions = CollisionIndex.build(self.candidates)
        # Slug → première entrée du catalogue portant ce slug
        self._exact: dict[str, NormalizedEntry] = {}
        for ne in self.candidates:
            self._exact.setdefault(ne.slug, ne)

    def run(self, filenames: Iterable[str]) -> list[MatchResult]:
        """Exécute le matching pour tous les fichiers. Ne lève jamais."""
        return [self.match_filename(f) for f in filenames]

    def match_filename(self, filename: str) -> MatchResult:
        """Calcule le MatchResult d'un fichier."""
        extracted = extract_name_from_filename(filename)
        normalized = normalize_name(extracted)

        top = tuple(
            c
            for c in find_top_matches(normalized, self.candidates, self.top_k)
            if c.confidence >= self.suggestion_floor
        )

        exact = self._exact.get(normalized)
        if exact is not None:
            collision = self.collisions.is_collision(exact.slug)
            return MatchResult(
                filename=filename,
                extracted_name=extracted,
                normalized_name=normalized,
                matched_code=exact.entry.code,
                matched_name=exact.entry.display_name,
                matched_category_id=exact.entry.category_id,
                confidence=100,
                status=MatchStatus.NEED_REVIEW if collision else MatchStatus.AUTO,
                slug_collision=collision,
                top_candidates=top,
            )

        best_list = find_top_matches(normalized, self.candidates, 1)
        best = best_list[0] if best_list else None

        if best is None or best.confidence < self.review_score:
            return MatchResult(
                filename=filename,
                extracted_name=extracted,
                normalized_name=normalized,
                matched_code=best.code if best else None,
                matched_name=best.display_name if best else None,
                matched_category_id=best.category_id if best else None,
                confidence=best.confidence if best else 0,
                status=MatchStatus.NO_MATCH,
                top_candidates=top,
            )

        if best.confidence >= self.auto_accept_score:
            collision = self.collisions.is_collision(normalize_name(best.display_name))
            status = MatchStatus.NEED_REVIEW if collision else MatchStatus.AUTO
        else:
            collision = False
            status = MatchStatus.NEED_REVIEW

        return MatchResult(
            filename=filename,
            extracted_name=extracted,
            normalized_name=normalized,
            matched_code=best.code,
            matched_name=best.display_name,
            matched_category_id=best.category_id,
            confidence=best.confidence,
            status=status,
            slug_collision=collision,
            top_candidates=top,
        )

    def search_candidates(self, term: str, limit: int = 30) -> list[CatalogEntry]:
        """
        Recherche manuelle : filtre sur code ou nom (insensible à la casse).

        Terme vide → les `limit` premières entrées.
        """
        entries = [ne.entry for ne in self.candidates]
        needle = (term or "").strip().lower()
        if not needle:
            return entries[:limit]
        return [
            e for e in entries if needle in e.code.lower() or needle in e.display_name.lower()
        ][:limit]
