"""
Session d'import : lignes de revue, images en attente et application.

Un seul verrou protège toutes les lectures/écritures de lignes ; le
pipeline d'images tourne hors verrou et son issue est validée sous verrou.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace

from menuimport.config import Config, MenuImportError
from menuimport.imaging.schema import NormalizedCropBox
from menuimport.logging_config import get_logger
from menuimport.matching.schema import CatalogEntry, MatchResult
from menuimport.review import state
from menuimport.review.apply import Store, apply_row
from menuimport.review.state import (
    ApplyFailed,
    ApplyResult,
    ApplySucceeded,
    ConfirmSelection,
    Discard,
    Effect,
    Event,
    ImportRow,
    Regenerate,
    Reset,
    SelectEntry,
    SetManualCrop,
    Stage,
    StartApply,
    TransitionError,
)

logger = get_logger("session")


class DuplicateFileError(MenuImportError, ValueError):
    """Deux fichiers importés portent le même nom."""


class BulkApplyBlocked(MenuImportError):
    """« Tout appliquer » refusé : conflits, ou lignes non résolues non acquittées."""

    def __init__(self, conflicts: int, unresolved: int) -> None:
        self.conflicts = conflicts
        self.unresolved = unresolved
        if conflicts:
            msg = f"{conflicts} conflit(s) à résoudre avant d'appliquer"
        else:
            msg = f"{unresolved} ligne(s) non résolue(s) ; confirmer pour appliquer quand même"
        super().__init__(msg)


class ImportSession:
    """Une session par import ; les lignes sont indexées par nom de fichier (ordre conservé)."""

    def __init__(
        self, rows: Iterable[ImportRow], catalog: Iterable[CatalogEntry], config: Config | None = None
    ) -> None:
        self.config = config or Config()
        self.catalog_codes = frozenset(e.code for e in catalog)
        self._rows: dict[str, ImportRow] = {}
        for row in rows:
            if row.filename in self._rows:
                raise DuplicateFileError(f"Fichier en double dans la session: {row.filename!r}")
            self._rows[row.filename] = row
        self._images: dict[str, bytes] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_matches(
        cls,
        results: Iterable[MatchResult],
        catalog: Iterable[CatalogEntry],
        config: Config | None = None,
    ) -> ImportSession:
        return cls((ImportRow.from_match(m) for m in results), catalog, config)

    # Lecture ----------------------------------------------------------------

    def row(self, filename: str) -> ImportRow:
        with self._lock:
            return self._get(filename)

    def rows(self) -> list[ImportRow]:
        with self._lock:
            return list(self._rows.values())

    def conflict_groups(self) -> dict[str, list[str]]:
        with self._lock:
            return state.conflict_groups(list(self._rows.values()))

    def unresolved_count(self) -> int:
        with self._lock:
            return len(state.unresolved_rows(list(self._rows.values())))

    def ready_count(self) -> int:
        with self._lock:
            return len(state.ready_rows(list(self._rows.values())))

    def resolved_ready(self) -> list[str]:
        """Fichiers applicables qui ne demandent aucune revue."""
        with self._lock:
            rows = list(self._rows.values())
            unresolved = {r.filename for r in state.unresolved_rows(rows)}
            return [r.filename for r in state.ready_rows(rows) if r.filename not in unresolved]

    # Actions ----------------------------------------------------------------

    def stage(self, filename: str, data: bytes) -> ImportRow:
        """Rend les octets de l'image disponibles pour l'application."""
        with self._lock:
            new_row = self._commit(self._get(filename), Stage())
            self._images[filename] = data
            return new_row

    def select(self, filename: str, code: str, name: str | None = None) -> ImportRow:
        with self._lock:
            return self._commit(self._get(filename), SelectEntry(code, name))

    def discard(self, filename: str) -> ImportRow:
        with self._lock:
            return self._commit(self._get(filename), Discard())

    def reset(self, filename: str) -> ImportRow:
        with self._lock:
            return self._commit(self._get(filename), Reset())

    def set_manual_crop(self, filename: str, tag: str, crop: NormalizedCropBox | None) -> ImportRow:
        self.config.derivative(tag)
        with self._lock:
            return self._commit(self._get(filename), SetManualCrop(tag, crop))

    def confirm(self, filename: str) -> ImportRow:
        """
        « Utiliser cette image » : la ligne passe READY et les autres lignes
        de son groupe de conflit sont écartées.
        """
        with self._lock:
            row = self._get(filename)
            group = state.conflict_group_for(list(self._rows.values()), filename) or []
            others = [self._rows[f] for f in group if f != filename]
            # Tout le groupe est validé avant la moindre écriture
            state.transition(row, ConfirmSelection())
            for other in others:
                state.transition(other, Discard(resolving_conflict=True))

            confirmed = self._commit(row, ConfirmSelection())
            for other in others:
                self._commit(other, Discard(resolving_conflict=True))
                logger.info("Conflict on %s: %s kept, %s discarded", row.selected_code, filename, other.filename)
            return confirmed

    def regenerate(self, filename: str, store: Store | None = None) -> ApplyResult:
        """Relance le pipeline d'une ligne déjà appliquée (recadrages conservés)."""
        with self._lock:
            self._commit(self._get(filename), Regenerate())
        return self.apply(filename, store)

    def apply(self, filename: str, store: Store | None = None) -> ApplyResult:
        """
        Applique une seule ligne (toujours permis, sans contrôle de conflit).

        Raises:
            TransitionError: Si la ligne n'est pas applicable (pas de sélection,
                pas d'image, statut final).
        """
        with self._lock:
            row = self._get(filename)
            state.transition(row, StartApply())
            data = self._images[filename]

        result = apply_row(row, data, self.catalog_codes, self.config, store)

        with self._lock:
            current = self._get(filename)
            if not current.is_active or current.selected_code != row.selected_code:
                logger.info("Apply result for %s is redundant (row now %s)", filename, current.current_status.value)
                return replace(result, redundant=True)
            if result.status == "updated":
                self._commit(current, ApplySucceeded(result))
            elif result.status == "failed":
                self._commit(current, ApplyFailed(result))
            return result

    def apply_rows(self, filenames: Iterable[str], store: Store | None = None) -> list[ApplyResult]:
        """Applique plusieurs lignes en parallèle ; un échec reste confiné à sa ligne."""
        filenames = list(filenames)
        if not filenames:
            return []
        results: dict[str, ApplyResult] = {}
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            futures = {pool.submit(self.apply, f, store): f for f in filenames}
            for future in as_completed(futures):
                filename = futures[future]
                try:
                    results[filename] = future.result()
                except TransitionError as e:
                    row = self.row(filename)
                    results[filename] = ApplyResult(filename, row.selected_code or "", "skipped", str(e))
                except Exception as e:
                    logger.exception("Unexpected error while applying %s", filename)
                    results[filename] = self._record_failure(filename, f"Unexpected error: {e}")

        ordered = [results[f] for f in filenames]
        counts = {s: sum(1 for r in ordered if r.status == s) for s in ("updated", "skipped", "failed")}
        logger.info(
            "Apply done: %d updated, %d skipped, %d failed", counts["updated"], counts["skipped"], counts["failed"]
        )
        return ordered

    def apply_all(self, store: Store | None = None, *, acknowledge_unresolved: bool = False) -> list[ApplyResult]:
        """
        Applique toutes les lignes prêtes.

        Raises:
            BulkApplyBlocked: S'il reste des conflits, ou des lignes non
                résolues sans acquittement.
        """
        with self._lock:
            rows = list(self._rows.values())
            conflicts = state.conflict_groups(rows)
            unresolved = state.unresolved_rows(rows)
            eligible = [r.filename for r in state.ready_rows(rows)]
        if conflicts or (unresolved and not acknowledge_unresolved):
            raise BulkApplyBlocked(len(conflicts), len(unresolved))
        logger.info("Apply all: %d row(s)", len(eligible))
        return self.apply_rows(eligible, store)

    # Interne ----------------------------------------------------------------

    def _get(self, filename: str) -> ImportRow:
        try:
            return self._rows[filename]
        except KeyError:
            raise KeyError(f"Fichier inconnu dans la session: {filename!r}") from None

    def _record_failure(self, filename: str, reason: str) -> ApplyResult:
        """Erreur imprévue hors apply_row : la ligne passe FAILED si elle est encore applicable."""
        with self._lock:
            row = self._get(filename)
            result = ApplyResult(filename, row.selected_code or "", "failed", reason)
            try:
                self._commit(row, ApplyFailed(result))
            except TransitionError:
                return replace(result, redundant=True)
            return result

    def _commit(self, row: ImportRow, event: Event) -> ImportRow:
        """Applique la transition et ses effets (appelé sous verrou)."""
        result = state.transition(row, event)
        new_row = result.row
        for effect in result.effects:
            if effect == Effect.RELEASE_UPLOAD:
                self._images.pop(row.filename, None)
            elif effect == Effect.STAGE_UPLOAD and row.filename in self._images and not new_row.staged:
                new_row = state.transition(new_row, Stage()).row
        self._rows[row.filename] = new_row
        return new_row
