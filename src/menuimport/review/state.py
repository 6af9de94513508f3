"""
Machine à états de revue d'un import d'images.

Chaque fichier importé est une ligne (ImportRow) immuable : une transition
renvoie une nouvelle ligne et la liste des effets que l'appelant doit
exécuter (staging, libération d'un upload, pipeline d'images).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType

from menuimport.config import MenuImportError
from menuimport.imaging.schema import CropMode, NormalizedCropBox, TrimResult
from menuimport.matching.schema import MatchResult


class TransitionError(MenuImportError, ValueError):
    """Action utilisateur impossible dans l'état courant de la ligne."""


class RowStatus(str, Enum):
    AUTO = "AUTO"
    NEED_REVIEW = "NEED_REVIEW"
    NO_MATCH = "NO_MATCH"
    MANUAL = "MANUAL"
    READY = "READY"
    DISCARDED = "DISCARDED"
    APPLIED = "APPLIED"
    FAILED = "FAILED"


ACTIVE_STATUSES = frozenset(
    {RowStatus.AUTO, RowStatus.NEED_REVIEW, RowStatus.NO_MATCH, RowStatus.MANUAL, RowStatus.READY}
)
RESETTABLE_STATUSES = frozenset({RowStatus.DISCARDED, RowStatus.FAILED})
# Hors conflits et hors « non résolus »
SETTLED_STATUSES = frozenset({RowStatus.DISCARDED, RowStatus.APPLIED})


class Effect(str, Enum):
    """Effets de bord demandés par une transition."""

    STAGE_UPLOAD = "stage_upload"
    RELEASE_UPLOAD = "release_upload"
    RUN_PIPELINE = "run_pipeline"


@dataclass(frozen=True)
class DerivativeSummary:
    """Résumé d'un dérivé produit (sans les octets)."""

    tag: str
    width: int
    height: int
    size_bytes: int
    mode_used: CropMode
    trim: TrimResult
    manual_crop_used: NormalizedCropBox | None = None


@dataclass(frozen=True)
class ApplyResult:
    """Issue de l'application d'une ligne ; `reason` traverse les frontières telle quelle."""

    filename: str
    code: str
    status: str  # updated, skipped, failed
    reason: str | None = None
    derivatives: Mapping[str, DerivativeSummary] = field(default_factory=dict)
    redundant: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "updated"


@dataclass(frozen=True)
class ImportRow:
    """État de revue d'un fichier importé."""

    filename: str
    match: MatchResult
    original_status: RowStatus
    current_status: RowStatus
    selected_code: str | None = None
    selected_name: str | None = None
    staged: bool = False
    manual_crops: Mapping[str, NormalizedCropBox] = field(default_factory=lambda: MappingProxyType({}))
    apply_result: ApplyResult | None = None

    @classmethod
    def from_match(cls, match: MatchResult) -> ImportRow:
        status = RowStatus(match.status.value)
        # Sans match, la meilleure proposition reste une suggestion
        has_selection = status != RowStatus.NO_MATCH
        return cls(
            filename=match.filename,
            match=match,
            original_status=status,
            current_status=status,
            selected_code=match.matched_code if has_selection else None,
            selected_name=match.matched_name if has_selection else None,
        )

    @property
    def is_active(self) -> bool:
        return self.current_status in ACTIVE_STATUSES

    def crop_for(self, tag: str) -> NormalizedCropBox | None:
        return self.manual_crops.get(tag)

    def crop_mode_for(self, tag: str) -> CropMode:
        return CropMode.MANUAL if tag in self.manual_crops else CropMode.AUTO


# Événements ---------------------------------------------------------------


@dataclass(frozen=True)
class SelectEntry:
    code: str
    name: str | None = None


@dataclass(frozen=True)
class ConfirmSelection:
    """« Utiliser cette image » (résout un conflit en faveur de cette ligne)."""


@dataclass(frozen=True)
class Discard:
    """`resolving_conflict` : écartée par la confirmation d'une autre ligne (FAILED accepté)."""

    resolving_conflict: bool = False


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Stage:
    """Les octets de l'image sont disponibles dans la session."""


@dataclass(frozen=True)
class SetManualCrop:
    tag: str
    crop: NormalizedCropBox | None


@dataclass(frozen=True)
class StartApply:
    pass


@dataclass(frozen=True)
class ApplySucceeded:
    result: ApplyResult


@dataclass(frozen=True)
class ApplyFailed:
    result: ApplyResult


@dataclass(frozen=True)
class Regenerate:
    pass


Event = (
    SelectEntry
    | ConfirmSelection
    | Discard
    | Reset
    | Stage
    | SetManualCrop
    | StartApply
    | ApplySucceeded
    | ApplyFailed
    | Regenerate
)


@dataclass(frozen=True)
class Transition:
    row: ImportRow
    effects: tuple[Effect, ...] = ()


def _require(row: ImportRow, allowed: frozenset[RowStatus], action: str) -> None:
    if row.current_status not in allowed:
        raise TransitionError(f"{action} impossible pour {row.filename!r} (statut {row.current_status.value})")


def _require_applicable(row: ImportRow) -> None:
    _require(row, ACTIVE_STATUSES, "apply")
    if not row.selected_code:
        raise TransitionError(f"apply impossible pour {row.filename!r}: aucune entrée sélectionnée")
    if not row.staged:
        raise TransitionError(f"apply impossible pour {row.filename!r}: image non disponible")


def transition(row: ImportRow, event: Event) -> Transition:
    """
    Applique un événement à une ligne.

    Raises:
        TransitionError: Si l'événement n'est pas permis dans l'état courant.
    """
    if isinstance(event, SelectEntry):
        _require(row, ACTIVE_STATUSES, "select")
        if not event.code:
            raise TransitionError(f"select impossible pour {row.filename!r}: code vide")
        effects = (Effect.STAGE_UPLOAD,) if event.code != row.selected_code or not row.staged else ()
        return Transition(
            replace(
                row,
                selected_code=event.code,
                selected_name=event.name,
                current_status=RowStatus.MANUAL,
                apply_result=None,
            ),
            effects,
        )

    if isinstance(event, ConfirmSelection):
        _require(row, ACTIVE_STATUSES, "confirm")
        if not row.selected_code:
            raise TransitionError(f"confirm impossible pour {row.filename!r}: aucune entrée sélectionnée")
        return Transition(replace(row, current_status=RowStatus.READY))

    if isinstance(event, Discard):
        allowed = ACTIVE_STATUSES | {RowStatus.FAILED} if event.resolving_conflict else ACTIVE_STATUSES
        _require(row, allowed, "discard")
        effects = (Effect.RELEASE_UPLOAD,) if row.staged else ()
        return Transition(replace(row, current_status=RowStatus.DISCARDED, staged=False), effects)

    if isinstance(event, Reset):
        _require(row, RESETTABLE_STATUSES, "reset")
        keep_selection = row.original_status != RowStatus.NO_MATCH
        return Transition(
            replace(
                row,
                current_status=row.original_status,
                selected_code=row.selected_code if keep_selection else None,
                selected_name=row.selected_name if keep_selection else None,
                apply_result=None,
            )
        )

    if isinstance(event, Stage):
        _require(row, ACTIVE_STATUSES | {RowStatus.APPLIED, RowStatus.FAILED}, "stage")
        return Transition(replace(row, staged=True))

    if isinstance(event, SetManualCrop):
        _require(row, ACTIVE_STATUSES | {RowStatus.APPLIED}, "crop")
        crops = dict(row.manual_crops)
        if event.crop is None:
            crops.pop(event.tag, None)
        else:
            crops[event.tag] = event.crop
        return Transition(replace(row, manual_crops=MappingProxyType(crops)))

    if isinstance(event, StartApply):
        _require_applicable(row)
        return Transition(row, (Effect.RUN_PIPELINE,))

    if isinstance(event, ApplySucceeded):
        _require_applicable(row)
        return Transition(replace(row, current_status=RowStatus.APPLIED, apply_result=event.result))

    if isinstance(event, ApplyFailed):
        _require_applicable(row)
        return Transition(replace(row, current_status=RowStatus.FAILED, apply_result=event.result))

    if isinstance(event, Regenerate):
        _require(row, frozenset({RowStatus.APPLIED}), "regenerate")
        return Transition(replace(row, current_status=RowStatus.MANUAL), (Effect.RUN_PIPELINE,))

    raise TransitionError(f"Événement inconnu: {event!r}")


# Requêtes dérivées --------------------------------------------------------


def conflict_groups(rows: list[ImportRow]) -> dict[str, list[str]]:
    """
    Groupes de conflit : code → fichiers (≥ 2) qui le visent encore.

    Les lignes écartées ou déjà appliquées ne comptent pas.
    """
    groups: dict[str, list[str]] = {}
    for row in rows:
        if row.current_status in SETTLED_STATUSES or not row.selected_code:
            continue
        groups.setdefault(row.selected_code, []).append(row.filename)
    return {code: files for code, files in groups.items() if len(files) > 1}


def conflict_group_for(rows: list[ImportRow], filename: str) -> list[str] | None:
    for files in conflict_groups(rows).values():
        if filename in files:
            return files
    return None


def is_unresolved(row: ImportRow, conflicted: set[str]) -> bool:
    if row.current_status in SETTLED_STATUSES:
        return False
    return (
        row.current_status == RowStatus.NEED_REVIEW
        or (row.current_status == RowStatus.NO_MATCH and not row.selected_code)
        or row.filename in conflicted
    )


def unresolved_rows(rows: list[ImportRow]) -> list[ImportRow]:
    """Lignes à traiter avant un « tout appliquer » sans avertissement."""
    conflicted = {f for files in conflict_groups(rows).values() for f in files}
    return [r for r in rows if is_unresolved(r, conflicted)]


def ready_rows(rows: list[ImportRow]) -> list[ImportRow]:
    """Lignes applicables : entrée sélectionnée, image disponible, statut actif."""
    return [r for r in rows if r.selected_code and r.staged and r.is_active]


def sorted_for_review(rows: list[ImportRow]) -> list[ImportRow]:
    """Conflits d'abord (regroupés par code), puis par nom de fichier."""
    conflicted = {f for files in conflict_groups(rows).values() for f in files}

    def _key(row: ImportRow) -> tuple[int, str, str]:
        if row.filename in conflicted:
            return (0, row.selected_code or "", row.filename)
        return (1, "", row.filename)

    return sorted(rows, key=_key)


def next_unresolved(rows: list[ImportRow], index: int, direction: int = 1) -> int | None:
    """Index de la prochaine ligne non résolue (circulaire), None s'il n'y en a pas."""
    n = len(rows)
    if n == 0:
        return None
    conflicted = {f for files in conflict_groups(rows).values() for f in files}
    step = 1 if direction >= 0 else -1
    for i in range(1, n + 1):
        idx = (index + i * step) % n
        if is_unresolved(rows[idx], conflicted):
            return idx
    return None
