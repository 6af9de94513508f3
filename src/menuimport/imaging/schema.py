"""Types du pipeline d'images dérivées."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from menuimport.config import MenuImportError

# Tolérance flottante pour x+w <= 1 et y+h <= 1
_EPS = 1e-6


class CropBoxError(MenuImportError, ValueError):
    """Boîte de recadrage invalide (rejetée avant tout traitement d'image)."""


class DerivativeError(MenuImportError):
    """Erreur de génération d'un dérivé."""


class ImageDecodeError(DerivativeError):
    """Octets d'image illisibles ou format non supporté."""


class CropMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class NormalizedCropBox:
    """Boîte de recadrage en coordonnées normalisées (0-1) relatives à l'image."""

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "w", "h"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, (int, float)) or not math.isfinite(val):
                raise CropBoxError(f"{name} doit être un nombre fini (got {val!r})")
            if not 0 <= val <= 1:
                raise CropBoxError(f"{name} doit être entre 0 et 1 (got {val})")
        if self.w <= 0 or self.h <= 0:
            raise CropBoxError(f"w et h doivent être > 0 (got w={self.w}, h={self.h})")
        if self.x + self.w > 1 + _EPS:
            raise CropBoxError(f"x + w dépasse 1 (got {self.x + self.w})")
        if self.y + self.h > 1 + _EPS:
            raise CropBoxError(f"y + h dépasse 1 (got {self.y + self.h})")

    @classmethod
    def from_dict(cls, d: Any) -> NormalizedCropBox:
        """Construit la boîte depuis un dict JSON {x, y, w, h}."""
        if not isinstance(d, dict):
            raise CropBoxError(f"manual_crop doit être un objet {{x, y, w, h}} (got {type(d).__name__})")
        missing = [k for k in ("x", "y", "w", "h") if k not in d]
        if missing:
            raise CropBoxError(f"manual_crop incomplet, champs manquants: {', '.join(missing)}")
        return cls(x=d["x"], y=d["y"], w=d["w"], h=d["h"])

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(frozen=True)
class CropBox:
    """Boîte de recadrage en pixels."""

    left: int
    top: int
    width: int
    height: int

    def as_pil_box(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class TrimResult:
    """Rognage doux appliqué (pixels par bord) et diagnostics."""

    trim_top: int = 0
    trim_bottom: int = 0
    trim_left: int = 0
    trim_right: int = 0
    did_trim: bool = False
    edge_energies: dict[str, float] | None = None
    edge_saturations: dict[str, float] | None = None
    skip_reason: str | None = None

    @classmethod
    def none(
        cls,
        skip_reason: str | None = None,
        edge_energies: dict[str, float] | None = None,
        edge_saturations: dict[str, float] | None = None,
    ) -> TrimResult:
        return cls(
            edge_energies=edge_energies,
            edge_saturations=edge_saturations,
            skip_reason=skip_reason,
        )


NO_TRIM = TrimResult()


@dataclass(frozen=True)
class PipelineResult:
    """Sortie d'une génération de dérivé."""

    data: bytes
    trim: TrimResult
    mode_used: CropMode
    width: int
    height: int
    source_width: int
    source_height: int
    manual_crop_used: NormalizedCropBox | None = None
    crop_used: CropBox | None = None
