"""Configuration et chargement du fichier config JSON."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

VALID_OUTPUT_FORMATS = frozenset({"WEBP", "JPEG", "PNG"})
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})


class MenuImportError(Exception):
    """Exception de base pour menuimport."""


class ConfigError(MenuImportError, ValueError):
    """Erreur de validation de la configuration."""


class ConfigFileError(MenuImportError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


@dataclass(frozen=True)
class DerivativeSpec:
    """Format cible d'une image dérivée (taille fixe, ratio fixe)."""

    tag: str
    width: int
    height: int
    aspect: float

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DerivativeSpec:
        tag = str(d.get("tag", "")).strip()
        try:
            width = int(d.get("width", 0))
            height = int(d.get("height", 0))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"dimensions invalides pour le dérivé {tag!r}: {e}") from e
        if not tag:
            raise ConfigError("tag requis pour chaque dérivé")
        if width <= 0 or height <= 0:
            raise ConfigError(f"width/height doivent être > 0 (dérivé {tag!r}, got {width}x{height})")
        aspect = float(d.get("aspect", width / height))
        if aspect <= 0:
            raise ConfigError(f"aspect doit être > 0 (dérivé {tag!r}, got {aspect})")
        if not math.isclose(aspect, width / height, rel_tol=0.01):
            raise ConfigError(
                f"aspect incohérent pour le dérivé {tag!r}: {aspect} vs {width}/{height}"
            )
        return cls(tag=tag, width=width, height=height, aspect=aspect)


SQUARE = DerivativeSpec("1x1", 1024, 1024, 1.0)
WIDE = DerivativeSpec("4x3", 1440, 1080, 4 / 3)
DEFAULT_DERIVATIVES = (SQUARE, WIDE)


@dataclass
class Config:
    """Configuration principale de l'import d'images."""

    # Catalogue (tableur exporté du back-office)
    catalog_file: str = ""
    catalog_sheet: str | None = None  # None = première feuille
    code_column: str = "menu_code"
    name_column: str = "name_en"
    category_column: str = "category_code"

    # Matching
    auto_accept_score: float = 90.0
    review_score: float = 70.0
    suggestion_floor: float = 50.0
    top_k: int = 3

    # Dérivés
    derivatives: list[DerivativeSpec] = field(default_factory=lambda: list(DEFAULT_DERIVATIVES))
    output_format: str = "WEBP"
    quality: int = 80
    original_quality: int = 90

    max_workers: int = 4
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Config:
        auto_accept_score = float(d.get("auto_accept_score", 90.0))
        review_score = float(d.get("review_score", 70.0))
        suggestion_floor = float(d.get("suggestion_floor", 50.0))
        top_k = int(d.get("top_k", 3))
        output_format = str(d.get("output_format", "WEBP")).upper()
        quality = int(d.get("quality", 80))
        original_quality = int(d.get("original_quality", 90))
        max_workers = int(d.get("max_workers", 4))
        log_level = str(d.get("log_level", "INFO")).upper()

        for name, score in (
            ("auto_accept_score", auto_accept_score),
            ("review_score", review_score),
            ("suggestion_floor", suggestion_floor),
        ):
            if not 0 <= score <= 100:
                raise ConfigError(f"{name} doit être entre 0 et 100 (got {score})")
        if review_score > auto_accept_score:
            raise ConfigError(
                f"review_score ({review_score}) doit être <= auto_accept_score ({auto_accept_score})"
            )
        if top_k < 1:
            raise ConfigError(f"top_k doit être >= 1 (got {top_k})")
        if output_format not in VALID_OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format invalide: {output_format!r}. Valides: {sorted(VALID_OUTPUT_FORMATS)}"
            )
        for name, q in (("quality", quality), ("original_quality", original_quality)):
            if not 1 <= q <= 100:
                raise ConfigError(f"{name} doit être entre 1 et 100 (got {q})")
        if max_workers < 1:
            raise ConfigError(f"max_workers doit être >= 1 (got {max_workers})")
        if log_level not in VALID_LOG_LEVELS:
            raise ConfigError(f"log_level invalide: {log_level!r}. Valides: {sorted(VALID_LOG_LEVELS)}")

        raw_derivatives = d.get("derivatives")
        if raw_derivatives is None:
            derivatives = list(DEFAULT_DERIVATIVES)
        else:
            derivatives = [DerivativeSpec.from_dict(x) for x in raw_derivatives]
            if not derivatives:
                raise ConfigError("derivatives ne peut pas être vide")
        tags = [s.tag for s in derivatives]
        if len(set(tags)) != len(tags):
            raise ConfigError(f"tags de dérivés dupliqués: {tags}")

        return cls(
            catalog_file=d.get("catalog_file", ""),
            catalog_sheet=d.get("catalog_sheet"),
            code_column=d.get("code_column", "menu_code"),
            name_column=d.get("name_column", "name_en"),
            category_column=d.get("category_column", "category_code"),
            auto_accept_score=auto_accept_score,
            review_score=review_score,
            suggestion_floor=suggestion_floor,
            top_k=top_k,
            derivatives=derivatives,
            output_format=output_format,
            quality=quality,
            original_quality=original_quality,
            max_workers=max_workers,
            log_level=log_level,
        )

    @classmethod
    def load(cls, path: str | Path) -> Config:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        config = cls.from_dict(d)
        config.resolve_paths(path.parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """Résout catalog_file par rapport au répertoire de base (ex. dossier du fichier config)."""
        if self.catalog_file and not Path(self.catalog_file).is_absolute():
            self.catalog_file = str((Path(base_dir) / self.catalog_file).resolve())

    def derivative(self, tag: str) -> DerivativeSpec:
        """Retourne le dérivé portant ce tag."""
        for spec in self.derivatives:
            if spec.tag == tag:
                return spec
        raise ConfigError(f"dérivé inconnu: {tag!r}. Valides: {[s.tag for s in self.derivatives]}")
