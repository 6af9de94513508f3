"""
Analyse de bords et de régions pour le rognage doux.

Pensé pour la photo culinaire : une soupe, une sauce ou le bord d'une
assiette ont peu de texture sans être du vide. Chaque règle ci-dessous
penche vers « ne pas rogner ».
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

from menuimport.imaging.schema import TrimResult
from menuimport.logging_config import get_logger

logger = get_logger("analysis")

# Taille de l'échantillon pour les statistiques globales
ANALYSIS_SIZE = 256
# Taille de l'échantillon d'un bord
EDGE_SAMPLE_SIZE = 64
# Part de la dimension analysée pour chaque bord
EDGE_BAND_PERCENT = 0.25
# Un bord est vide si énergie < 3 ET saturation < 15
EMPTY_EDGE_ENERGY_THRESHOLD = 3.0
EMPTY_EDGE_SATURATION_THRESHOLD = 15.0
# Rognage max par côté
MAX_TRIM_PERCENT = 0.12
# Rognage max cumulé par axe, au-delà tout est annulé
MAX_AXIS_TRIM_PERCENT = 0.20
# Détection d'assiettes/bols sur les rangées du haut et du bas
CURVE_CONTINUITY_THRESHOLD = 0.7
SMOOTH_STEP_MAX = 20.0
# Plats uniformes (soupes, currys)
LOW_SAT_IMAGE_THRESHOLD = 25.0
LOW_VARIANCE_THRESHOLD = 20.0

EDGES = ("top", "bottom", "left", "right")

# Valeurs renvoyées quand un bord ne peut pas être analysé : jamais vide
_UNKNOWN_EDGE = 100.0


@dataclass(frozen=True)
class ImageStats:
    avg_saturation: float
    brightness_std: float
    has_circular_edges: bool


@dataclass(frozen=True)
class EdgeAnalysis:
    energy: float
    saturation: float
    is_truly_empty: bool
    suggested_trim: float  # fraction de la dimension


def to_rgb_array(img: Image.Image) -> np.ndarray:
    """Pixels RGB en int16 (h, w, 3), pour des différences signées."""
    if img.mode != "RGB":
        img = img.convert("RGB")
    return np.asarray(img, dtype=np.int16)


def saturation_map(pixels: np.ndarray) -> np.ndarray:
    """Saturation approchée par pixel : (max - min) / max * 100, 0 si max == 0."""
    mx = pixels.max(axis=2).astype(np.float64)
    mn = pixels.min(axis=2).astype(np.float64)
    sat = np.zeros_like(mx)
    nonzero = mx > 0
    sat[nonzero] = (mx[nonzero] - mn[nonzero]) / mx[nonzero] * 100.0
    return sat


def brightness_map(pixels: np.ndarray) -> np.ndarray:
    return pixels.sum(axis=2) / 3.0


def gradient_energy(pixels: np.ndarray) -> float:
    """
    Énergie moyenne : différence absolue avec les voisins gauche et haut,
    sommée sur les canaux puis ramenée à un canal.
    """
    h, w = pixels.shape[:2]
    count = h * (w - 1) + (h - 1) * w
    if count <= 0:
        return _UNKNOWN_EDGE
    dx = np.abs(pixels[:, 1:, :] - pixels[:, :-1, :]).sum()
    dy = np.abs(pixels[1:, :, :] - pixels[:-1, :, :]).sum()
    return float(dx + dy) / count / 3.0


def _row_smooth_transitions(row: np.ndarray) -> tuple[int, int]:
    """(transitions douces, positions testées) sur une rangée de luminosité."""
    if row.size < 3:
        return 0, 0
    prev_step = np.abs(row[1:-1] - row[:-2])
    next_step = np.abs(row[1:-1] - row[2:])
    gradual = (prev_step < SMOOTH_STEP_MAX) & (next_step < SMOOTH_STEP_MAX)
    # Un aplat parfait ne trace pas de courbe
    moving = (prev_step > 0) | (next_step > 0)
    return int(np.count_nonzero(gradual & moving)), int(row.size - 2)


def detect_circular_edges(pixels: np.ndarray) -> bool:
    """
    Bords circulaires (assiettes, bols) : les rangées du haut et du bas
    montrent des variations de luminosité progressives sur plus de 70 %
    des positions échantillonnées.
    """
    brightness = brightness_map(pixels)
    smooth_top, checks_top = _row_smooth_transitions(brightness[0])
    smooth_bottom, checks_bottom = _row_smooth_transitions(brightness[-1])
    total = checks_top + checks_bottom
    return total > 0 and (smooth_top + smooth_bottom) / total > CURVE_CONTINUITY_THRESHOLD


def analyze_image(img: Image.Image) -> ImageStats:
    """Statistiques globales (sur un échantillon 256x256) décidant si le rognage est permis."""
    sample = img.convert("RGB").resize((ANALYSIS_SIZE, ANALYSIS_SIZE), Image.Resampling.BILINEAR)
    pixels = to_rgb_array(sample)
    return ImageStats(
        avg_saturation=float(saturation_map(pixels).mean()),
        brightness_std=float(brightness_map(pixels).std()),
        has_circular_edges=detect_circular_edges(pixels),
    )


def edge_band(width: int, height: int, edge: str) -> tuple[int, int, int, int] | None:
    """Bande (left, top, right, bottom) couvrant 25 % du côté donné, None si vide."""
    band_h = int(height * EDGE_BAND_PERCENT)
    band_w = int(width * EDGE_BAND_PERCENT)
    if edge == "top":
        box = (0, 0, width, band_h)
    elif edge == "bottom":
        box = (0, height - band_h, width, height)
    elif edge == "left":
        box = (0, 0, band_w, height)
    elif edge == "right":
        box = (width - band_w, 0, width, height)
    else:
        raise ValueError(f"bord inconnu: {edge!r}")
    if box[2] - box[0] < 1 or box[3] - box[1] < 1:
        return None
    return box


def analyze_edge(img: Image.Image, edge: str) -> EdgeAnalysis:
    """Énergie et saturation moyennes de la bande d'un bord, échantillonnée en 64x64."""
    box = edge_band(img.width, img.height, edge)
    if box is None:
        return EdgeAnalysis(_UNKNOWN_EDGE, _UNKNOWN_EDGE, False, 0.0)

    sample = img.crop(box).resize((EDGE_SAMPLE_SIZE, EDGE_SAMPLE_SIZE), Image.Resampling.BILINEAR)
    pixels = to_rgb_array(sample)
    energy = gradient_energy(pixels)
    saturation = float(saturation_map(pixels).mean())

    is_empty = energy < EMPTY_EDGE_ENERGY_THRESHOLD and saturation < EMPTY_EDGE_SATURATION_THRESHOLD
    suggested = min(EDGE_BAND_PERCENT * 0.5, MAX_TRIM_PERCENT) if is_empty else 0.0
    return EdgeAnalysis(energy, saturation, is_empty, suggested)


def compute_soft_trim(img: Image.Image) -> TrimResult:
    """
    Rognage doux conditionnel d'une région déjà recadrée au bon ratio.

    Ne rogne que si l'image n'a pas de bords circulaires, n'est pas un plat
    uniforme, et si chaque bord rogné est vraiment vide. Si le total par axe
    dépasse 20 %, tout le rognage est annulé.
    """
    width, height = img.size
    stats = analyze_image(img)

    if stats.has_circular_edges:
        logger.debug("Soft trim skipped: circular edges")
        return TrimResult.none("circular_edges")
    if stats.avg_saturation < LOW_SAT_IMAGE_THRESHOLD:
        logger.debug("Soft trim skipped: low saturation (%.1f)", stats.avg_saturation)
        return TrimResult.none("low_saturation")
    if stats.brightness_std < LOW_VARIANCE_THRESHOLD:
        logger.debug("Soft trim skipped: low variance (%.1f)", stats.brightness_std)
        return TrimResult.none("low_variance")

    analyses = {edge: analyze_edge(img, edge) for edge in EDGES}
    energies = {edge: a.energy for edge, a in analyses.items()}
    saturations = {edge: a.saturation for edge, a in analyses.items()}

    def _trim(edge: str, dim: int) -> int:
        a = analyses[edge]
        return int(dim * a.suggested_trim + 0.5) if a.is_truly_empty else 0

    trim_top = _trim("top", height)
    trim_bottom = _trim("bottom", height)
    trim_left = _trim("left", width)
    trim_right = _trim("right", width)

    horizontal = (trim_left + trim_right) / width
    vertical = (trim_top + trim_bottom) / height
    if horizontal > MAX_AXIS_TRIM_PERCENT or vertical > MAX_AXIS_TRIM_PERCENT:
        logger.debug(
            "Soft trim cancelled: horizontal=%.2f vertical=%.2f exceeds %.2f",
            horizontal,
            vertical,
            MAX_AXIS_TRIM_PERCENT,
        )
        return TrimResult.none("exceeds_safety_bounds", energies, saturations)

    return TrimResult(
        trim_top=trim_top,
        trim_bottom=trim_bottom,
        trim_left=trim_left,
        trim_right=trim_right,
        did_trim=any((trim_top, trim_bottom, trim_left, trim_right)),
        edge_energies=energies,
        edge_saturations=saturations,
    )
