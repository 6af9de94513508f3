"""Calculs de boîtes de recadrage (sans traitement de pixels)."""

from __future__ import annotations

from menuimport.imaging.schema import CropBox, NormalizedCropBox


def _round(value: float) -> int:
    """Arrondi au plus proche, .5 vers le haut (valeurs positives)."""
    return int(value + 0.5)


def compute_aspect_crop(src_width: int, src_height: int, target_aspect: float) -> CropBox:
    """
    Recadrage centré au ratio cible, sur l'image d'origine.

    Source plus large que la cible : on coupe la largeur (hauteur complète),
    sinon on coupe la hauteur (largeur complète).
    """
    src_aspect = src_width / src_height
    if src_aspect >= target_aspect:
        crop_h = src_height
        crop_w = min(src_width, max(1, _round(src_height * target_aspect)))
        left = _round((src_width - crop_w) / 2)
        top = 0
    else:
        crop_w = src_width
        crop_h = min(src_height, max(1, _round(src_width / target_aspect)))
        left = 0
        top = _round((src_height - crop_h) / 2)
    return CropBox(left=left, top=top, width=crop_w, height=crop_h)


def manual_crop_to_pixels(crop: NormalizedCropBox, src_width: int, src_height: int) -> CropBox:
    """Convertit une boîte normalisée en pixels, bornée à l'image (taille >= 1)."""
    left = _round(crop.x * src_width)
    top = _round(crop.y * src_height)
    width = _round(crop.w * src_width)
    height = _round(crop.h * src_height)

    left = max(0, min(left, src_width - 1))
    top = max(0, min(top, src_height - 1))
    width = max(1, min(width, src_width - left))
    height = max(1, min(height, src_height - top))
    return CropBox(left=left, top=top, width=width, height=height)


def shrink_crop(box: CropBox, top: int, bottom: int, left: int, right: int) -> CropBox:
    """Réduit une boîte des marges données (pixels)."""
    return CropBox(
        left=box.left + left,
        top=box.top + top,
        width=box.width - left - right,
        height=box.height - top - bottom,
    )


def initial_crop_box(image_width: int, image_height: int, target_aspect: float) -> NormalizedCropBox:
    """Boîte normalisée centrée au ratio cible (point de départ de l'éditeur manuel)."""
    image_aspect = image_width / image_height
    if image_aspect >= target_aspect:
        h = 1.0
        w = target_aspect / image_aspect
    else:
        w = 1.0
        h = image_aspect / target_aspect
    return NormalizedCropBox(x=(1 - w) / 2, y=(1 - h) / 2, w=w, h=h)
