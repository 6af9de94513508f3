"""
Génération des images dérivées (carré, 4:3) à partir d'une photo source.

Mode MANUEL : boîte fournie → extraction → redimensionnement → encodage.
Mode AUTO   : recadrage centré au ratio → rognage doux conditionnel →
              redimensionnement → encodage.

Le cadrage passe toujours avant le rognage : un sous-recadrage se corrige
à la revue, un sur-recadrage dans le plat est destructif.
"""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from menuimport.config import DerivativeSpec
from menuimport.imaging.analysis import compute_soft_trim
from menuimport.imaging.geometry import compute_aspect_crop, manual_crop_to_pixels, shrink_crop
from menuimport.imaging.schema import (
    NO_TRIM,
    CropBoxError,
    CropMode,
    DerivativeError,
    ImageDecodeError,
    NormalizedCropBox,
    PipelineResult,
    TrimResult,
)
from menuimport.logging_config import get_logger

logger = get_logger("derivatives")

# En dessous, on revient au recadrage pur (sans rognage)
MIN_USABLE_SIZE = 100

DEFAULT_FORMAT = "WEBP"
DEFAULT_QUALITY = 80
ORIGINAL_QUALITY = 90


def decode_image(data: bytes) -> Image.Image:
    """Décode des octets en image RGB chargée en mémoire."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Image illisible: {e}") from e
    return to_rgb(img)


def to_rgb(img: Image.Image) -> Image.Image:
    """Convertit en RGB ; la transparence est aplatie sur fond blanc."""
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def prepare_original(data: bytes) -> Image.Image:
    """Décode la photo importée et applique l'orientation EXIF."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Image illisible: {e}") from e
    return to_rgb(img)


def encode_image(img: Image.Image, output_format: str = DEFAULT_FORMAT, quality: int = DEFAULT_QUALITY) -> bytes:
    """Encode une image ; mêmes pixels + mêmes paramètres = mêmes octets."""
    buf = io.BytesIO()
    fmt = output_format.upper()
    if fmt == "WEBP":
        img.save(buf, "WEBP", quality=quality, method=6)
    elif fmt == "JPEG":
        img.save(buf, "JPEG", quality=quality, optimize=True)
    elif fmt == "PNG":
        img.save(buf, "PNG", optimize=True)
    else:
        raise DerivativeError(f"Format de sortie non supporté: {output_format}")
    return buf.getvalue()


def encode_original(img: Image.Image, output_format: str = DEFAULT_FORMAT, quality: int = ORIGINAL_QUALITY) -> bytes:
    """Version haute qualité de l'original (orientée, non redimensionnée)."""
    return encode_image(img, output_format, quality)


def _validate_request(spec: DerivativeSpec, mode: CropMode, manual_crop: NormalizedCropBox | None) -> None:
    if spec.width <= 0 or spec.height <= 0 or spec.aspect <= 0:
        raise DerivativeError(f"Dérivé {spec.tag!r} invalide: {spec.width}x{spec.height} (aspect {spec.aspect})")
    if mode == CropMode.MANUAL and manual_crop is None:
        raise CropBoxError(f"Mode manuel sans boîte de recadrage (dérivé {spec.tag!r})")


def generate_derivative(
    source: bytes | Image.Image,
    spec: DerivativeSpec,
    mode: CropMode = CropMode.AUTO,
    manual_crop: NormalizedCropBox | None = None,
    *,
    output_format: str = DEFAULT_FORMAT,
    quality: int = DEFAULT_QUALITY,
) -> PipelineResult:
    """
    Génère un dérivé à la taille exacte de `spec`.

    Fonction pure de ses entrées : mêmes octets, même spec, même mode et même
    boîte donnent des octets identiques.

    Raises:
        CropBoxError: Mode manuel sans boîte.
        ImageDecodeError: Octets illisibles.
        DerivativeError: Spec invalide ou échec d'encodage.
    """
    mode = CropMode(mode)
    _validate_request(spec, mode, manual_crop)

    img = decode_image(source) if isinstance(source, (bytes, bytearray)) else to_rgb(source)
    src_w, src_h = img.size

    if mode == CropMode.MANUAL and manual_crop is not None:
        box = manual_crop_to_pixels(manual_crop, src_w, src_h)
        trim = NO_TRIM
    else:
        aspect_box = compute_aspect_crop(src_w, src_h, spec.aspect)
        region = img.crop(aspect_box.as_pil_box())
        trim = compute_soft_trim(region)
        box = shrink_crop(aspect_box, trim.trim_top, trim.trim_bottom, trim.trim_left, trim.trim_right)
        if trim.did_trim and (box.width < MIN_USABLE_SIZE or box.height < MIN_USABLE_SIZE):
            logger.debug("Trimmed crop %dx%d below %dpx, using aspect crop", box.width, box.height, MIN_USABLE_SIZE)
            box = aspect_box
            trim = TrimResult.none("below_min_size", trim.edge_energies, trim.edge_saturations)

    try:
        out = img.crop(box.as_pil_box()).resize((spec.width, spec.height), Image.Resampling.LANCZOS)
        data = encode_image(out, output_format, quality)
    except (OSError, ValueError) as e:
        raise DerivativeError(f"Échec de l'encodage {spec.tag}: {e}") from e

    return PipelineResult(
        data=data,
        trim=trim,
        mode_used=mode,
        width=spec.width,
        height=spec.height,
        source_width=src_w,
        source_height=src_h,
        manual_crop_used=manual_crop if mode == CropMode.MANUAL else None,
        crop_used=box,
    )
