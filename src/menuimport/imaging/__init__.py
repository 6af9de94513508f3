"""Pipeline d'images dérivées (recadrage, rognage doux, redimensionnement)."""

from menuimport.imaging.derivatives import (
    encode_original,
    generate_derivative,
    prepare_original,
)
from menuimport.imaging.geometry import compute_aspect_crop, initial_crop_box
from menuimport.imaging.schema import (
    CropBox,
    CropBoxError,
    CropMode,
    DerivativeError,
    ImageDecodeError,
    NormalizedCropBox,
    PipelineResult,
    TrimResult,
)

__all__ = [
    "CropBox",
    "CropBoxError",
    "CropMode",
    "DerivativeError",
    "ImageDecodeError",
    "NormalizedCropBox",
    "PipelineResult",
    "TrimResult",
    "compute_aspect_crop",
    "encode_original",
    "generate_derivative",
    "initial_crop_box",
    "prepare_original",
]
