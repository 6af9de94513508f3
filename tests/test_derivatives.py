"""Tests du générateur d'images dérivées."""

from __future__ import annotations

import io

import pytest
from conftest import make_image, png_header, to_bytes
from PIL import Image

from menuimport.config import SQUARE, WIDE, DerivativeSpec
from menuimport.imaging.derivatives import (
    MIN_USABLE_SIZE,
    encode_original,
    generate_derivative,
    prepare_original,
    to_rgb,
)
from menuimport.imaging.schema import (
    CropBox,
    CropBoxError,
    CropMode,
    DerivativeError,
    ImageDecodeError,
    NormalizedCropBox,
)


def decoded_size(data: bytes) -> tuple[int, int]:
    return Image.open(io.BytesIO(data)).size


def test_manual_crop_exact_size() -> None:
    src = to_bytes(make_image(2000, 1500, (600, 400, 1400, 1100)))
    crop = NormalizedCropBox(0.25, 0.0, 0.5, 1.0)
    result = generate_derivative(src, SQUARE, CropMode.MANUAL, crop)
    assert result.mode_used == CropMode.MANUAL
    assert result.manual_crop_used == crop
    assert result.crop_used == CropBox(500, 0, 1000, 1500)
    assert (result.width, result.height) == (1024, 1024)
    assert decoded_size(result.data) == (1024, 1024)
    assert (result.source_width, result.source_height) == (2000, 1500)
    assert not result.trim.did_trim


def test_manual_mode_without_crop_rejected() -> None:
    with pytest.raises(CropBoxError):
        generate_derivative(b"irrelevant", SQUARE, CropMode.MANUAL, None)


def test_invalid_spec_rejected() -> None:
    bad = DerivativeSpec("bad", 0, 100, 1.0)
    with pytest.raises(DerivativeError):
        generate_derivative(b"irrelevant", bad)


def test_decode_error() -> None:
    with pytest.raises(ImageDecodeError):
        generate_derivative(b"definitely not an image", SQUARE)


@pytest.mark.parametrize("decode", [lambda data: generate_derivative(data, SQUARE), prepare_original])
def test_oversized_header_is_decode_error(decode) -> None:
    # 30000 x 30000 annoncés : Pillow refuse dès l'en-tête
    with pytest.raises(ImageDecodeError, match="Image illisible"):
        decode(png_header(30000, 30000))


def test_uniform_gray_not_trimmed() -> None:
    src = to_bytes(make_image(1000, 1000, background=(128, 128, 128)))
    result = generate_derivative(src, SQUARE)
    assert result.mode_used == CropMode.AUTO
    assert result.trim.did_trim is False
    assert result.trim.skip_reason == "low_saturation"
    assert decoded_size(result.data) == (1024, 1024)


def test_empty_margins_trimmed() -> None:
    # Sujet en bas à droite : haut et gauche vides
    src = to_bytes(make_image(1000, 1000, (300, 300, 1000, 1000)))
    result = generate_derivative(src, SQUARE)
    trim = result.trim
    assert trim.did_trim
    assert (trim.trim_top, trim.trim_left) == (120, 120)
    assert (trim.trim_bottom, trim.trim_right) == (0, 0)
    assert result.crop_used == CropBox(120, 120, 880, 880)
    assert decoded_size(result.data) == (1024, 1024)


def test_centered_subject_within_bounds() -> None:
    src = to_bytes(make_image(1000, 1000, (150, 150, 850, 850)))
    for spec in (SQUARE, WIDE):
        result = generate_derivative(src, spec)
        trim = result.trim
        crop = result.crop_used
        horizontal = trim.trim_left + trim.trim_right
        vertical = trim.trim_top + trim.trim_bottom
        assert horizontal <= 0.2 * (crop.width + horizontal)
        assert vertical <= 0.2 * (crop.height + vertical)
        assert decoded_size(result.data) == (spec.width, spec.height)


def test_safety_valve_cancels_trim() -> None:
    # Quatre bords vides : 24 % par axe, tout est annulé
    src = to_bytes(make_image(1000, 1000, (230, 230, 770, 770)))
    result = generate_derivative(src, SQUARE)
    assert result.trim.did_trim is False
    assert result.trim.skip_reason == "exceeds_safety_bounds"
    assert result.trim.edge_energies is not None
    assert result.crop_used == CropBox(0, 0, 1000, 1000)


def test_below_min_size_falls_back_to_aspect_crop() -> None:
    src = to_bytes(make_image(110, 110, (33, 33, 110, 110)))
    result = generate_derivative(src, SQUARE)
    assert result.trim.did_trim is False
    assert result.trim.skip_reason == "below_min_size"
    assert result.crop_used == CropBox(0, 0, 110, 110)
    assert result.crop_used.width > MIN_USABLE_SIZE


def test_auto_mode_deterministic() -> None:
    src = to_bytes(make_image(1600, 1200, (500, 300, 1500, 1150)), "JPEG")
    first = generate_derivative(src, WIDE)
    second = generate_derivative(src, WIDE)
    assert first.data == second.data
    assert first.trim == second.trim


def test_wide_aspect_crop_on_portrait() -> None:
    src = to_bytes(make_image(900, 1600, background=(90, 90, 90)))
    result = generate_derivative(src, WIDE)
    assert result.crop_used == CropBox(0, 463, 900, 675)
    assert decoded_size(result.data) == (1440, 1080)


def test_output_formats() -> None:
    src = to_bytes(make_image(300, 300, (50, 50, 250, 250)))
    spec = DerivativeSpec("s", 64, 64, 1.0)
    jpeg = generate_derivative(src, spec, output_format="JPEG", quality=70)
    assert Image.open(io.BytesIO(jpeg.data)).format == "JPEG"
    png = generate_derivative(src, spec, output_format="PNG")
    assert Image.open(io.BytesIO(png.data)).format == "PNG"
    webp = generate_derivative(src, spec)
    assert Image.open(io.BytesIO(webp.data)).format == "WEBP"


def test_accepts_pil_image() -> None:
    img = make_image(400, 300, (100, 50, 300, 250))
    result = generate_derivative(img, DerivativeSpec("s", 80, 60, 4 / 3))
    assert decoded_size(result.data) == (80, 60)


def test_to_rgb_flattens_alpha_on_white() -> None:
    rgba = Image.new("RGBA", (4, 4), (255, 0, 0, 0))
    assert to_rgb(rgba).getpixel((0, 0)) == (255, 255, 255)
    assert to_rgb(Image.new("L", (2, 2), 10)).mode == "RGB"


def test_prepare_original_applies_exif_orientation() -> None:
    img = make_image(200, 100, (0, 0, 50, 100))
    exif = Image.Exif()
    exif[0x0112] = 6  # rotation 90° horaire
    buf = io.BytesIO()
    img.save(buf, "JPEG", exif=exif)
    original = prepare_original(buf.getvalue())
    assert original.size == (100, 200)
    assert original.mode == "RGB"


def test_encode_original_keeps_size() -> None:
    img = make_image(320, 240, (10, 10, 200, 200))
    data = encode_original(img)
    assert decoded_size(data) == (320, 240)
