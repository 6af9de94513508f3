"""Fixtures partagées : catalogue de démonstration et images synthétiques."""

from __future__ import annotations

import io
import logging
import struct
import zlib

import numpy as np
import pytest
from PIL import Image

from menuimport.config import Config, DerivativeSpec
from menuimport.matching.schema import CatalogEntry

WHITE = (255, 255, 255)
RED = (255, 0, 0)


@pytest.fixture
def catalog() -> list[CatalogEntry]:
    return [
        CatalogEntry("P011", "Ten Zaru Udon", "NOODLE"),
        CatalogEntry("P012", "Kake Udon", "NOODLE"),
        CatalogEntry("C001", "Chicken Teriyaki Bowl", "RICE"),
        CatalogEntry("S001", "Salmon Sashimi Plate", "SASHIMI"),
        CatalogEntry("R001", "Salmon Don", "RICE"),
        CatalogEntry("R002", "Salmon Don", "RICE"),
        CatalogEntry("Z001", "Pizza", None),
        CatalogEntry("X000", "  ", None),
    ]


@pytest.fixture
def small_config() -> Config:
    """Dérivés réduits pour des tests rapides."""
    return Config(
        derivatives=[
            DerivativeSpec("1x1", 128, 128, 1.0),
            DerivativeSpec("4x3", 160, 120, 4 / 3),
        ],
        max_workers=2,
    )


def make_image(
    width: int,
    height: int,
    subject: tuple[int, int, int, int] | None = None,
    *,
    background: tuple[int, int, int] = WHITE,
    color: tuple[int, int, int] = RED,
) -> Image.Image:
    """Fond uni avec un rectangle (left, top, right, bottom) optionnel."""
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[:, :] = background
    if subject is not None:
        left, top, right, bottom = subject
        arr[top:bottom, left:right] = color
    return Image.fromarray(arr, "RGB")


def to_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


def png_header(width: int, height: int) -> bytes:
    """PNG minimal dont seul l'en-tête annonce la taille (aucun pixel réel)."""

    def chunk(kind: bytes, payload: bytes) -> bytes:
        return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"") + chunk(b"IEND", b"")


@pytest.fixture
def dish_bytes() -> bytes:
    """Photo de plat synthétique (JPEG 400x300)."""
    return to_bytes(make_image(400, 300, (120, 90, 360, 280)), "JPEG")


@pytest.fixture(autouse=True)
def reset_logging():
    """La CLI configure le logger 'menuimport' ; on le remet à zéro après chaque test."""
    yield
    root = logging.getLogger("menuimport")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
