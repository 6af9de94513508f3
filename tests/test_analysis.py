"""Tests de l'analyse de bords et du rognage doux."""

import numpy as np
import pytest
from conftest import make_image
from PIL import Image

from menuimport.imaging.analysis import (
    analyze_edge,
    analyze_image,
    compute_soft_trim,
    detect_circular_edges,
    edge_band,
    gradient_energy,
    saturation_map,
)


def test_saturation_map() -> None:
    pixels = np.array([[[255, 0, 0], [255, 255, 255], [0, 0, 0], [200, 100, 100]]], dtype=np.int16)
    sat = saturation_map(pixels)
    assert sat.tolist() == [[100.0, 0.0, 0.0, 50.0]]


def test_gradient_energy_flat_is_zero() -> None:
    assert gradient_energy(np.full((8, 8, 3), 200, dtype=np.int16)) == 0.0


def test_detect_circular_edges_flat_rows() -> None:
    # Choix délibéré : un delta nul ne compte pas comme transition douce,
    # sinon un fond studio uni passerait pour un bord d'assiette.
    pixels = np.full((10, 50, 3), 255, dtype=np.int16)
    assert detect_circular_edges(pixels) is False


def test_detect_circular_edges_gradual_rows() -> None:
    ramp = np.arange(100, dtype=np.int16)
    pixels = np.stack([np.tile(ramp, (6, 1))] * 3, axis=2)
    assert detect_circular_edges(pixels) is True


def test_detect_circular_edges_hard_steps() -> None:
    row = np.where(np.arange(100) % 2 == 0, 0, 200).astype(np.int16)
    pixels = np.stack([np.tile(row, (6, 1))] * 3, axis=2)
    assert detect_circular_edges(pixels) is False


def test_analyze_image_stats() -> None:
    stats = analyze_image(make_image(400, 400, (0, 0, 200, 400)))
    assert stats.avg_saturation == pytest.approx(50.0, abs=2.0)
    assert stats.brightness_std > 20
    assert stats.has_circular_edges is False


def test_edge_band() -> None:
    assert edge_band(1000, 800, "top") == (0, 0, 1000, 200)
    assert edge_band(1000, 800, "bottom") == (0, 600, 1000, 800)
    assert edge_band(1000, 800, "left") == (0, 0, 250, 800)
    assert edge_band(1000, 800, "right") == (750, 0, 1000, 800)
    assert edge_band(3, 3, "top") is None
    with pytest.raises(ValueError):
        edge_band(10, 10, "middle")


def test_analyze_edge_empty_and_busy() -> None:
    img = make_image(1000, 1000, (300, 300, 1000, 1000))
    top = analyze_edge(img, "top")
    assert top.is_truly_empty
    assert top.suggested_trim == pytest.approx(0.12)
    right = analyze_edge(img, "right")
    assert not right.is_truly_empty
    assert right.suggested_trim == 0.0


def test_soft_trim_low_saturation() -> None:
    trim = compute_soft_trim(make_image(300, 300, background=(128, 128, 128)))
    assert trim.did_trim is False
    assert trim.skip_reason == "low_saturation"


def test_soft_trim_low_variance() -> None:
    trim = compute_soft_trim(make_image(300, 300, background=(200, 40, 40)))
    assert trim.did_trim is False
    assert trim.skip_reason == "low_variance"


def test_soft_trim_circular_edges() -> None:
    ramp = np.tile(np.arange(256, dtype=np.uint8), (256, 1))
    arr = np.stack([ramp, np.zeros_like(ramp), np.zeros_like(ramp)], axis=2)
    trim = compute_soft_trim(Image.fromarray(arr, "RGB"))
    assert trim.did_trim is False
    assert trim.skip_reason == "circular_edges"


def test_soft_trim_diagnostics() -> None:
    trim = compute_soft_trim(make_image(1000, 1000, (300, 300, 1000, 1000)))
    assert trim.did_trim
    assert set(trim.edge_energies) == {"top", "bottom", "left", "right"}
    assert trim.edge_saturations["top"] < 15
    assert trim.skip_reason is None
