import json

import numpy as np
import pandas as pd
import pytest

from coloctools.cli import main
from coloctools.core.io import load_channel, load_mask, polygon_mask, roi_masks


# ============================================================================
# File loading
# ============================================================================

def test_load_npy_squeezes(tmp_path):
    path = tmp_path / "ch1.npy"
    np.save(path, np.ones((1, 5, 6), dtype=np.uint16))
    image = load_channel(path)
    assert image.shape == (5, 6)
    assert image.dtype == np.uint16


def test_load_tiff(tmp_path):
    tifffile = pytest.importorskip("tifffile")
    path = tmp_path / "ch2.tif"
    data = np.arange(12, dtype=np.uint8).reshape(3, 4)
    tifffile.imwrite(str(path), data)
    np.testing.assert_array_equal(load_channel(path), data)


def test_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        load_channel(tmp_path / "image.png")


def test_load_mask_is_irregular(tmp_path):
    path = tmp_path / "mask.npy"
    array = np.zeros((4, 4), dtype=np.uint8)
    array[1, 1] = 255
    array[2, 3] = 1
    np.save(path, array)
    mask = load_mask(path)
    assert mask.is_irregular
    assert mask.count() == 2


def test_polygon_uses_pixel_centres():
    square = [[0.5, 0.5], [0.5, 3.5], [3.5, 3.5], [3.5, 0.5]]
    mask = polygon_mask(square, (6, 6))
    assert mask.sum() == 9
    assert mask[1:4, 1:4].all()


def test_polygon_needs_three_vertices():
    with pytest.raises(ValueError):
        polygon_mask([[0, 0], [1, 1]], (4, 4))


def test_roi_masks_filtered_by_name(tmp_path):
    path = tmp_path / "cells.rois.json"
    path.write_text(json.dumps({'rois': [
        {'name': 'a', 'vertices': [[0.5, 0.5], [0.5, 2.5], [2.5, 2.5], [2.5, 0.5]]},
        {'name': 'b', 'vertices': [[3.5, 3.5], [3.5, 5.5], [5.5, 5.5], [5.5, 3.5]]},
    ]}))
    assert len(roi_masks(path, (8, 8))) == 2
    only_b = roi_masks(path, (8, 8), names=['b'])
    assert len(only_b) == 1
    assert only_b[0].array[4, 4]
    with pytest.raises(ValueError):
        roi_masks(path, (8, 8), names=['missing'])


def test_roi_json_without_rois_key(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({'polygons': []}))
    with pytest.raises(ValueError, match="rois"):
        roi_masks(path, (4, 4))


# ============================================================================
# CLI
# ============================================================================

def test_version(capsys):
    assert main(["--version"]) == 0
    assert "coloctools" in capsys.readouterr().out


def test_run_writes_csv(tmp_path, correlated_pair, capsys):
    ch1, ch2 = correlated_pair
    np.save(tmp_path / "red.npy", ch1)
    np.save(tmp_path / "green.npy", ch2)
    csv = tmp_path / "out" / "results.csv"

    code = main(["run", str(tmp_path / "red.npy"), str(tmp_path / "green.npy"),
                 "--no-costes", "--no-max-kendall", "--seed", "1",
                 "--csv", str(csv)])
    assert code == 0
    assert csv.exists()
    frame = pd.read_csv(csv)
    assert list(frame.columns) == ["job", "name", "value", "formatted"]
    assert frame['job'].iloc[0].startswith("Colocalization_of_red_versus_green_")
    assert "Pearson's R value (no threshold)" in capsys.readouterr().out


def test_run_with_rectangle(tmp_path, correlated_pair):
    ch1, ch2 = correlated_pair
    np.save(tmp_path / "a.npy", ch1)
    np.save(tmp_path / "b.npy", ch2)
    code = main(["run", str(tmp_path / "a.npy"), str(tmp_path / "b.npy"),
                 "--rect", "4", "4", "--size", "20", "20",
                 "--no-costes", "--no-max-kendall"])
    assert code == 0


def test_run_missing_file(tmp_path, capsys):
    code = main(["run", str(tmp_path / "nope.npy"), str(tmp_path / "nope2.npy")])
    assert code == 1
    assert "Error" in capsys.readouterr().out


def test_run_rectangle_too_large(tmp_path, capsys):
    np.save(tmp_path / "a.npy", np.ones((8, 8)))
    code = main(["run", str(tmp_path / "a.npy"), str(tmp_path / "a.npy"),
                 "--rect", "0", "0", "--size", "9", "9"])
    assert code == 1
    assert "ROI size" in capsys.readouterr().out
