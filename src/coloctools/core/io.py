"""
io.py - Read channel images, mask images and polygon ROIs from disk

Only single-channel arrays are handled: .tif/.tiff through tifffile and
.npy through numpy. Polygon ROIs are JSON files of the form

    {"rois": [{"name": "cell 1", "vertices": [[y, x], [y, x], ...]}]}

and are rasterised into an irregular Mask.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from coloctools.core.mask import Mask

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = {'.tif', '.tiff'}


def load_channel(path: Union[str, Path]) -> np.ndarray:
    """Load a single-channel image.

    Args:
        path: .tif, .tiff or .npy file.

    Returns:
        The image array, squeezed of singleton axes.

    Raises:
        ValueError: Unsupported file type.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in TIFF_SUFFIXES:
        import tifffile
        image = tifffile.imread(str(path))
    elif suffix == '.npy':
        image = np.load(str(path))
    else:
        raise ValueError(f"Unsupported image file type: {path.suffix} ({path})")
    image = np.squeeze(image)
    logger.debug("Loaded %s: shape=%s dtype=%s", path.name, image.shape, image.dtype)
    return image


def load_mask(path: Union[str, Path]) -> Mask:
    """Load a mask image; every non-zero pixel is inside."""
    return Mask.from_array(load_channel(path))


def load_rois_json(path: Union[str, Path]) -> dict:
    """Load ROI polygons from JSON file.

    Raises:
        ValueError: If file is not valid ROI JSON.
    """
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    if 'rois' not in data:
        raise ValueError(f"Not a valid ROI JSON file (missing 'rois' key): {path}")
    return data


def polygon_mask(vertices: Sequence[Sequence[float]], shape: Sequence[int]) -> np.ndarray:
    """Rasterise a polygon given as [y, x] vertices into a 2D boolean array.

    A pixel is inside when its centre is inside the polygon.
    """
    from matplotlib.path import Path as MplPath

    verts = np.asarray(vertices, dtype=np.float64)
    if verts.ndim != 2 or verts.shape[1] != 2 or len(verts) < 3:
        raise ValueError("A polygon ROI needs at least three [y, x] vertices")
    # MplPath wants (x, y) = (col, row), so swap
    path = MplPath(verts[:, ::-1])

    height, width = int(shape[0]), int(shape[1])
    rows, cols = np.mgrid[0:height, 0:width]
    points = np.column_stack([cols.ravel(), rows.ravel()])
    inside = path.contains_points(points)
    return inside.reshape(height, width)


def roi_masks(path: Union[str, Path], shape: Sequence[int],
              names: Optional[Sequence[str]] = None) -> List[Mask]:
    """One Mask per polygon in an ROI JSON file.

    Args:
        path: ROI JSON file.
        shape: Shape of the images the ROIs belong to (2D).
        names: Only keep ROIs with these names.
    """
    rois = load_rois_json(path)['rois']
    if names:
        wanted = set(names)
        rois = [r for r in rois if r.get('name') in wanted]
        if not rois:
            raise ValueError(f"No ROI named {', '.join(sorted(wanted))} in {path}")
    return [Mask.from_array(polygon_mask(r['vertices'], shape)) for r in rois]
