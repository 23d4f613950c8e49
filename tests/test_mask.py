import numpy as np
import pytest

from coloctools.core.mask import Mask, MASK_IRREGULAR, MASK_NONE, MASK_REGULAR
from coloctools.errors import MissingPreconditionError


def test_everywhere_mask_covers_image():
    mask = Mask.everywhere((5, 7))
    assert mask.kind == MASK_NONE
    assert mask.label == "None"
    assert mask.count() == 35
    box = mask.bounding_box()
    assert box.offset == (0, 0)
    assert box.size == (5, 7)


def test_rectangle_mask_contains_only_rectangle():
    mask = Mask.from_rectangle((10, 10), offset=(2, 3), size=(4, 5))
    assert mask.kind == MASK_REGULAR
    assert mask.label == "ROI"
    assert mask.count() == 20
    assert mask.contains((2, 3))
    assert mask.contains((5, 7))
    assert not mask.contains((6, 7))
    assert not mask.contains((1, 3))
    assert not mask.contains((-1, 3))
    assert mask.bounding_box().end == (6, 8)


def test_rectangle_missing_dimensions_default_to_remaining_extent():
    mask = Mask.from_rectangle((4, 6, 8), offset=(1,), size=(2,))
    box = mask.bounding_box()
    assert box.offset == (1, 0, 0)
    assert box.size == (2, 6, 8)


def test_rectangle_offset_too_large():
    with pytest.raises(MissingPreconditionError, match="offset"):
        Mask.from_rectangle((10, 10), offset=(11, 0), size=(1, 1))


def test_rectangle_size_too_large():
    with pytest.raises(MissingPreconditionError, match="size"):
        Mask.from_rectangle((10, 10), offset=(5, 5), size=(6, 2))


def test_irregular_mask_bounding_box_is_tight():
    array = np.zeros((8, 8), dtype=bool)
    array[2, 3] = True
    array[5, 6] = True
    mask = Mask.from_array(array)
    assert mask.kind == MASK_IRREGULAR
    assert mask.is_irregular
    box = mask.bounding_box()
    assert box.offset == (2, 3)
    assert box.size == (4, 4)
    assert mask.contains((2, 3))
    assert not mask.contains((3, 3))


def test_empty_mask_rejected():
    with pytest.raises(MissingPreconditionError):
        Mask.from_array(np.zeros((3, 3), dtype=bool))


def test_mask_is_immutable_and_independent_of_source():
    array = np.ones((3, 3), dtype=bool)
    mask = Mask.from_array(array)
    with pytest.raises(ValueError):
        mask.array[0, 0] = False
    array[0, 0] = False
    assert mask.contains((0, 0))


def test_identifier_depends_on_mask_bits():
    a = np.zeros((4, 4), dtype=bool)
    a[1:3, 1:3] = True
    b = a.copy()
    c = a.copy()
    c[0, 0] = True
    assert Mask.from_array(a).identifier == Mask.from_array(b).identifier
    assert Mask.from_array(a).identifier != Mask.from_array(c).identifier
