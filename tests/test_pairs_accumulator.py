import numpy as np
import pytest

from coloctools.core.accumulator import Accumulator
from coloctools.core.mask import Mask
from coloctools.core.pairs import MaskedPairIterator
from coloctools.errors import MissingPreconditionError


def test_pairs_follow_mask_in_stable_order():
    ch1 = np.arange(9).reshape(3, 3)
    ch2 = ch1 * 10
    array = np.zeros((3, 3), dtype=bool)
    array[0, 2] = array[1, 1] = array[2, 0] = True
    pairs = MaskedPairIterator(ch1, ch2, Mask.from_array(array))

    assert len(pairs) == 3
    first = list(pairs)
    second = list(pairs)
    assert first == [(2.0, 20.0), (4.0, 40.0), (6.0, 60.0)]
    assert first == second
    rows, cols = pairs.coordinates()
    assert list(zip(rows, cols)) == [(0, 2), (1, 1), (2, 0)]


def test_pairs_reject_mismatched_shapes():
    with pytest.raises(MissingPreconditionError):
        MaskedPairIterator(np.zeros((3, 3)), np.zeros((3, 4)))
    with pytest.raises(MissingPreconditionError):
        MaskedPairIterator(np.zeros((3, 3)), np.zeros((3, 3)),
                           Mask.everywhere((4, 4)))


def test_pairs_work_in_three_dimensions():
    ch = np.arange(24).reshape(2, 3, 4)
    pairs = MaskedPairIterator(ch, ch)
    x, y = pairs.values()
    assert x.shape == (24,)
    np.testing.assert_array_equal(x, np.arange(24))


def test_accumulator_sums():
    ch1 = np.array([1.0, 2.0, 3.0, 4.0])
    ch2 = np.array([2.0, 0.0, 1.0, 5.0])
    acc = Accumulator(MaskedPairIterator(ch1, ch2))
    assert acc.count == 4
    assert acc.x == 10.0
    assert acc.y == 8.0
    assert acc.xx == 30.0
    assert acc.yy == 30.0
    assert acc.xy == 2.0 + 0.0 + 3.0 + 20.0


def test_accumulator_predicate_and_offsets():
    ch1 = np.array([1.0, 2.0, 3.0, 4.0])
    ch2 = np.array([2.0, 0.0, 1.0, 5.0])
    acc = Accumulator(MaskedPairIterator(ch1, ch2),
                      accept=lambda x, y: y > 0, offsets=(1.0, 1.0))
    assert acc.count == 3
    assert acc.x == pytest.approx(0.0 + 2.0 + 3.0)
    assert acc.y == pytest.approx(1.0 + 0.0 + 4.0)
    assert acc.xy == pytest.approx(0.0 + 0.0 + 12.0)


def test_accumulators_merge_additively(rng):
    x = rng.random(100)
    y = rng.random(100)
    whole = Accumulator().add(x, y)
    merged = Accumulator().add(x[:37], y[:37]) + Accumulator().add(x[37:], y[37:])
    assert merged.count == whole.count
    for field in ("x", "y", "xx", "yy", "xy"):
        assert getattr(merged, field) == pytest.approx(getattr(whole, field))
