import numpy as np
import pytest

from coloctools.algorithms.histogram import Histogram2D, LiHistogram2D, intensity_bin_width
from coloctools.core.descriptor import Descriptor
from coloctools.core.mask import Mask
from coloctools.results import AnalysisResults


def test_bin_width():
    assert intensity_bin_width(200) == 1.0
    assert intensity_bin_width(255) == 1.0
    assert intensity_bin_width(4095) == pytest.approx((256 - 0.50001) / 4095)


def test_small_range_histogram_places_pixels_exactly():
    ch1 = np.array([[0, 1], [2, 3]], dtype=np.uint8)
    ch2 = np.array([[3, 2], [1, 0]], dtype=np.uint8)
    hist = Histogram2D()
    hist.execute(Descriptor(ch1, ch2))
    counts = hist.data.counts
    assert counts.shape == (256, 256)
    # y axis is inverted: row index 255 - value
    assert counts[0, 252] == 1
    assert counts[1, 253] == 1
    assert counts[2, 254] == 1
    assert counts[3, 255] == 1
    assert hist.data.total == 4
    assert hist.data.ignored == 0


def test_histogram_conserves_pixel_count(rng):
    ch1 = rng.integers(0, 4096, size=(40, 40)).astype(np.uint16)
    ch2 = rng.integers(0, 1000, size=(40, 40)).astype(np.uint16)
    mask = Mask.from_rectangle(ch1.shape, (5, 5), (20, 30))
    hist = Histogram2D()
    hist.execute(Descriptor(ch1, ch2, mask))
    assert hist.data.total + hist.data.ignored == mask.count()
    assert hist.data.ignored == 0
    assert hist.data.x_max == float(ch1[mask.array].max())


def test_out_of_range_pixels_are_ignored_with_warning():
    ch1 = np.array([-5.0, 1.0, 2.0, 3.0])
    ch2 = np.array([1.0, 1.0, 2.0, 3.0])
    hist = Histogram2D()
    hist.execute(Descriptor(ch1, ch2))
    assert hist.data.ignored == 1
    assert hist.data.total + hist.data.ignored == 4
    assert hist.warnings[0].short_message == "Ignored pixels while generating histogram."


def test_swapped_histogram_is_transposed_labels():
    ch1 = np.array([[0, 1], [2, 3]], dtype=np.uint8)
    ch2 = np.array([[3, 3], [1, 0]], dtype=np.uint8)
    d = Descriptor(ch1, ch2, names=("a", "b"))
    hist = Histogram2D(swap_channels=True)
    hist.execute(d)
    assert hist.data.x_label == "b"
    assert hist.data.y_label == "a"
    assert hist.data.counts[3, 255] == 1


@pytest.mark.parametrize("use_ch1", [True, False])
def test_li_histogram_conserves_pixel_count(correlated_descriptor, use_ch1):
    hist = LiHistogram2D("Li - Ch1" if use_ch1 else "Li - Ch2", use_ch1=use_ch1)
    hist.execute(correlated_descriptor)
    assert hist.data.total == correlated_descriptor.pixel_count
    assert hist.data.ignored == 0
    assert hist.data.x_min <= hist.data.x_max


def test_histogram_reported_to_sink(correlated_descriptor):
    hist = Histogram2D("2D intensity histogram")
    hist.execute(correlated_descriptor)
    results = AnalysisResults()
    hist.process_results(results)
    assert results.get_histogram("2D intensity histogram") is hist.data
    table = hist.data.to_table().splitlines()
    assert table[0] == "X value\tY value\tcount"
    assert len(table) - 1 == hist.data.counts.size


def test_table_uses_calibrated_axis_values_for_wide_ranges():
    ch = np.array([[0, 1000], [2000, 4095]], dtype=np.uint16)
    hist = Histogram2D()
    hist.execute(Descriptor(ch, ch))
    data = hist.data
    assert data.x_bin_width < 1.0
    assert data.counts[255, 0] == 1

    rows = data.to_table().splitlines()[1:]
    x, y, count = rows[255 * 256 + 0].split("\t")
    assert float(x) == pytest.approx(255 / data.x_bin_width, abs=1e-3)
    assert float(y) == pytest.approx(0.0)
    assert count == "1"
    # three decimals when bins are wider than one intensity step
    assert x == f"{255 / data.x_bin_width:.3f}"


def test_table_of_unit_bins_prints_whole_numbers():
    ch = np.array([[0, 1], [2, 3]], dtype=np.uint8)
    hist = Histogram2D()
    hist.execute(Descriptor(ch, ch))
    rows = hist.data.to_table().splitlines()[1:]
    assert rows[3 * 256 + 252] == "3\t252\t1"
