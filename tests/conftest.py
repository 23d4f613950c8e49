"""Shared synthetic images for the coloctools tests."""

import numpy as np
import pytest

from coloctools.core.descriptor import Descriptor


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def correlated_pair(rng):
    """uint8 channels where ch2 ~ 0.5 * ch1 + noise."""
    ch1 = rng.integers(0, 200, size=(48, 48)).astype(np.uint8)
    noise = rng.normal(0.0, 8.0, size=ch1.shape)
    ch2 = np.clip(0.5 * ch1 + 20 + noise, 0, 255).astype(np.uint8)
    return ch1, ch2


@pytest.fixture
def correlated_descriptor(correlated_pair):
    ch1, ch2 = correlated_pair
    return Descriptor(ch1, ch2, names=("red", "green"))


@pytest.fixture
def blob_image(rng):
    """Smooth non-negative float image with PSF-scale structure."""
    from scipy import ndimage

    noise = rng.random((64, 64))
    return ndimage.gaussian_filter(noise, 2.0) * 1000.0
