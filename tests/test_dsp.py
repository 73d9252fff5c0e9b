# tests/test_dsp.py

"""
Tests for frame-level DSP primitives in structseg.core.dsp.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from structseg.core.dsp import Window, real_forward_fft, swap_halves

# --- Test Window ---

def test_hamming_window_values():
    n = 16
    window = Window('hamming', n)
    expected = 0.54 - 0.46 * np.cos(2 * np.pi * np.arange(n) / (n - 1))
    assert window.size == n
    assert_allclose(window.cut(np.ones(n)), expected, atol=1e-12)

def test_window_cut_does_not_modify_input():
    window = Window('hamming', 8)
    frame = np.full(8, 2.0)
    cut = window.cut(frame)
    assert_array_equal(frame, np.full(8, 2.0))
    assert_allclose(cut, 2.0 * window.cut(np.ones(8)))

def test_window_cut_rejects_wrong_length():
    with pytest.raises(ValueError):
        Window('hamming', 8).cut(np.ones(7))

def test_window_rejects_non_positive_size():
    with pytest.raises(ValueError):
        Window('hamming', 0)

# --- Test swap_halves ---

def test_swap_halves_even():
    assert_array_equal(swap_halves(np.arange(6.0)), [3, 4, 5, 0, 1, 2])

def test_swap_halves_odd_keeps_last_sample():
    assert_array_equal(swap_halves(np.arange(5.0)), [2, 3, 0, 1, 4])

def test_swap_halves_twice_is_identity():
    frame = np.random.default_rng(0).normal(size=64)
    assert_array_equal(swap_halves(swap_halves(frame)), frame)

# --- Test real_forward_fft ---

def test_real_forward_fft_matches_numpy():
    frame = np.random.default_rng(1).normal(size=128)
    real, imag = real_forward_fft(frame)
    expected = np.fft.fft(frame)
    assert real.shape == imag.shape == (128,)
    assert_allclose(real, expected.real, atol=1e-10)
    assert_allclose(imag, expected.imag, atol=1e-10)

def test_real_forward_fft_sinusoid_peak():
    n, k = 256, 10
    frame = np.cos(2 * np.pi * k * np.arange(n) / n)
    real, imag = real_forward_fft(frame)
    magnitude = np.hypot(real, imag)
    assert int(np.argmax(magnitude[:n // 2])) == k
    assert_allclose(magnitude[k], n / 2, rtol=1e-9)

def test_real_forward_fft_rejects_2d():
    with pytest.raises(ValueError):
        real_forward_fft(np.zeros((2, 8)))
