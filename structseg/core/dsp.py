# structseg/core/dsp.py

"""
Frame-level DSP primitives used by the spectral frontend.

Includes window construction and application, the half-swap (zero-phase)
rotation, and a forward FFT returning separate real and imaginary parts.
Uses scipy.fft for the transform and scipy.signal for window generation.
"""

import logging
from typing import Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.fft import fft
from scipy.signal import get_window

logger = logging.getLogger(__name__)


class Window:
    """
    A precomputed apodization window of fixed length.

    Mirrors the "build once, cut many frames" usage of the segmenter: the
    window values are generated on construction and `cut` multiplies a frame
    of the same length.
    """

    def __init__(self, window_type: str, size: int):
        if size <= 0:
            raise ValueError(f"Window size must be positive, got {size}.")
        self.window_type = window_type
        # fftbins=False gives the symmetric window, 0.54 - 0.46 cos(2 pi n / (N - 1)) for hamming
        self._values = get_window(window_type, size, fftbins=False).astype(np.float64)
        logger.debug(f"Built '{window_type}' window of size {size}.")

    @property
    def size(self) -> int:
        return self._values.shape[0]

    def cut(self, frame: NDArray[np.float64]) -> NDArray[np.float64]:
        """Returns the windowed frame. The input is not modified."""
        if frame.shape != self._values.shape:
            raise ValueError(f"Frame length {frame.shape[0]} does not match window size {self.size}.")
        return frame * self._values


def swap_halves(frame: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Circularly rotates a frame by half its length, exchanging the first and
    second halves. Places the frame centre at sample zero before the FFT.

    For odd lengths the final sample stays in place.
    """
    half = frame.shape[0] // 2
    return np.concatenate((frame[half:2 * half], frame[:half], frame[2 * half:]))


def real_forward_fft(frame: NDArray[np.float64]) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Computes the full-length forward FFT of a real frame.

    Args:
        frame: Time-domain frame (1D float64).

    Returns:
        Tuple (real, imag), each of the same length as the frame.
    """
    if frame.ndim != 1:
        raise ValueError("Input frame must be a 1D array.")
    spectrum = fft(frame)
    return spectrum.real.astype(np.float64, copy=False), spectrum.imag.astype(np.float64, copy=False)
