# structseg/core/constant_q.py

"""
Constant-Q transform computed from FFT frames via a sparse spectral kernel.

The kernel follows the Brown & Puckette construction: for every constant-Q
bin a Hamming-windowed complex exponential of length Q * fs / f_k is centred in
an FFT-length buffer, rotated by half a frame, transformed, thresholded and
conjugated. Projecting an FFT frame onto the kernel yields one complex
coefficient per bin. The kernel is stored as a scipy.sparse CSR matrix.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field, model_validator
from scipy import sparse
from scipy.fft import fft
from scipy.signal import get_window

from .dsp import swap_halves

logger = logging.getLogger(__name__)


class CQConfig(BaseModel):
    """Parameters of a constant-Q transform."""
    fs: float = Field(..., gt=0, description="Sample rate of the frames the transform will see (Hz).")
    fmin: float = Field(..., gt=0, description="Centre frequency of the lowest bin (Hz).")
    fmax: float = Field(..., gt=0, description="Upper frequency limit (Hz).")
    bins_per_octave: int = Field(12, gt=0)
    threshold: float = Field(0.0054, ge=0, description="Kernel entries with magnitude at or below this are dropped.")

    @model_validator(mode='after')
    def check_range(self) -> 'CQConfig':
        if self.fmin >= self.fmax:
            raise ValueError(f"fmin ({self.fmin}) must be lower than fmax ({self.fmax}).")
        return self


class ConstantQ:
    """
    Sparse-kernel constant-Q transform.

    Call `sparse_kernel()` once before `process()`.
    """

    def __init__(self, config: CQConfig):
        self.config = config
        nyquist = config.fs / 2.0
        self.fmin = config.fmin
        self.fmax = config.fmax
        if self.fmax > nyquist:
            logger.warning(f"Constant-Q fmax {self.fmax:.1f} Hz exceeds Nyquist ({nyquist:.1f} Hz) "
                           f"at fs={config.fs:.1f} Hz. Limiting to Nyquist.")
            self.fmax = nyquist
        if self.fmin >= self.fmax:
            raise ValueError(f"Constant-Q fmin {self.fmin} Hz is not below the usable fmax {self.fmax} Hz.")

        bpo = config.bins_per_octave
        self.q = 1.0 / (2.0 ** (1.0 / bpo) - 1.0)
        self.k = int(np.ceil(bpo * np.log2(self.fmax / self.fmin)))
        self.fft_length = int(2 ** np.ceil(np.log2(np.ceil(self.q * config.fs / self.fmin))))
        self._kernel: Optional[sparse.csr_matrix] = None
        logger.debug(f"ConstantQ: fs={config.fs}, fmin={self.fmin}, fmax={self.fmax}, "
                     f"bpo={bpo}, Q={self.q:.3f}, K={self.k}, fft_length={self.fft_length}")

    @property
    def has_kernel(self) -> bool:
        return self._kernel is not None

    def bin_frequencies(self) -> NDArray[np.float64]:
        """Centre frequency (Hz) of every constant-Q bin."""
        return self.fmin * 2.0 ** (np.arange(self.k) / self.config.bins_per_octave)

    def sparse_kernel(self) -> sparse.csr_matrix:
        """Builds (and caches) the sparse spectral kernel of shape (K, fft_length)."""
        fft_length = self.fft_length
        square_threshold = self.config.threshold ** 2
        rows, cols, values = [], [], []

        for k in range(self.k - 1, -1, -1):
            length = int(np.ceil(self.q * self.config.fs / (self.fmin * 2.0 ** (k / self.config.bins_per_octave))))
            length = min(length, fft_length)
            origin = fft_length // 2 - length // 2

            n = np.arange(length)
            temporal = np.zeros(fft_length, dtype=np.complex128)
            temporal[origin:origin + length] = (
                get_window('hamming', length, fftbins=False) / length
                * np.exp(2j * np.pi * self.q * n / length)
            )
            # Same rotation as applied to the analysis frames
            temporal = swap_halves(temporal)
            spectral = fft(temporal)

            keep = np.nonzero(np.abs(spectral) ** 2 > square_threshold)[0]
            rows.append(np.full(keep.shape[0], k))
            cols.append(keep)
            values.append(np.conj(spectral[keep]) / fft_length)

        self._kernel = sparse.csr_matrix(
            (np.concatenate(values), (np.concatenate(rows), np.concatenate(cols))),
            shape=(self.k, fft_length),
            dtype=np.complex128,
        )
        logger.debug(f"Constant-Q kernel built: {self._kernel.nnz} non-zero entries.")
        return self._kernel

    def process(
        self,
        real: NDArray[np.float64],
        imag: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Projects one FFT frame onto the kernel.

        Args:
            real: Real part of the FFT frame (length fft_length).
            imag: Imaginary part of the FFT frame (length fft_length).

        Returns:
            Tuple (cq_real, cq_imag), each of length K.
        """
        if self._kernel is None:
            raise RuntimeError("sparse_kernel() must be called before process().")
        if real.shape[0] != self.fft_length or imag.shape[0] != self.fft_length:
            raise ValueError(f"FFT frame must have length {self.fft_length}.")
        coefficients = self._kernel @ (real + 1j * imag)
        return coefficients.real.astype(np.float64), coefficients.imag.astype(np.float64)
