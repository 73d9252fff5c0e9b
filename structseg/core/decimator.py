# structseg/core/decimator.py

"""
Anti-aliased integer downsampling.

A Chebyshev type I lowpass (the same design scipy.signal.decimate uses for
its IIR mode) is applied causally and every `factor`-th sample is kept. The
filter state is carried across `process` calls so that consecutive blocks of a
continuous stream are filtered as one signal.
"""

import logging

import numpy as np
from numpy.typing import NDArray
from scipy.signal import cheby1, sosfilt, sosfilt_zi

logger = logging.getLogger(__name__)

_FILTER_ORDER = 8
_PASSBAND_RIPPLE_DB = 0.05


class Decimator:
    """Downsamples a signal by a power-of-two factor up to `highest_supported_factor()`."""

    SUPPORTED_FACTORS = (2, 4, 8)

    @staticmethod
    def highest_supported_factor() -> int:
        """Largest decimation factor this decimator can be constructed with."""
        return max(Decimator.SUPPORTED_FACTORS)

    @staticmethod
    def is_supported_factor(factor: int) -> bool:
        return factor in Decimator.SUPPORTED_FACTORS

    def __init__(self, factor: int):
        if not self.is_supported_factor(factor):
            raise ValueError(f"Unsupported decimation factor {factor}. "
                             f"Supported factors: {self.SUPPORTED_FACTORS}")
        self.factor = factor
        # Cutoff at 80% of the new Nyquist frequency
        self._sos = cheby1(_FILTER_ORDER, _PASSBAND_RIPPLE_DB, 0.8 / factor, output='sos')
        self._zi = None
        logger.debug(f"Decimator created: factor={factor}, order={_FILTER_ORDER}")

    def process(self, src: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Filters and downsamples one block.

        Args:
            src: Input samples (1D float64).

        Returns:
            `len(src) // factor` decimated samples.
        """
        src = np.asarray(src, dtype=np.float64)
        if src.ndim != 1:
            raise ValueError("Decimator input must be a 1D array.")
        out_length = src.shape[0] // self.factor
        if src.shape[0] == 0:
            return np.zeros(0, dtype=np.float64)
        if self._zi is None:
            # Start from the steady state of the first sample to avoid a start-up transient
            self._zi = sosfilt_zi(self._sos) * src[0]
        filtered, self._zi = sosfilt(self._sos, src, zi=self._zi)
        return filtered[::self.factor][:out_length].astype(np.float64, copy=False)
