# structseg/core/features/cepstral.py

"""
Mel-Frequency Cepstral Coefficients (MFCCs) as an alternative feature source.

The segmenter does not compute MFCCs itself. These helpers produce MFCC rows
that are handed to `Segmenter.set_features`, which routes them through the
generic (externally supplied) classifier path.
"""

import logging
from typing import Optional

import librosa
import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class MFCCConfig(BaseModel):
    """MFCC analysis parameters."""
    fs: int = Field(..., gt=0, description="Sample rate (Hz).")
    fft_size: int = Field(2048, gt=0, description="FFT length per frame.")
    n_ceps: int = Field(19, gt=0, description="Cepstral coefficients excluding C0.")
    log_power: float = Field(1.0, gt=0, description="Exponent applied to the magnitude spectrum before the Mel filterbank.")
    want_c0: bool = Field(True, description="Prepend the 0th (energy) coefficient.")
    window: str = Field("hamming", description="Analysis window (scipy.signal.get_window name).")

    @property
    def n_coefficients(self) -> int:
        """Number of values per MFCC vector."""
        return self.n_ceps + (1 if self.want_c0 else 0)


def mfcc_frames(
    y: NDArray[np.float64],
    config: MFCCConfig,
    hop_length: Optional[int] = None
) -> NDArray[np.float64]:
    """
    Computes one MFCC vector per analysis frame using librosa.

    Args:
        y: Audio time series (1D float64).
        config: MFCC parameters.
        hop_length: Frame spacing in samples. Defaults to fft_size // 2.

    Returns:
        Array of shape (n_frames, config.n_coefficients).
    """
    if y.ndim != 1:
        raise ValueError("Input signal y must be 1D.")
    hop_length = hop_length if hop_length is not None else config.fft_size // 2
    logger.debug(f"Calculating MFCCs: n_ceps={config.n_ceps}, want_c0={config.want_c0}, "
                 f"fft_size={config.fft_size}, hop={hop_length}, log_power={config.log_power}")

    coefficients = librosa.feature.mfcc(
        y=y.astype(np.float64, copy=False),
        sr=config.fs,
        n_mfcc=config.n_ceps + 1,
        n_fft=config.fft_size,
        hop_length=hop_length,
        window=config.window,
        power=config.log_power,
    )
    if not config.want_c0:
        coefficients = coefficients[1:]
    return coefficients.T.astype(np.float64, copy=False)


def mfcc_block(y: NDArray[np.float64], config: MFCCConfig) -> NDArray[np.float64]:
    """
    Averages the MFCC vectors of all frames in one block of audio.

    Returns:
        Vector of length config.n_coefficients.
    """
    frames = mfcc_frames(y, config)
    return frames.mean(axis=0)
