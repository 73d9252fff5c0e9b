# structseg/core/audio_io.py

"""
Audio loading, block iteration, and writing segmentations to disk.
Audio is read with librosa (soundfile/audioread backends); tables with pandas.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple

import librosa
import numpy as np
from numpy.typing import NDArray

from .segmentation import Segmentation

logger = logging.getLogger(__name__)

SUPPORTED_SEGMENTATION_EXTENSIONS = {".csv", ".json"}


def load_audio(
    file_path: Path,
    sr: Optional[int] = None,
    mono: bool = True,
) -> Tuple[NDArray[np.float64], int]:
    """
    Loads an audio file using librosa.

    Args:
        file_path: Path object for the audio file.
        sr: Target sampling rate. If None, uses the native sampling rate.
        mono: If True, convert signal to mono by averaging channels.

    Returns:
        A tuple (data, sample_rate). Data is float64.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the path is not a file.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Audio input file not found: {file_path}")
    if not file_path.is_file():
        raise ValueError(f"Input path is not a file: {file_path}")

    logger.info(f"Loading audio from: {file_path} (sr={sr}, mono={mono})")
    try:
        data, sample_rate = librosa.load(file_path, sr=sr, mono=mono)
    except Exception as e:
        logger.error(f"Error loading audio file {file_path}: {e}")
        raise
    if data.dtype != np.float64:
        data = data.astype(np.float64)
    logger.debug(f"Audio loaded successfully. Shape: {data.shape}, SR: {sample_rate}")
    return data, int(sample_rate)


def iter_blocks(
    y: NDArray[np.float64],
    block_size: int,
    hop_size: int
) -> Iterator[NDArray[np.float64]]:
    """
    Yields consecutive full-length blocks of `block_size` samples spaced by
    `hop_size` samples. A trailing partial block is not yielded.
    """
    if block_size <= 0 or hop_size <= 0:
        raise ValueError(f"block_size and hop_size must be positive, got {block_size}, {hop_size}.")
    for start in range(0, y.shape[0] - block_size + 1, hop_size):
        yield y[start:start + block_size]


def save_segmentation(segmentation: Segmentation, output_path: Path):
    """
    Writes a segmentation as CSV or JSON (records), chosen by file extension.

    Raises:
        ValueError: If the extension is not supported.
    """
    ext = output_path.suffix.lower()
    if ext not in SUPPORTED_SEGMENTATION_EXTENSIONS:
        raise ValueError(f"Unsupported segmentation output extension: '{ext}'. "
                         f"Supported extensions: {sorted(SUPPORTED_SEGMENTATION_EXTENSIONS)}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df = segmentation.to_dataframe()
    if ext == ".csv":
        df.to_csv(output_path, index=False)
    else:
        df.to_json(output_path, orient="records", indent=2)
    logger.info(f"Saved {len(df)} segments to {output_path}")
