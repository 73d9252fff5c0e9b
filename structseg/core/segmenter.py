# structseg/core/segmenter.py

"""
Structural segmenter: block-wise constant-Q feature extraction, frame
labeling and conversion of the label sequence into a segmentation.

Typical use:

    segmenter = Segmenter(SegmenterConfig())
    segmenter.initialise(sr)
    for start in range(0, len(y) - segmenter.get_window_size() + 1, segmenter.get_hop_size()):
        segmenter.extract_features(y[start:start + segmenter.get_window_size()])
    segmenter.segment()
    segmentation = segmenter.segmentation
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from structseg.config.models import FeatureType, SegmenterConfig
from .classifier import FeatureSource, HMMClusterClassifier, LabelingParams, SegmentClassifier
from .constant_q import ConstantQ, CQConfig
from .decimator import Decimator
from .dsp import Window, real_forward_fft, swap_halves
from .segmentation import Segmentation, make_segmentation

logger = logging.getLogger(__name__)

# Internal analysis rate; the decimation factor is chosen to get close to it
INTERNAL_RATE = 11025
# Kernel magnitude threshold of the constant-Q transform
CQ_THRESHOLD = 0.0054


def plan_decimation(
    input_rate: int,
    internal_rate: int = INTERNAL_RATE,
    max_factor: Optional[int] = None
) -> int:
    """
    Chooses the decimation factor for an input sample rate.

    The factor is `input_rate // internal_rate` (at least 1), raised to the
    next power of two and then capped at the decimator's highest supported
    factor.

    Args:
        input_rate: Sample rate of the incoming audio (Hz).
        internal_rate: Target analysis rate (Hz).
        max_factor: Upper bound. Defaults to `Decimator.highest_supported_factor()`.

    Returns:
        Power-of-two decimation factor >= 1.
    """
    if max_factor is None:
        max_factor = Decimator.highest_supported_factor()
    factor = max(int(input_rate) // int(internal_rate), 1)
    while factor & (factor - 1):
        factor += 1
    return min(factor, max_factor)


class Segmenter:
    """
    Accumulates one feature row per `extract_features` call and turns the
    rows into a `Segmentation` on `segment()`.

    Not thread-safe. Feed blocks from a single producer, then call
    `segment()` once; call `initialise()` again to start a new run.
    """

    def __init__(self, config: Optional[SegmenterConfig] = None,
                 classifier: Optional[SegmentClassifier] = None):
        self.config = config if config is not None else SegmenterConfig()
        self.classifier = classifier if classifier is not None else HMMClusterClassifier(
            n_components=self.config.n_components)

        self.feature_type: FeatureType = self.config.feature_type
        self.n_clusters: int = self.config.n_clusters
        self.sample_rate: int = 0
        self.n_coeff: int = 0
        self.decimation_factor: int = 1

        self.window: Optional[Window] = None
        self.constq: Optional[ConstantQ] = None
        self.decimator: Optional[Decimator] = None

        self._features: List[NDArray[np.float64]] = []
        self._segmentation = Segmentation()

    # --- Sizes ---

    def get_window_size(self) -> int:
        """Block length in samples at the initialised sample rate."""
        return int(self.config.window_size * self.sample_rate)

    def get_hop_size(self) -> int:
        """Block spacing in samples at the initialised sample rate."""
        return int(self.config.hop_size * self.sample_rate)

    @property
    def feature_source(self) -> FeatureSource:
        if self.feature_type is FeatureType.UNKNOWN:
            return FeatureSource.EXTERNALLY_SUPPLIED
        return FeatureSource.DERIVED_CONSTANT_Q

    @property
    def feature_count(self) -> int:
        """Rows currently held in the feature matrix."""
        return len(self._features)

    @property
    def features(self) -> NDArray[np.float64]:
        """Copy of the feature matrix, shape (rows, columns)."""
        if not self._features:
            return np.zeros((0, 0), dtype=np.float64)
        return np.vstack(self._features)

    @property
    def segmentation(self) -> Segmentation:
        """Result of the most recent `segment()` call."""
        return self._segmentation

    # --- Setup ---

    def initialise(self, sample_rate: int):
        """
        Configures the spectral frontend for `sample_rate`, clears any
        accumulated features and restores the configured feature type.

        Raises:
            ValueError: If `sample_rate` is not positive.
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}.")
        self.sample_rate = int(sample_rate)
        self.feature_type = self.config.feature_type
        self._features = []
        self.constq = None
        self.decimator = None
        self.decimation_factor = 1
        self.n_coeff = 0

        if self.feature_type is FeatureType.UNKNOWN:
            logger.info(f"Segmenter initialised at {sample_rate} Hz for externally supplied features.")
            return

        factor = plan_decimation(self.sample_rate)
        if factor > 1:
            self.decimator = Decimator(factor)
        self.decimation_factor = factor

        cq_config = CQConfig(
            fs=self.sample_rate / factor,
            fmin=self.config.fmin,
            fmax=self.config.fmax,
            bins_per_octave=self.config.n_bins,
            threshold=CQ_THRESHOLD,
        )
        self.constq = ConstantQ(cq_config)
        self.constq.sparse_kernel()
        self.n_coeff = self.constq.k

        logger.info(f"Segmenter initialised: rate={sample_rate} Hz, decimation={factor}, "
                    f"fft_length={self.constq.fft_length}, n_coeff={self.n_coeff}, "
                    f"window={self.get_window_size()}, hop={self.get_hop_size()} samples")

    # --- Feature accumulation ---

    def extract_features(self, samples: Sequence[float], length: Optional[int] = None) -> bool:
        """
        Appends one constant-Q feature row computed from one block of audio.

        The block is decimated, cut into frames of the transform's FFT length
        with 50% overlap, and the constant-Q magnitudes of all frames are
        averaged. Only the first frame may extend past the end of the block
        (it is zero padded); later incomplete frames are skipped. A later
        frame that ends exactly at the block end is complete and processed;
        a `>=` stop test would skip it and yield one frame fewer.

        Args:
            samples: Block of audio samples.
            length: Number of samples of `samples` to use. Defaults to all.

        Returns:
            True if a row was appended. False if the segmenter is not
            initialised for constant-Q features or the block is shorter than
            `get_window_size()`; the condition is logged.
        """
        if self.constq is None:
            logger.error("NotInitialised: cannot extract features for feature type "
                         f"'{self.feature_type.value}' (or initialise() not called).")
            return False

        samples_arr = np.asarray(samples, dtype=np.float64).ravel()
        n_samples = samples_arr.shape[0] if length is None else min(int(length), samples_arr.shape[0])
        if n_samples < self.get_window_size():
            logger.error(f"InsufficientSamples: block has {n_samples} samples, "
                         f"window size is {self.get_window_size()}.")
            return False

        fft_length = self.constq.fft_length
        if self.window is None or self.window.size != fft_length:
            self.window = Window('hamming', fft_length)

        source = samples_arr[:n_samples]
        if self.decimator is not None:
            source = self.decimator.process(source)
        n_source = source.shape[0]

        cq = np.zeros(self.n_coeff, dtype=np.float64)
        frames = 0
        origin = 0
        while origin <= n_source:
            # At least one frame per block, but no incomplete frames after it
            if origin > 0 and origin + fft_length > n_source:
                break
            frame = np.zeros(fft_length, dtype=np.float64)
            available = source[origin:origin + fft_length]
            frame[:available.shape[0]] = available

            frame = self.window.cut(swap_halves(frame))
            real, imag = real_forward_fft(frame)
            cq_real, cq_imag = self.constq.process(real, imag)
            cq += np.sqrt(cq_real * cq_real + cq_imag * cq_imag)
            frames += 1
            origin += fft_length // 2

        cq /= frames
        self._features.append(cq)
        logger.debug(f"Feature row {len(self._features)}: {frames} frames from {n_source} samples.")
        return True

    def set_features(self, features: Sequence[Sequence[float]]):
        """
        Replaces the feature matrix with externally computed rows.

        The rows bypass the spectral frontend and are labeled with the
        generic classifier path. The constant-Q transform and decimator are
        released, so `extract_features` is refused until `initialise` is
        called again.

        Raises:
            ValueError: If rows differ in length.
        """
        rows = [np.asarray(row, dtype=np.float64).ravel() for row in features]
        widths = {row.shape[0] for row in rows}
        if len(widths) > 1:
            raise ValueError(f"All feature rows must have the same length, got lengths {sorted(widths)}.")
        self._features = rows
        self.feature_type = FeatureType.UNKNOWN
        self.constq = None
        self.decimator = None
        logger.info(f"Injected {len(rows)} external feature rows "
                    f"of width {widths.pop() if widths else 0}.")

    # --- Segmentation ---

    def segment(self, n_clusters: Optional[int] = None):
        """
        Labels the accumulated feature rows and stores the resulting
        segmentation, available through `segmentation`.

        Releases the constant-Q transform and decimator and clears the
        feature matrix; extract features again (after `initialise`) before
        the next call.

        Args:
            n_clusters: Overrides the number of segment types for this and
                        subsequent calls.
        """
        if n_clusters is not None:
            if n_clusters <= 0:
                raise ValueError(f"n_clusters must be positive, got {n_clusters}.")
            self.n_clusters = int(n_clusters)

        self.constq = None
        self.decimator = None

        if not self._features:
            logger.error("EmptyFeatureMatrix: segment() called with no feature rows. "
                         "Storing an empty segmentation.")
            self._segmentation = Segmentation(sample_rate=self.sample_rate, n_segment_types=self.n_clusters)
            return

        source = self.feature_source
        n_rows = len(self._features)
        if source is FeatureSource.DERIVED_CONSTANT_Q:
            # Extra column for the normalised envelope computed by the classifier
            matrix = np.zeros((n_rows, self.n_coeff + 1), dtype=np.float64)
            for i, row in enumerate(self._features):
                matrix[i, :self.n_coeff] = row[:self.n_coeff]
        else:
            width = self._features[0].shape[0]
            matrix = np.zeros((n_rows, width), dtype=np.float64)
            for i, row in enumerate(self._features):
                matrix[i, :] = row[:width]

        logger.info(f"Segmenting {n_rows} feature rows with {matrix.shape[1]} columns "
                    f"(n_coeff={self.n_coeff}, n_components={self.config.n_components}).")

        params = LabelingParams(
            source=source,
            feature_type=self.feature_type,
            n_bins=self.config.n_bins,
            n_coeff=self.n_coeff,
            n_hmm_states=self.config.n_hmm_states,
            histogram_length=self.config.histogram_length,
            n_clusters=self.n_clusters,
            neighbourhood_limit=self.config.neighbourhood_limit,
        )
        labels = np.asarray(self.classifier.label(matrix, params), dtype=np.int64).ravel()
        if labels.shape[0] != n_rows:
            raise ValueError(f"Classifier returned {labels.shape[0]} labels for {n_rows} feature rows.")

        self._segmentation = make_segmentation(
            labels,
            hop_size=self.get_hop_size(),
            sample_rate=self.sample_rate,
            n_segment_types=self.n_clusters,
        )
        self.clear()
        logger.info(f"Segmentation complete: {len(self._segmentation)} segments.")

    def clear(self):
        """Discards the accumulated feature rows."""
        self._features = []
