# structseg/core/classifier.py

"""
Frame labeling for structural segmentation.

Defines the classifier interface used by the segmenter and the default
implementation: features are normalised, reduced with PCA, decoded into a
sequence of HMM states, summarised as local state histograms and clustered
into segment types. Uses scikit-learn for PCA, Gaussian mixtures, scaling and
k-means, scipy.stats for the state emission densities and librosa for
Viterbi decoding.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from enum import Enum

import librosa
import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field
from scipy.stats import norm
from sklearn.cluster import KMeans
from sklearn.decomposition import PCA
from sklearn.exceptions import ConvergenceWarning
from sklearn.mixture import GaussianMixture
from sklearn.preprocessing import StandardScaler

from structseg.config.models import FeatureType

logger = logging.getLogger(__name__)

_EPSILON = np.finfo(np.float64).eps


class FeatureSource(str, Enum):
    """Where the rows of a feature matrix came from."""
    DERIVED_CONSTANT_Q = "derived_constant_q"     # extract_features; one reserved envelope column
    EXTERNALLY_SUPPLIED = "externally_supplied"   # set_features; rows used as given


class LabelingParams(BaseModel):
    """Everything a classifier needs besides the feature matrix itself."""
    model_config = ConfigDict(frozen=True)

    source: FeatureSource
    feature_type: FeatureType
    n_bins: int = Field(..., gt=0, description="Constant-Q bins per octave.")
    n_coeff: int = Field(..., ge=0, description="Constant-Q coefficients per row (derived features).")
    n_hmm_states: int = Field(..., gt=0)
    histogram_length: int = Field(..., gt=0)
    n_clusters: int = Field(..., gt=0)
    neighbourhood_limit: int = Field(..., gt=0)


class SegmentClassifier(ABC):
    """Maps a feature matrix to one integer label per row."""

    @abstractmethod
    def label(self, features: NDArray[np.float64], params: LabelingParams) -> NDArray[np.int64]:
        """
        Labels every row of `features`.

        Args:
            features: Matrix of shape (n_frames, n_columns). For derived
                      constant-Q features the last column is reserved scratch
                      space for the normalised envelope.
            params: Labeling parameters.

        Returns:
            Integer array of length n_frames.
        """


# --- Building blocks ---

def fold_chroma(cq: NDArray[np.float64], bins_per_octave: int) -> NDArray[np.float64]:
    """Sums constant-Q bins that are a whole number of octaves apart."""
    chroma = np.zeros((cq.shape[0], bins_per_octave), dtype=np.float64)
    for pitch_class in range(bins_per_octave):
        chroma[:, pitch_class] = cq[:, pitch_class::bins_per_octave].sum(axis=1)
    return chroma


def state_histograms(states: NDArray[np.int64], n_states: int, length: int) -> NDArray[np.float64]:
    """
    Normalised histogram of the states found in a window of `length` frames
    centred on each frame (clipped at the sequence edges).
    """
    n_frames = states.shape[0]
    one_hot = np.zeros((n_frames + 1, n_states), dtype=np.float64)
    one_hot[np.arange(1, n_frames + 1), states] = 1.0
    cumulative = np.cumsum(one_hot, axis=0)

    frames = np.arange(n_frames)
    lo = np.clip(frames - length // 2, 0, n_frames)
    hi = np.clip(lo + length, 0, n_frames)
    counts = cumulative[hi] - cumulative[lo]
    return counts / (hi - lo)[:, None]


def smooth_labels(labels: NDArray[np.int64], neighbourhood_limit: int) -> NDArray[np.int64]:
    """
    Replaces each label by the most common label within `neighbourhood_limit`
    frames around it. Ties keep the original label.
    """
    if neighbourhood_limit <= 1 or labels.shape[0] < 2:
        return labels.copy()
    half = neighbourhood_limit // 2
    n_labels = int(labels.max()) + 1
    smoothed = labels.copy()
    for t in range(labels.shape[0]):
        counts = np.bincount(labels[max(0, t - half):t + half + 1], minlength=n_labels)
        best = int(counts.argmax())
        if counts[labels[t]] < counts[best]:
            smoothed[t] = best
    return smoothed


def order_by_first_appearance(labels: NDArray[np.int64]) -> NDArray[np.int64]:
    """Renumbers labels so that they first appear in the order 0, 1, 2, ..."""
    _, first_index, inverse = np.unique(labels, return_index=True, return_inverse=True)
    rank = np.argsort(np.argsort(first_index))
    return rank[inverse].astype(np.int64)


# --- Default classifier ---

class HMMClusterClassifier(SegmentClassifier):
    """
    PCA + HMM state decoding + state-histogram clustering.

    Derived constant-Q rows are L2-normalised and their norm, scaled to the
    loudest frame, is written into the reserved envelope column. Constant-Q
    bins are then converted to dB, or folded into pitch classes for chroma.
    Externally supplied rows are standardised per column.
    """

    def __init__(self, n_components: int = 20, random_state: int = 0, max_iter: int = 100):
        self.n_components = n_components
        self.random_state = random_state
        self.max_iter = max_iter

    def label(self, features: NDArray[np.float64], params: LabelingParams) -> NDArray[np.int64]:
        features = np.asarray(features, dtype=np.float64)
        if features.ndim != 2:
            raise ValueError(f"Feature matrix must be 2D, got shape {features.shape}.")
        n_frames = features.shape[0]
        logger.info(f"Labeling {n_frames} frames ({params.source.value}, {params.feature_type.value}): "
                    f"states={params.n_hmm_states}, clusters={params.n_clusters}, "
                    f"histogram={params.histogram_length}, neighbourhood={params.neighbourhood_limit}")
        if n_frames == 0:
            return np.zeros(0, dtype=np.int64)
        if n_frames == 1:
            return np.zeros(1, dtype=np.int64)

        if params.source is FeatureSource.DERIVED_CONSTANT_Q:
            data = self._prepare_constant_q(features, params)
        else:
            data = StandardScaler().fit_transform(features)

        if np.unique(data, axis=0).shape[0] == 1:
            logger.warning("All feature rows are identical; assigning a single label.")
            return np.zeros(n_frames, dtype=np.int64)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            reduced = self._reduce(data)
            states, n_states = self._decode_states(reduced, params.n_hmm_states)
            histograms = state_histograms(states, n_states, params.histogram_length)
            labels = self._cluster(histograms, params.n_clusters)

        labels = smooth_labels(labels, params.neighbourhood_limit)
        return order_by_first_appearance(labels)

    def _prepare_constant_q(self, features: NDArray[np.float64], params: LabelingParams) -> NDArray[np.float64]:
        n_coeff = params.n_coeff
        if features.shape[1] < n_coeff + 1:
            raise ValueError(f"Derived features need {n_coeff + 1} columns (coefficients plus envelope), "
                             f"got {features.shape[1]}.")
        bins = features[:, :n_coeff]
        norms = np.linalg.norm(bins, axis=1)
        normalised = bins / np.where(norms > 0, norms, 1.0)[:, None]
        loudest = norms.max()
        envelope = norms / loudest if loudest > 0 else np.zeros_like(norms)
        features[:, n_coeff] = envelope

        if params.feature_type is FeatureType.CHROMA:
            spectral = fold_chroma(normalised, params.n_bins)
        else:
            spectral = 20.0 * np.log10(normalised + _EPSILON)
        return np.column_stack((spectral, envelope))

    def _reduce(self, data: NDArray[np.float64]) -> NDArray[np.float64]:
        n_components = min(self.n_components, data.shape[0], data.shape[1])
        logger.debug(f"PCA: {data.shape[1]} -> {n_components} dimensions.")
        return PCA(n_components=n_components, random_state=self.random_state).fit_transform(data)

    def _decode_states(self, reduced: NDArray[np.float64], n_hmm_states: int):
        distinct = np.unique(reduced, axis=0).shape[0]
        n_states = max(1, min(n_hmm_states, distinct))
        if n_states == 1:
            return np.zeros(reduced.shape[0], dtype=np.int64), 1

        model = GaussianMixture(
            n_components=n_states,
            covariance_type='diag',
            reg_covar=1e-4,
            max_iter=self.max_iter,
            random_state=self.random_state,
        ).fit(reduced)

        # Transition matrix from posterior co-occurrence of consecutive frames
        posteriors = model.predict_proba(reduced)
        transitions = posteriors[:-1].T @ posteriors[1:] + 1e-3
        transitions /= transitions.sum(axis=1, keepdims=True)

        log_emission = norm.logpdf(
            reduced[:, None, :],
            loc=model.means_[None, :, :],
            scale=np.sqrt(model.covariances_)[None, :, :],
        ).sum(axis=2)
        # Per-frame scaling keeps likelihoods in [0, 1] and leaves the best path unchanged
        likelihood = np.exp(log_emission - log_emission.max(axis=1, keepdims=True)).T
        states = librosa.sequence.viterbi(likelihood, transitions, p_init=model.weights_ / model.weights_.sum())
        states = np.asarray(states, dtype=np.int64)
        logger.debug(f"Decoded {np.unique(states).size} distinct states out of {n_states}.")
        return states, n_states

    def _cluster(self, histograms: NDArray[np.float64], n_clusters: int) -> NDArray[np.int64]:
        distinct = np.unique(histograms, axis=0).shape[0]
        n_clusters = max(1, min(n_clusters, distinct))
        if n_clusters == 1:
            return np.zeros(histograms.shape[0], dtype=np.int64)
        kmeans = KMeans(n_clusters=n_clusters, n_init=10, random_state=self.random_state)
        return kmeans.fit_predict(histograms).astype(np.int64)
