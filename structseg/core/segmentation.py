# structseg/core/segmentation.py

"""
Segmentation result model and the run-length segment builder.

A segmentation is an ordered, contiguous list of typed segments covering
[0, n_frames * hop_size) samples with no gaps or overlaps.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class Segment(BaseModel):
    """One labeled region. Offsets are in samples, `end` is exclusive."""
    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    type: int

    @model_validator(mode='after')
    def check_order(self) -> 'Segment':
        if self.end < self.start:
            raise ValueError(f"Segment end ({self.end}) precedes start ({self.start}).")
        return self

    @property
    def length(self) -> int:
        return self.end - self.start


class Segmentation(BaseModel):
    """
    Ordered, contiguous segments plus the sample rate they refer to and the
    declared number of segment types.
    """
    model_config = ConfigDict(frozen=True)

    segments: Tuple[Segment, ...] = ()
    sample_rate: int = 0
    n_segment_types: int = 0

    @model_validator(mode='after')
    def check_contiguous(self) -> 'Segmentation':
        if self.segments and self.segments[0].start != 0:
            raise ValueError("The first segment must start at sample 0.")
        for previous, current in zip(self.segments, self.segments[1:]):
            if previous.end != current.start:
                raise ValueError(f"Segments are not contiguous: {previous.end} != {current.start}.")
        return self

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def total_length(self) -> int:
        """Samples covered by the segmentation."""
        return self.segments[-1].end if self.segments else 0

    def boundaries(self) -> List[int]:
        """Sample offsets at which the segment type changes."""
        return [segment.start for segment in self.segments[1:]]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Tabulates the segmentation.

        Returns:
            DataFrame with columns start, end, type, start_sec, end_sec.
            Time columns are NaN when the sample rate is unknown (0).
        """
        df = pd.DataFrame(
            [(s.start, s.end, s.type) for s in self.segments],
            columns=["start", "end", "type"],
        ).astype({"start": np.int64, "end": np.int64, "type": np.int64})
        rate = float(self.sample_rate) if self.sample_rate > 0 else np.nan
        df["start_sec"] = df["start"] / rate
        df["end_sec"] = df["end"] / rate
        return df


def make_segmentation(
    labels: Sequence[int],
    hop_size: int,
    sample_rate: int,
    n_segment_types: int,
) -> Segmentation:
    """
    Run-length encodes a per-frame label sequence into a segmentation.

    A new segment starts wherever the label differs from the previous frame's
    label; segment `i` ends where segment `i + 1` starts, and the last segment
    ends at `len(labels) * hop_size`.

    Args:
        labels: One integer label per feature frame, in temporal order.
        hop_size: Frame spacing in samples.
        sample_rate: Sample rate recorded on the result.
        n_segment_types: Declared number of segment types recorded on the result.

    Returns:
        A Segmentation. Empty (no segments) if `labels` is empty.
    """
    labels_arr: NDArray[np.int64] = np.asarray(labels, dtype=np.int64).ravel()
    if hop_size < 0:
        raise ValueError(f"hop_size must be non-negative, got {hop_size}.")
    if labels_arr.size == 0:
        logger.debug("No labels given; returning an empty segmentation.")
        return Segmentation(sample_rate=sample_rate, n_segment_types=n_segment_types)

    # Indices i where labels[i] != labels[i - 1]
    change_points = np.flatnonzero(labels_arr[1:] != labels_arr[:-1]) + 1
    starts = np.concatenate(([0], change_points))
    ends = np.concatenate((change_points, [labels_arr.size]))

    segments = tuple(
        Segment(start=int(start) * hop_size, end=int(end) * hop_size, type=int(labels_arr[start]))
        for start, end in zip(starts, ends)
    )
    logger.debug(f"Built {len(segments)} segments from {labels_arr.size} labels (hop={hop_size}).")
    return Segmentation(segments=segments, sample_rate=sample_rate, n_segment_types=n_segment_types)
