# structseg/core/__init__.py

"""
Core Processing Package for structseg.

Contains modules for:
- Frame DSP primitives (window, FFT, half-swap)
- Decimation
- Constant-Q transform
- Frame labeling (classifier interface and default HMM/cluster classifier)
- Segmentation model and segment builder
- The structural segmenter tying them together
- Alternative feature front ends (MFCC)
"""

from . import dsp
from . import decimator
from . import constant_q
from . import classifier
from . import segmentation
from . import segmenter
from . import features
from . import audio_io

__all__ = [
    "dsp",
    "decimator",
    "constant_q",
    "classifier",
    "segmentation",
    "segmenter",
    "features",
    "audio_io",
]
