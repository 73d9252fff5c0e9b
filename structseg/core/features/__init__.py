# structseg/core/features/__init__.py

"""
Alternative feature front ends whose output is injected into the segmenter
with `Segmenter.set_features`.
"""

from . import cepstral

__all__ = [
    "cepstral",
]
