# structseg/__init__.py

"""
structseg: structural segmentation of audio.

Extracts constant-Q features block by block, labels each block with an
HMM/histogram clustering classifier and collapses the labels into contiguous,
time-stamped segments.
"""

from .version import __version__

__all__ = ["__version__"]
