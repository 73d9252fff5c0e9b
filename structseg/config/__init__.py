# structseg/config/__init__.py

"""
Configuration management for structseg.

This package handles loading configuration from files (TOML),
environment variables, and internal defaults, providing a unified
configuration object.
"""

from .models import FeatureType, SegmenterConfig, StructsegConfig
from .loaders import load_configuration

__all__ = [
    "FeatureType",
    "SegmenterConfig",
    "StructsegConfig",
    "load_configuration",
]
