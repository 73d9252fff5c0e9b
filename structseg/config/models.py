# structseg/config/models.py

"""
Pydantic models for defining the structure and validation of the structseg configuration (structseg.toml).
Uses Pydantic V2 syntax.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Helper Functions ---

def _resolve_path(path: Union[str, Path]) -> Path:
    """Resolves and expands user paths."""
    return Path(path).expanduser().resolve()

# --- Enumerations ---

class FeatureType(str, Enum):
    """Feature representation handed to the classifier."""
    UNKNOWN = "unknown"  # Externally supplied features of arbitrary width
    CONSTQ = "constq"    # Block-averaged constant-Q magnitudes
    CHROMA = "chroma"    # Constant-Q magnitudes folded into pitch classes by the classifier

# --- Model Definitions ---

class SegmenterConfig(BaseModel):
    """
    Parameters of the structural segmenter. Immutable once constructed.

    Durations are in seconds and are converted to samples against the rate
    passed to `Segmenter.initialise`.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    feature_type: FeatureType = Field(FeatureType.CONSTQ, description="Feature representation to extract.")
    hop_size: float = Field(0.2, gt=0, description="Spacing of feature blocks in seconds.")
    window_size: float = Field(0.6, gt=0, description="Length of one feature block in seconds.")
    fmin: float = Field(62.0, gt=0, description="Lowest constant-Q frequency (Hz).")
    fmax: float = Field(16000.0, gt=0, description="Highest constant-Q frequency (Hz).")
    n_bins: int = Field(12, gt=0, description="Constant-Q bins per octave.")
    n_components: int = Field(20, gt=0, description="PCA components used by the classifier.")
    n_hmm_states: int = Field(40, gt=0, description="Number of HMM states.")
    n_clusters: int = Field(10, gt=0, description="Number of segment types.")
    histogram_length: int = Field(15, gt=0, description="Frames per state histogram.")
    neighbourhood_limit: int = Field(20, gt=0, description="Frames considered when smoothing cluster labels.")

    @model_validator(mode='after')
    def check_frequency_range(self) -> 'SegmenterConfig':
        """Ensure the constant-Q range is not empty."""
        if self.fmin >= self.fmax:
            raise ValueError(f"fmin ({self.fmin}) must be lower than fmax ({self.fmax}).")
        return self

class DefaultsConfig(BaseModel):
    """Default processing parameters."""
    default_sample_rate: Optional[int] = Field(None, gt=0, description="Rate input audio is resampled to before analysis. None keeps the native rate.")
    output_format: str = Field("csv", description="Format of segmentations saved without an explicit output path (csv or json).")

    @field_validator('output_format')
    @classmethod
    def check_output_format(cls, value: str) -> str:
        """Validate the segmentation output format."""
        lower_value = value.lower().lstrip(".")
        if lower_value not in {"csv", "json"}:
            raise ValueError(f"Invalid output format '{value}'. Must be 'csv' or 'json'.")
        return lower_value

class PathsConfig(BaseModel):
    """Configuration for file paths used by structseg."""
    output_dir: Path = Field(default=Path("./structseg_output"), description="Directory for segmentations saved without an explicit output path.")
    log_directory: Path = Field(default=Path("./structseg_logs"), description="Directory for log files.")

    @field_validator('output_dir', 'log_directory', mode='before')
    @classmethod
    def resolve_paths_before_validation(cls, value: Any) -> Path:
        """Resolves paths before Pydantic validates them."""
        if isinstance(value, (str, Path)):
            return _resolve_path(value)
        return value

class LoggingConfig(BaseModel):
    """Logging configuration settings."""
    log_file_enabled: bool = Field(False, description="Enable/disable persistent file logging.")
    log_filename_template: str = Field("structseg_run_{timestamp:%Y%m%d_%H%M%S}.log", description="Naming pattern for log files.")
    log_level_file: str = Field("DEBUG", description="Minimum level for file logs (DEBUG, INFO, WARNING, ERROR, CRITICAL).")
    log_format: str = Field("%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)", description="Format string for file log entries.")
    log_level_console: str = Field("WARNING", description="Minimum level for console output when no -v/-q flag is given.")

    @field_validator('log_level_file', 'log_level_console')
    @classmethod
    def check_log_level(cls, value: str) -> str:
        """Validate log level strings."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            raise ValueError(f"Invalid log level '{value}'. Must be one of {allowed_levels}")
        return upper_value

class StructsegConfig(BaseModel):
    """Root configuration model for structseg."""
    model_config = ConfigDict(
        extra='allow',
        validate_assignment=True
    )

    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    segmenter: SegmenterConfig = Field(default_factory=SegmenterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
