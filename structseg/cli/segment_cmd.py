# structseg/cli/segment_cmd.py

"""
CLI command for structural segmentation of audio files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click
import numpy as np
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from structseg.config import FeatureType, SegmenterConfig, StructsegConfig
from structseg.core.audio_io import iter_blocks, load_audio, save_segmentation
from structseg.core.features.cepstral import MFCCConfig, mfcc_block
from structseg.core.segmentation import Segmentation
from structseg.core.segmenter import Segmenter

logger = logging.getLogger(__name__)

FEATURE_CHOICES = ["constq", "chroma", "mfcc"]


def _build_segmenter_config(base: SegmenterConfig, overrides: Dict[str, Any]) -> SegmenterConfig:
    """Applies CLI overrides on top of the configured segmenter parameters (re-validated)."""
    values = base.model_dump()
    values.update({key: value for key, value in overrides.items() if value is not None})
    return SegmenterConfig(**values)


def _default_output_path(input_path: Path, config: StructsegConfig) -> Path:
    """Output path used when -o is not given."""
    return config.paths.output_dir / f"{input_path.stem}_segments.{config.defaults.output_format}"


def _print_summary(segmentation: Segmentation):
    """Prints the segments as a table."""
    table = Table(title=f"{len(segmentation)} segments ({segmentation.n_segment_types} types)")
    table.add_column("#", justify="right")
    table.add_column("Type", justify="right")
    table.add_column("Start (s)", justify="right")
    table.add_column("End (s)", justify="right")
    df = segmentation.to_dataframe()
    for i, row in df.iterrows():
        table.add_row(str(i + 1), str(row["type"]), f"{row['start_sec']:.2f}", f"{row['end_sec']:.2f}")
    Console().print(table)


@click.group("segment")
@click.pass_context
def segment_cmd(ctx):
    """Segment audio into labeled structural regions."""
    pass


@segment_cmd.command("structure")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("-o", "--output", type=click.Path(dir_okay=False, resolve_path=True), default=None,
              help="Output file for the segmentation (.csv or .json). Defaults to "
                   "<paths.output_dir>/<input stem>_segments.<defaults.output_format>.")
@click.option("--features", "feature_kind", type=click.Choice(FEATURE_CHOICES), default=None,
              help="Feature front end. Defaults to the configured feature type.")
@click.option("--clusters", type=int, default=None, help="Number of segment types.")
@click.option("--hop", type=float, default=None, help="Block spacing in seconds.")
@click.option("--window", type=float, default=None, help="Block length in seconds.")
@click.option("--sr", "sample_rate", type=int, default=None,
              help="Resample the input to this rate before analysis. "
                   "Defaults to defaults.default_sample_rate (native rate if unset).")
@click.option("--summary/--no-summary", default=True, show_default=True,
              help="Print a table of the segments.")
@click.pass_context
def segment_structure_cmd(
    ctx,
    input_file: str,
    output: Optional[str],
    feature_kind: Optional[str],
    clusters: Optional[int],
    hop: Optional[float],
    window: Optional[float],
    sample_rate: Optional[int],
    summary: bool,
):
    """Find repeated structural regions (e.g. verse/chorus) in an audio file."""
    input_path = Path(input_file)
    config: StructsegConfig = ctx.obj['config'] if isinstance(ctx.obj, dict) and 'config' in ctx.obj else StructsegConfig()
    output_path = Path(output) if output is not None else _default_output_path(input_path, config)
    if sample_rate is None:
        sample_rate = config.defaults.default_sample_rate

    if output_path.suffix.lower() not in {".csv", ".json"}:
        raise click.UsageError(f"Unsupported output extension '{output_path.suffix}'. Use .csv or .json.")
    if clusters is not None and clusters <= 0:
        raise click.UsageError("--clusters must be positive.")

    use_mfcc = feature_kind == "mfcc"
    overrides: Dict[str, Any] = {"hop_size": hop, "window_size": window}
    if use_mfcc:
        overrides["feature_type"] = FeatureType.UNKNOWN
    elif feature_kind is not None:
        overrides["feature_type"] = FeatureType(feature_kind)
    try:
        seg_config = _build_segmenter_config(config.segmenter, overrides)
    except ValidationError as e:
        raise click.UsageError(f"Invalid segmenter parameters: {e}")

    logger.info(f"Running structural segmentation on: {input_path}")
    logger.info(f"Params: {seg_config.model_dump()}")

    try:
        y, sr = load_audio(input_path, sr=sample_rate)
        if y.ndim != 1:
            y = np.mean(y, axis=0)

        segmenter = Segmenter(seg_config)
        segmenter.initialise(sr)
        window_size = segmenter.get_window_size()
        hop_size = segmenter.get_hop_size()
        if window_size <= 0 or hop_size <= 0:
            raise click.UsageError("Window and hop sizes must be at least one sample at this sample rate.")

        if use_mfcc:
            mfcc_config = MFCCConfig(fs=sr)
            rows = [mfcc_block(block, mfcc_config) for block in iter_blocks(y, window_size, hop_size)]
            if rows:
                segmenter.set_features(rows)
        else:
            for block in iter_blocks(y, window_size, hop_size):
                segmenter.extract_features(block)

        if segmenter.feature_count == 0:
            raise click.UsageError(f"Input audio is shorter than one analysis window ({window_size} samples).")

        segmenter.segment(n_clusters=clusters)
        segmentation = segmenter.segmentation
        save_segmentation(segmentation, output_path)

        if summary:
            _print_summary(segmentation)
        click.echo(f"Successfully segmented '{input_path.name}' into {len(segmentation)} segments in '{output_path}'.")

    except click.UsageError:
        raise
    except FileNotFoundError:
        raise click.UsageError(f"Input file not found: {input_path}")
    except ValueError as e:
        raise click.UsageError(f"Error during segmentation: {e}")
    except Exception as e:
        logger.error(f"An unexpected error occurred during segmentation: {e}", exc_info=True)
        raise click.Abort(f"An unexpected error occurred: {e}")
