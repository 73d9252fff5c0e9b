# tests/test_cli_segment.py

"""
Tests for the 'structseg segment structure' CLI command.
"""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
from click.testing import CliRunner

from structseg.cli.main import cli
from structseg.config import FeatureType, StructsegConfig
from structseg.core.segmenter import Segmenter

SR = 8000

# --- Test Fixtures ---

@pytest.fixture
def runner() -> CliRunner:
    """Provides a Click CliRunner instance."""
    return CliRunner()

@pytest.fixture
def config() -> StructsegConfig:
    """Small, fast segmenter settings for the 8 kHz test signal."""
    return StructsegConfig(segmenter={"fmax": 4000.0, "n_hmm_states": 6, "n_clusters": 3,
                                      "histogram_length": 5, "neighbourhood_limit": 3})

@pytest.fixture
def mock_audio_read(mocker):
    """Mocks load_audio to return two alternating tones, 9 seconds in total."""
    t = np.arange(3 * SR) / SR
    audio = np.concatenate([0.5 * np.sin(2 * np.pi * f * t) for f in (220.0, 880.0, 220.0)])
    mock = mocker.patch("structseg.cli.segment_cmd.load_audio", return_value=(audio, SR))
    return mock, audio

@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    path = tmp_path / "input.wav"
    path.touch()
    return path

def _invoke(runner: CliRunner, config: StructsegConfig, args):
    return runner.invoke(cli, args, obj={'config': config})

def _n_blocks(n_samples: int, window: float = 0.6, hop: float = 0.2) -> int:
    return 1 + (n_samples - int(window * SR)) // int(hop * SR)

# --- Test Cases ---

def test_segment_structure_csv(runner, config, mock_audio_read, input_file, tmp_path):
    mock_read, audio = mock_audio_read
    output = tmp_path / "out" / "segments.csv"

    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(output), "--no-summary"])

    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    assert "Successfully segmented 'input.wav'" in result.output
    mock_read.assert_called_once()
    assert mock_read.call_args.args[0] == input_file.resolve()
    assert mock_read.call_args.kwargs == {"sr": None}

    df = pd.read_csv(output)
    assert list(df.columns) == ["start", "end", "type", "start_sec", "end_sec"]
    assert df["start"].iloc[0] == 0
    assert df["end"].iloc[-1] == _n_blocks(audio.shape[0]) * int(0.2 * SR)
    assert (df["end"].iloc[:-1].to_numpy() == df["start"].iloc[1:].to_numpy()).all()
    assert df["type"].between(0, 2).all()

def test_segment_structure_json_with_summary(runner, config, mock_audio_read, input_file, tmp_path):
    output = tmp_path / "segments.json"
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(output)])
    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    assert "Start (s)" in result.output
    assert len(pd.read_json(output)) >= 1

def test_segment_structure_options_reach_segmenter(runner, config, mock_audio_read, input_file, tmp_path, mocker):
    segment_spy = mocker.spy(Segmenter, "segment")
    output = tmp_path / "segments.csv"
    args = [
        "segment", "structure", str(input_file), "-o", str(output),
        "--features", "chroma", "--clusters", "2", "--hop", "0.5", "--window", "1.0", "--no-summary",
    ]
    result = _invoke(runner, config, args)

    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    segmenter = segment_spy.call_args.args[0]
    assert segment_spy.call_args.kwargs == {"n_clusters": 2}
    assert segmenter.config.feature_type is FeatureType.CHROMA
    assert segmenter.config.hop_size == 0.5
    assert segmenter.config.window_size == 1.0
    df = pd.read_csv(output)
    assert df["end"].iloc[-1] == _n_blocks(9 * SR, window=1.0, hop=0.5) * int(0.5 * SR)
    assert df["type"].max() <= 1

def test_segment_structure_mfcc(runner, config, mock_audio_read, input_file, tmp_path, mocker):
    extract_spy = mocker.spy(Segmenter, "extract_features")
    set_spy = mocker.spy(Segmenter, "set_features")
    output = tmp_path / "segments.csv"

    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(output),
                                      "--features", "mfcc", "--no-summary"])

    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    extract_spy.assert_not_called()
    set_spy.assert_called_once()
    rows = set_spy.call_args.args[1]
    assert len(rows) == _n_blocks(9 * SR)
    assert len(rows[0]) == 20
    assert pd.read_csv(output)["start"].iloc[0] == 0

def test_segment_structure_audio_too_short(runner, config, input_file, tmp_path, mocker):
    mocker.patch("structseg.cli.segment_cmd.load_audio", return_value=(np.zeros(SR // 4), SR))
    output = tmp_path / "segments.csv"
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(output)])
    assert result.exit_code == 2
    assert "shorter than one analysis window" in result.output
    assert not output.exists()

def test_segment_structure_bad_extension(runner, config, mock_audio_read, input_file, tmp_path):
    mock_read, _ = mock_audio_read
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "out.txt")])
    assert result.exit_code == 2
    assert "Unsupported output extension" in result.output
    mock_read.assert_not_called()

def test_segment_structure_invalid_clusters(runner, config, mock_audio_read, input_file, tmp_path):
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "o.csv"),
                                      "--clusters", "0"])
    assert result.exit_code == 2

def test_segment_structure_invalid_hop(runner, config, mock_audio_read, input_file, tmp_path):
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "o.csv"),
                                      "--hop", "-1"])
    assert result.exit_code == 2
    assert "Invalid segmenter parameters" in result.output

def test_segment_structure_load_error(runner, config, input_file, tmp_path, mocker):
    mocker.patch("structseg.cli.segment_cmd.load_audio", side_effect=ValueError("not audio"))
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "o.csv")])
    assert result.exit_code == 2
    assert "not audio" in result.output

def test_segment_structure_missing_input(runner, config, tmp_path):
    result = _invoke(runner, config, ["segment", "structure", str(tmp_path / "missing.wav"),
                                      "-o", str(tmp_path / "o.csv")])
    assert result.exit_code == 2

def test_segment_structure_default_output_path(runner, mock_audio_read, input_file, tmp_path):
    """Without -o the result goes to paths.output_dir in defaults.output_format."""
    config = StructsegConfig(
        segmenter={"fmax": 4000.0, "n_hmm_states": 6, "n_clusters": 3},
        paths={"output_dir": str(tmp_path / "results")},
        defaults={"output_format": "json"},
    )
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "--no-summary"])
    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    expected = (tmp_path / "results").resolve() / "input_segments.json"
    assert expected.exists()
    assert len(pd.read_json(expected)) >= 1

def test_segment_structure_configured_sample_rate(runner, mock_audio_read, input_file, tmp_path):
    mock_read, _ = mock_audio_read
    config = StructsegConfig(segmenter={"fmax": 4000.0, "n_hmm_states": 6, "n_clusters": 3},
                             defaults={"default_sample_rate": 16000})
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "a.csv"),
                                      "--no-summary"])
    assert result.exit_code == 0, f"Output:\n{result.output}\nException:\n{result.exception}"
    assert mock_read.call_args.kwargs == {"sr": 16000}

    # --sr takes precedence over the configured rate
    result = _invoke(runner, config, ["segment", "structure", str(input_file), "-o", str(tmp_path / "b.csv"),
                                      "--sr", "8000", "--no-summary"])
    assert result.exit_code == 0
    assert mock_read.call_args.kwargs == {"sr": 8000}
