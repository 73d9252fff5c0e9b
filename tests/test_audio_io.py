# tests/test_audio_io.py

import json

import pytest
import numpy as np
import pandas as pd
import soundfile as sf
from pathlib import Path

from structseg.core.audio_io import iter_blocks, load_audio, save_segmentation
from structseg.core.segmentation import make_segmentation

# --- Test Fixtures ---

@pytest.fixture
def wav_file(tmp_path: Path) -> Path:
    """One second of a 440 Hz stereo tone at 22050 Hz."""
    sr = 22050
    t = np.arange(sr) / sr
    tone = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    path = tmp_path / "tone.wav"
    sf.write(str(path), np.column_stack((tone, tone)), sr, subtype='PCM_16')
    return path

@pytest.fixture
def segmentation():
    return make_segmentation([0, 0, 1, 1, 0], hop_size=2205, sample_rate=22050, n_segment_types=2)

# --- Test load_audio ---

def test_load_audio_native_rate(wav_file: Path):
    data, sr = load_audio(wav_file)
    assert sr == 22050
    assert data.dtype == np.float64
    assert data.ndim == 1
    assert data.shape[0] == 22050

def test_load_audio_resampled(wav_file: Path):
    data, sr = load_audio(wav_file, sr=11025)
    assert sr == 11025
    assert abs(data.shape[0] - 11025) <= 1

def test_load_audio_stereo(wav_file: Path):
    data, _ = load_audio(wav_file, mono=False)
    assert data.shape == (2, 22050)

def test_load_audio_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_audio(tmp_path / "missing.wav")

def test_load_audio_directory(tmp_path: Path):
    with pytest.raises(ValueError):
        load_audio(tmp_path)

# --- Test iter_blocks ---

def test_iter_blocks_full_blocks_only():
    y = np.arange(10.0)
    blocks = list(iter_blocks(y, block_size=4, hop_size=3))
    assert [b.tolist() for b in blocks] == [[0, 1, 2, 3], [3, 4, 5, 6], [6, 7, 8, 9]]

def test_iter_blocks_short_signal():
    assert list(iter_blocks(np.zeros(3), block_size=4, hop_size=1)) == []

def test_iter_blocks_rejects_invalid_sizes():
    with pytest.raises(ValueError):
        list(iter_blocks(np.zeros(10), block_size=0, hop_size=1))

# --- Test save_segmentation ---

def test_save_segmentation_csv(tmp_path: Path, segmentation):
    out = tmp_path / "nested" / "segments.csv"
    save_segmentation(segmentation, out)
    df = pd.read_csv(out)
    assert list(df.columns) == ["start", "end", "type", "start_sec", "end_sec"]
    assert df["start"].tolist() == [0, 4410, 8820]
    assert df["end"].tolist() == [4410, 8820, 11025]
    assert df["type"].tolist() == [0, 1, 0]
    np.testing.assert_allclose(df["end_sec"], [0.2, 0.4, 0.5])

def test_save_segmentation_json(tmp_path: Path, segmentation):
    out = tmp_path / "segments.json"
    save_segmentation(segmentation, out)
    records = json.loads(out.read_text())
    assert len(records) == 3
    assert records[1]["start"] == 4410
    assert records[1]["type"] == 1

def test_save_segmentation_rejects_extension(tmp_path: Path, segmentation):
    with pytest.raises(ValueError):
        save_segmentation(segmentation, tmp_path / "segments.txt")
