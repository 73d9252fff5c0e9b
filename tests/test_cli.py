# tests/test_cli.py

import pytest
from click.testing import CliRunner

from structseg.cli.main import cli
from structseg.version import __version__


def test_cli_help():
    """Test the main help message."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "structural segmentation of audio" in result.output
    assert "Usage: main-cli [OPTIONS] COMMAND [ARGS]..." in result.output
    assert "segment" in result.output

def test_cli_version():
    """Test the version option."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"structseg, version {__version__}" in result.output.lower()

def test_cli_no_command():
    """Invoking without a command shows the usage."""
    runner = CliRunner()
    result = runner.invoke(cli, [])
    # click >= 8.2 exits with 2 when a group is called without a command
    assert result.exit_code in (0, 2)
    assert "Usage: main-cli [OPTIONS] COMMAND [ARGS]..." in result.output

def test_segment_group_help():
    runner = CliRunner()
    result = runner.invoke(cli, ["segment", "--help"])
    assert result.exit_code == 0
    assert "structure" in result.output
