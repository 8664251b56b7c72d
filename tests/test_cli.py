"""
Tests for the blockreader CLI.
"""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from blockreader import __version__
from blockreader.cli.main import app

runner = CliRunner()


class TestReadCommand:
    """Tests for `blockreader read`."""

    def test_read_range_to_file(self, mock_env_vars: dict[str, str], temp_dir: Path) -> None:
        """Test reading a range that spans blocks into an output file."""
        source = temp_dir / "source.bin"
        source.write_bytes(bytes(range(30)))
        output = temp_dir / "out" / "slice.bin"

        result = runner.invoke(
            app,
            ["read", str(source), "--start", "5", "--end", "15", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert output.read_bytes() == bytes(range(5, 15))

    def test_read_whole_file_with_block_size(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that --end defaults to the file size and --block-size is honoured."""
        source = temp_dir / "source.bin"
        source.write_bytes(bytes(range(25)))
        output = temp_dir / "all.bin"

        result = runner.invoke(
            app, ["read", str(source), "--block-size", "7", "-o", str(output), "--stats"]
        )

        assert result.exit_code == 0, result.output
        assert output.read_bytes() == bytes(range(25))

    def test_read_past_end_fails(self, mock_env_vars: dict[str, str], temp_dir: Path) -> None:
        """Test that an out-of-range request exits non-zero."""
        source = temp_dir / "source.bin"
        source.write_bytes(bytes(range(10)))

        result = runner.invoke(
            app, ["read", str(source), "--start", "0", "--end", "11", "-o", str(temp_dir / "x")]
        )

        assert result.exit_code == 1

    def test_unsupported_scheme(self, mock_env_vars: dict[str, str]) -> None:
        """Test that unknown URL schemes are rejected."""
        result = runner.invoke(app, ["read", "ftp://example.com/file", "--end", "10"])
        assert result.exit_code == 1

    def test_missing_file(self, mock_env_vars: dict[str, str], temp_dir: Path) -> None:
        """Test that a missing file exits non-zero."""
        result = runner.invoke(app, ["read", str(temp_dir / "missing.bin"), "--end", "10"])
        assert result.exit_code == 1


class TestInfoCommands:
    """Tests for `config` and `version`."""

    def test_config(self, mock_env_vars: dict[str, str]) -> None:
        """Test that config prints the effective settings."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "BLOCKREADER_BLOCK_SIZE" in result.output

    def test_version(self) -> None:
        """Test the version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output
