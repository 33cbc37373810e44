"""
Unit tests for ingestion.file_utils.

Tests cover:
- Shared binary open of an existing file
- FileNotFoundError passthrough
- Bounded retries on sharing violations (FileNotReadyError)
- Readiness check and best-effort deletion
"""

from pathlib import Path

import pytest

from fab_log_pipeline.ingestion import file_utils
from fab_log_pipeline.ingestion.exceptions import FileNotReadyError
from fab_log_pipeline.ingestion.file_utils import (
    open_shared,
    try_delete,
    wait_for_file_ready,
)


def _locked_open(calls: list):
    def fake_open(path, mode="r", *args, **kwargs):
        calls.append(path)
        raise PermissionError(13, "The process cannot access the file", str(path))

    return fake_open


class TestOpenShared:
    """Tests for open_shared."""

    def test_opens_existing_file_in_binary_mode(self, tmp_path: Path) -> None:
        """Test the handle reads raw bytes from offset 0."""
        test_file = tmp_path / "PreAlignLog.dat"
        test_file.write_bytes(b"abc\r\n")

        with open_shared(test_file) as fh:
            assert fh.read() == b"abc\r\n"

    def test_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        """Test a missing file is not retried and not wrapped."""
        with pytest.raises(FileNotFoundError):
            open_shared(tmp_path / "missing.dat", sleep=lambda s: None)

    def test_sharing_violation_retries_then_gives_up(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test every attempt is made before FileNotReadyError is raised."""
        calls: list = []
        delays: list = []
        monkeypatch.setattr(file_utils, "open", _locked_open(calls), raising=False)

        with pytest.raises(FileNotReadyError) as exc_info:
            open_shared(tmp_path / "locked.dat", retries=3, retry_delay=0.5, sleep=delays.append)

        assert len(calls) == 3
        assert delays == [0.5, 0.5]
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.cause, PermissionError)


class TestWaitForFileReady:
    """Tests for wait_for_file_ready."""

    def test_ready_file(self, tmp_path: Path) -> None:
        """Test an unlocked file is ready."""
        test_file = tmp_path / "map.png"
        test_file.write_bytes(b"\x89PNG")

        assert wait_for_file_ready(test_file) is True

    def test_missing_file_is_not_ready(self, tmp_path: Path) -> None:
        """Test a missing file is reported as not ready."""
        assert wait_for_file_ready(tmp_path / "gone.png") is False

    def test_locked_file_is_not_ready(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a file that stays locked is reported as not ready."""
        calls: list = []
        monkeypatch.setattr(file_utils, "open", _locked_open(calls), raising=False)

        assert wait_for_file_ready(tmp_path / "map.png", retries=2, sleep=lambda s: None) is False
        assert len(calls) == 2


class TestTryDelete:
    """Tests for try_delete."""

    def test_deletes_file(self, tmp_path: Path) -> None:
        """Test an existing file is removed."""
        test_file = tmp_path / "scan.dat"
        test_file.write_text("x")

        assert try_delete(test_file) is True
        assert not test_file.exists()

    def test_missing_file_returns_false(self, tmp_path: Path) -> None:
        """Test deleting a missing file does not raise."""
        assert try_delete(tmp_path / "missing.dat") is False
