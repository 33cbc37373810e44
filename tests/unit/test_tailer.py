"""
Unit tests for offset-tracked tailing.

Tests cover:
- TailStateStore identity normalization and validation
- First read, incremental read, unchanged file
- Truncation resets the read to offset 0
- Missing file forgets its progress
- Locked file reports NOT_READY without touching state
- Offsets only move on commit
- read_whole for disposable files
"""

import logging
from pathlib import Path

import pytest

from fab_log_pipeline.ingestion import file_utils
from fab_log_pipeline.ingestion.tail_state import TailStateStore, file_identity
from fab_log_pipeline.ingestion.tailer import OffsetTailer, TailResult, TailStatus


@pytest.fixture
def tailer() -> OffsetTailer:
    return OffsetTailer(TailStateStore(), open_retries=2, retry_delay=0.0, sleep=lambda s: None)


class TestTailStateStore:
    """Tests for TailStateStore."""

    def test_unknown_file_is_offset_zero(self, tmp_path: Path) -> None:
        """Test the default offset for files never seen."""
        assert TailStateStore().get(tmp_path / "a.dat") == 0

    def test_relative_and_absolute_paths_share_an_entry(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test paths are keyed by their absolute identity."""
        monkeypatch.chdir(tmp_path)
        store = TailStateStore()
        store.set("a.dat", 10)

        assert store.get(tmp_path / "a.dat") == 10
        assert (tmp_path / "a.dat") in store
        assert file_identity("a.dat") == file_identity(tmp_path / "a.dat")

    def test_negative_offset_rejected(self, tmp_path: Path) -> None:
        """Test offsets must be non-negative."""
        with pytest.raises(ValueError):
            TailStateStore().set(tmp_path / "a.dat", -1)

    def test_forget(self, tmp_path: Path) -> None:
        """Test forgetting reports whether an entry existed."""
        store = TailStateStore()
        store.set(tmp_path / "a.dat", 5)

        assert store.forget(tmp_path / "a.dat") is True
        assert store.forget(tmp_path / "a.dat") is False
        assert len(store) == 0


class TestOffsetTailer:
    """Tests for OffsetTailer.tail and commit."""

    def test_first_read_returns_whole_file(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test a new file is read from 0 to its length."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\r\n")

        result = tailer.tail(log)

        assert result.status == TailStatus.READ
        assert result.text == "line 1\r\n"
        assert result.previous_offset == 0
        assert result.new_offset == 8
        assert result.from_start is True

    def test_offset_only_moves_on_commit(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test an uncommitted read is returned again."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\n")

        first = tailer.tail(log)
        second = tailer.tail(log)

        assert first == second
        assert tailer.offset(log) == 0

        tailer.commit(log, second)
        assert tailer.offset(log) == 7

    def test_incremental_read(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test only the appended bytes are returned after a commit."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\n")
        tailer.commit(log, tailer.tail(log))

        with open(log, "ab") as f:
            f.write(b"line 2\n")
        result = tailer.tail(log)

        assert result.status == TailStatus.READ
        assert result.text == "line 2\n"
        assert result.previous_offset == 7
        assert result.new_offset == 14
        assert result.from_start is False

    def test_unchanged_file(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test a file whose length equals the committed offset."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\n")
        tailer.commit(log, tailer.tail(log))

        result = tailer.tail(log)

        assert result.status == TailStatus.NO_CHANGE
        assert result.text == ""
        assert tailer.offset(log) == 7

    def test_empty_new_file_is_read_not_unchanged(
        self, tmp_path: Path, tailer: OffsetTailer
    ) -> None:
        """Test an empty file with no progress yields an empty READ."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"")

        result = tailer.tail(log)

        assert result.status == TailStatus.READ
        assert result.text == ""
        assert result.new_offset == 0

    def test_truncation_resets_to_zero(
        self, tmp_path: Path, tailer: OffsetTailer, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a shrunken file is read again from the start."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"a long first generation\n")
        tailer.commit(log, tailer.tail(log))

        log.write_bytes(b"short\n")
        with caplog.at_level(logging.INFO, logger="fab_log_pipeline"):
            result = tailer.tail(log)

        assert result.status == TailStatus.READ
        assert result.truncated is True
        assert result.text == "short\n"
        assert result.previous_offset == 0
        assert result.new_offset == 6
        assert "File truncated. Resetting offset" in caplog.text

    def test_missing_file_forgets_progress(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test a vanished file drops its entry."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\n")
        tailer.commit(log, tailer.tail(log))
        log.unlink()

        result = tailer.tail(log)

        assert result.status == TailStatus.NOT_FOUND
        assert log not in tailer.state

    def test_locked_file_is_not_ready(
        self, tmp_path: Path, tailer: OffsetTailer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a sharing violation leaves state untouched."""
        log = tmp_path / "PreAlignLog.dat"
        log.write_bytes(b"line 1\n")
        tailer.commit(log, tailer.tail(log))

        def locked(*args, **kwargs):
            raise PermissionError(13, "sharing violation")

        monkeypatch.setattr(file_utils, "open", locked, raising=False)
        result = tailer.tail(log)

        assert result.status == TailStatus.NOT_READY
        assert tailer.offset(log) == 7

    def test_commit_ignores_non_read_results(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test committing a skip result does nothing."""
        log = tmp_path / "PreAlignLog.dat"
        tailer.commit(log, TailResult(TailStatus.NOT_READY, new_offset=99))

        assert tailer.offset(log) == 0

    def test_decodes_cp949(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test text is decoded with the equipment code page."""
        log = tmp_path / "Error.dat"
        log.write_bytes("알람 발생\n".encode("cp949"))

        assert tailer.tail(log).text == "알람 발생\n"


class TestReadWhole:
    """Tests for OffsetTailer.read_whole."""

    def test_reads_from_start_without_state(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test a disposable file is read fully and no offset is stored."""
        scan = tmp_path / "scan.dat"
        scan.write_bytes(b"sR 400 65 0.4\n")

        result = tailer.read_whole(scan)

        assert result.status == TailStatus.READ
        assert result.text == "sR 400 65 0.4\n"
        assert result.new_offset == 14
        assert len(tailer.state) == 0

    def test_missing_file(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test a missing disposable file."""
        assert tailer.read_whole(tmp_path / "gone.dat").status == TailStatus.NOT_FOUND

    def test_undecodable_bytes_are_replaced(self, tmp_path: Path, tailer: OffsetTailer) -> None:
        """Test invalid byte sequences do not fail the read."""
        scan = tmp_path / "bad.dat"
        scan.write_bytes(b"ok \xff\xff end")

        text = tailer.read_whole(scan).text

        assert text.startswith("ok ")
        assert text.endswith(" end")
        assert "\ufffd" in text
