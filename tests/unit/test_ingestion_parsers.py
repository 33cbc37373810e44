"""
Unit tests for the record parsers.

Tests cover:
- Prealign samples (multi-sample text, ordering, invalid samples)
- Error log rows and the equipment header
- Flat-wafer headers, metadata and table rows
- Spectral scan file names (lot/wafer anchor rule) and bodies
- Wafer-map capture times
"""

import logging
from datetime import datetime
from decimal import Decimal

import pytest

from fab_log_pipeline.ingestion.exceptions import ParseError
from fab_log_pipeline.ingestion.parsers import (
    ErrorLogParser,
    FlatWaferParser,
    PrealignParser,
    SpectrumParser,
    equipment_info_from_metadata,
    normalize_header,
    parse_metadata,
    parse_row,
    parse_spectrum_body,
    parse_spectrum_filename,
    parse_wafer_map_timestamp,
    resolve_lot_and_wafer,
    split_lines,
    wafer_digits,
)

EQPID = "EQP01"


class TestCommonHelpers:
    """Tests for the shared parser helpers."""

    def test_split_lines_handles_crlf_and_blank_lines(self) -> None:
        assert split_lines("a\r\n\r\nb\nc\n") == ["a", "b", "c"]

    def test_wafer_digits(self) -> None:
        assert wafer_digits("W07") == "07"
        assert wafer_digits("SLOT") == "SLOT"

    def test_lot_before_wafer_anchor(self) -> None:
        tokens = ["20240307", "140509", "RCP", "STEP", "LOT123", "W07", "SLOT"]
        assert resolve_lot_and_wafer(tokens) == ("LOT123", "W07")

    def test_lot_with_numeric_suffix(self) -> None:
        """Test a lot id split by its own underscore is joined back."""
        tokens = ["20240307", "140509", "RCP", "STEP", "LOT01", "2", "W07", "SLOT"]
        assert resolve_lot_and_wafer(tokens) == ("LOT01_2", "W07")

    def test_positional_fallback_without_anchor(self) -> None:
        tokens = ["20240307", "140509", "A", "B", "LOTX", "WAF", "C"]
        assert resolve_lot_and_wafer(tokens) == ("LOTX", "WAF")


class TestPrealignParser:
    """Tests for PrealignParser."""

    def test_parses_samples_in_time_order(self) -> None:
        """Test several samples, out of order, across lines."""
        text = (
            "Xmm 0.010 Ymm -0.020 Notch 180.5 Time 03-07-24 14:06:00\r\n"
            "Xmm -0.123 Ymm 0.045 Notch 179.98 Time 03-07-24 14:05:09\r\n"
        )

        samples = PrealignParser().parse(text, EQPID)

        assert [s.timestamp for s in samples] == [
            datetime(2024, 3, 7, 14, 5, 9),
            datetime(2024, 3, 7, 14, 6, 0),
        ]
        first = samples[0]
        assert first.eqpid == EQPID
        assert first.xmm == Decimal("-0.123")
        assert first.ymm == Decimal("0.045")
        assert first.notch == Decimal("179.98")

    def test_case_insensitive_labels(self) -> None:
        text = "XMM 1.0 ymm 2.0 NOTCH 3.0 time 03-07-24 14:05:09"
        assert len(PrealignParser().parse(text, EQPID)) == 1

    def test_invalid_number_drops_only_that_sample(self) -> None:
        parser = PrealignParser()
        text = (
            "Xmm 1.2.3 Ymm 0.0 Notch 0.0 Time 03-07-24 14:05:09\n"
            "Xmm 1.0 Ymm 0.0 Notch 0.0 Time 03-07-24 14:05:10\n"
        )

        samples = parser.parse(text, EQPID)

        assert len(samples) == 1
        assert parser.dropped == 1

    def test_text_without_samples(self) -> None:
        assert PrealignParser().parse("PreAlign started\r\n", EQPID) == []


ERROR_LOG = (
    "EXPORT_TYPE:,FULL\r\n"
    "SYSTEM_NAME:,ONTO-01\r\n"
    "SERIAL_NUM:,SN-9\r\n"
    "DATE:,3/7/2024 14:5:9\r\n"
    "E1001, 07-Mar-24 2:05:09 PM, STAGE, Stage vacuum lost, 120, retry 1\r\n"
    "not an alarm line\r\n"
    "W2002, 07-Mar-24 2:06:00 PM, ROBOT, Arm slow, 5\r\n"
)


class TestErrorLogParser:
    """Tests for the error log parser."""

    def test_parse_row(self) -> None:
        entry = parse_row(
            "E1001, 07-Mar-24 2:05:09 PM, STAGE, Stage vacuum lost, 120, retry 1", EQPID
        )

        assert entry is not None
        assert entry.error_id == "E1001"
        assert entry.timestamp == datetime(2024, 3, 7, 14, 5, 9)
        assert entry.label == "STAGE"
        assert entry.description == "Stage vacuum lost"
        assert entry.millisecond == 120
        assert entry.extra_message == "retry 1"
        assert entry.extra_message_2 == ""

    def test_line_without_extra_message(self) -> None:
        entry = parse_row("W2002, 07-Mar-24 2:06:00 PM, ROBOT, Arm slow, 5", EQPID)
        assert entry.extra_message == ""

    @pytest.mark.parametrize(
        "line",
        ["not an alarm line", "E1, 2024-03-07 14:05:09, A, B, 1"],
    )
    def test_malformed_lines(self, line: str) -> None:
        with pytest.raises(ParseError):
            parse_row(line, EQPID)

    def test_parse_row_reports_line(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_row("E1, yesterday, A, B, 1", EQPID, line_number=4)

        assert exc_info.value.line_number == 4
        assert "line 4" in str(exc_info.value)

    def test_parse_counts_read_lines(self) -> None:
        result = ErrorLogParser().parse(ERROR_LOG, EQPID)

        assert result.read_lines == 7
        assert [e.error_id for e in result.entries] == ["E1001", "W2002"]
        assert result.malformed == 1
        assert result.equipment_info is None

    def test_metadata_only_when_requested(self) -> None:
        result = ErrorLogParser().parse(ERROR_LOG, EQPID, include_metadata=True)

        info = result.equipment_info
        assert info is not None
        assert info.eqpid == EQPID
        assert info.system_name == "ONTO-01"
        assert info.serial_num == "SN-9"
        assert info.system_model is None
        assert info.date == datetime(2024, 3, 7, 14, 5, 9)

    def test_parse_metadata_keys(self) -> None:
        meta = parse_metadata(["system_name:,A", "EXPORT_TYPE:,X", "SYSTEM_NAME:,B", "x,y"])
        assert meta == {"SYSTEM_NAME": "B"}

    def test_metadata_eqpid_overrides(self) -> None:
        info = equipment_info_from_metadata({"EQPID": "EQP99", "VERSION": "1.2"}, EQPID)
        assert info is not None
        assert info.eqpid == "EQP99"
        assert info.version == "1.2"

    def test_no_known_keys(self) -> None:
        assert equipment_info_from_metadata({"FOO": "bar"}, EQPID) is None


FLAT_WAFER = (
    "Cassette Recipe Name: CR-01\r\n"
    "Stage Recipe Name: SR-01\r\n"
    "Stage Group Name: SG\r\n"
    "Lot ID: LOT123\r\n"
    "Wafer ID: W07\r\n"
    "Film Name: OX\r\n"
    "Date and Time: 3/7/2024 2:05:09 PM\r\n"
    "Point#,Thickness (µm),Die X,Die Y,GOF\r\n"
    "1,1.0021,10,12,0.998\r\n"
    "2,abc,10,12,0.998\r\n"
    "3,1.0\r\n"
    "4,,11,12,0.5\r\n"
)


class TestFlatWaferParser:
    """Tests for the flat-wafer table parser."""

    def test_normalize_header(self) -> None:
        assert normalize_header("Point#") == "point"
        assert normalize_header("Thickness (µm)") == "thickness"
        assert normalize_header("Thickness (no cal.)") == "thickness_nocal"
        assert normalize_header("Die X") == "diex"
        assert normalize_header("Die Y") == "diey"

    def test_parses_rows_and_metadata(self) -> None:
        result = FlatWaferParser().parse(FLAT_WAFER, EQPID)

        assert result.header_found is True
        assert result.dropped == 2
        assert len(result.rows) == 2

        row = result.rows[0]
        assert row.eqpid == EQPID
        assert row.timestamp == datetime(2024, 3, 7, 14, 5, 9)
        assert row.cassettercp == "CR-01"
        assert row.stagercp == "SR-01"
        assert row.stagegroup == "SG"
        assert row.lotid == "LOT123"
        assert row.film == "OX"
        assert row.waferid == 7
        assert row.measurements == {
            "point": 1,
            "thickness": 1.0021,
            "diex": 10.0,
            "diey": 12.0,
            "gof": 0.998,
        }

    def test_empty_cell_is_null(self) -> None:
        result = FlatWaferParser().parse(FLAT_WAFER, EQPID)
        assert result.rows[1].measurements["thickness"] is None

    def test_row_columns_include_measurements(self) -> None:
        row = FlatWaferParser().parse(FLAT_WAFER, EQPID).rows[0].to_row()
        assert row["point"] == 1
        assert row["datetime"] == datetime(2024, 3, 7, 14, 5, 9)

    def test_missing_header(self) -> None:
        result = FlatWaferParser().parse("Lot ID: LOT1\r\n1,2,3\r\n", EQPID)

        assert result.header_found is False
        assert result.rows == []
        assert result.reason == "table header not found"

    def test_missing_measurement_time(self) -> None:
        result = FlatWaferParser().parse("Lot ID: LOT1\r\nPoint#,GOF\r\n1,0.9\r\n", EQPID)

        assert result.header_found is True
        assert result.rows == []
        assert result.reason == "measurement time not found"

    def test_split_date_and_time_headers(self) -> None:
        text = "Date: 2024-03-07\r\nTime: 14:05:09\r\nPoint#,GOF\r\n1,0.9\r\n"
        result = FlatWaferParser().parse(text, EQPID)

        assert result.rows[0].timestamp == datetime(2024, 3, 7, 14, 5, 9)


SPECTRUM_NAME = "20240307_140509_RCP_STEP_LOT123_W07_SLOT_A_B_3Exp.dat"
SPECTRUM_BODY = (
    "Header line\r\n"
    "sR 632.0 65.0 0.41\r\n"
    "sR 634.5 66.0 0.42\r\n"
    "sR 700.0 bad 0.50\r\n"
    "uR short\r\n"
)


class TestSpectrumParser:
    """Tests for spectral scan names and bodies."""

    def test_filename_metadata(self) -> None:
        meta = parse_spectrum_filename(f"C:/Data/{SPECTRUM_NAME}")

        assert meta is not None
        assert meta.timestamp == datetime(2024, 3, 7, 14, 5, 9)
        assert meta.lotid == "LOT123"
        assert meta.waferid == "07"
        assert meta.point == 3
        assert meta.scan_class == "EXP"

    def test_filename_lot_with_suffix(self) -> None:
        meta = parse_spectrum_filename("20240307_140509_RCP_STEP_LOT01_2_W07_SLOT_A_4Gen.dat")

        assert meta is not None
        assert meta.lotid == "LOT01_2"
        assert meta.point == 4
        assert meta.scan_class == "GEN"

    def test_unknown_class_suffix(self) -> None:
        meta = parse_spectrum_filename("20240307_140509_RCP_STEP_LOT123_W07_SLOT_A_B_5Raw.dat")

        assert meta is not None
        assert meta.point == 0
        assert meta.scan_class == "UNK"

    def test_malformed_filenames(self) -> None:
        assert parse_spectrum_filename("short_name_Exp.dat") is None
        assert parse_spectrum_filename("XXXXXXXX_140509_RCP_STEP_LOT123_W07_SLOT_A_B_3Exp.dat") is None

    def test_non_numeric_point_is_rejected(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test an Exp/Gen token without a point number rejects the name."""
        name = "20240307_140509_RCP_STEP_LOT123_W07_SLOT_A_B_PtExp.dat"

        with caplog.at_level(logging.WARNING, logger="fab_log_pipeline"):
            assert parse_spectrum_filename(name) is None

        assert "Bad point number 'PtExp'" in caplog.text

    def test_body_summary_and_first_angle(self) -> None:
        body = parse_spectrum_body(SPECTRUM_BODY)

        assert body.pol_type == "sR"
        assert body.angle == 65.0
        assert body.wavelengths == [632.0, 634.5, 700.0]
        assert body.values == [0.41, 0.42, 0.50]
        assert body.val_summary == 0.41

    def test_parse_scan(self) -> None:
        scan = SpectrumParser().parse(SPECTRUM_NAME, SPECTRUM_BODY, EQPID)

        assert scan is not None
        row = scan.to_row()
        assert row["eqpid"] == EQPID
        assert row["class"] == "EXP"
        assert row["type"] == "sR"
        assert row["waferid"] == "07"
        assert row["wavelengths"] == [632.0, 634.5, 700.0]

    def test_body_without_samples(self) -> None:
        assert SpectrumParser().parse(SPECTRUM_NAME, "Header only\r\n", EQPID) is None


class TestWaferMapTimestamp:
    """Tests for parse_wafer_map_timestamp."""

    def test_capture_time_from_name(self) -> None:
        assert parse_wafer_map_timestamp("C:/Maps/20240307_140509_LOT123_W07.png") == datetime(
            2024, 3, 7, 14, 5, 9
        )

    def test_name_without_stamp(self) -> None:
        assert parse_wafer_map_timestamp("map.png") is None
        assert parse_wafer_map_timestamp("today_map.png") is None
