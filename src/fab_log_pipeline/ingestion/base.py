"""
Abstract base class and data models for ingestion plugins.

Provides the plugin interface the host calls for every detected file, the
typed records produced by the parsers, and the outcome type returned by a
processing pass.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from ..monitoring.daily_log import plugin_logger

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# Parsed Records
# =============================================================================


class ParsedRecord(ABC):
    """
    A typed row destined for one target table.

    Every record carries its equipment id and a domain timestamp; the
    writer derives the corrected ``serv_ts`` column from
    `source_timestamp` exactly once per row.
    """

    eqpid: str

    @property
    @abstractmethod
    def source_timestamp(self) -> datetime:
        """Local timestamp fed to the clock adjustor."""
        pass

    @abstractmethod
    def to_row(self) -> dict[str, Any]:
        """Column name → value mapping (without ``serv_ts``)."""
        pass


@dataclass(frozen=True)
class WaferMapRecord(ParsedRecord):
    """An uploaded wafer-map image and where it can be fetched."""

    eqpid: str
    timestamp: datetime
    file_uri: str
    original_filename: str

    @property
    def source_timestamp(self) -> datetime:
        return self.timestamp

    def to_row(self) -> dict[str, Any]:
        return {
            "eqpid": self.eqpid,
            "datetime": self.timestamp,
            "file_uri": self.file_uri,
            "original_filename": self.original_filename,
        }


@dataclass(frozen=True)
class PrealignSample(ParsedRecord):
    """
    One prealignment measurement.

    Attributes:
        eqpid: Equipment id
        timestamp: Capture time written by the equipment
        xmm: X offset in millimetres
        ymm: Y offset in millimetres
        notch: Notch angle
    """

    eqpid: str
    timestamp: datetime
    xmm: Decimal
    ymm: Decimal
    notch: Decimal

    @property
    def source_timestamp(self) -> datetime:
        return self.timestamp

    def to_row(self) -> dict[str, Any]:
        return {
            "eqpid": self.eqpid,
            "datetime": self.timestamp,
            "xmm": self.xmm,
            "ymm": self.ymm,
            "notch": self.notch,
        }


@dataclass(frozen=True)
class FlatWaferRow(ParsedRecord):
    """
    One measurement point of a flat-wafer result table.

    `measurements` holds the table columns under their normalized header
    names (``point``, ``dierow``, ``thickness`` ...); columns not yet present
    in the target table are added by the writer.
    """

    eqpid: str
    timestamp: datetime
    cassettercp: Optional[str] = None
    stagercp: Optional[str] = None
    stagegroup: Optional[str] = None
    lotid: Optional[str] = None
    waferid: Optional[int] = None
    film: Optional[str] = None
    measurements: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def source_timestamp(self) -> datetime:
        return self.timestamp

    def to_row(self) -> dict[str, Any]:
        row = {
            "eqpid": self.eqpid,
            "datetime": self.timestamp,
            "cassettercp": self.cassettercp,
            "stagercp": self.stagercp,
            "stagegroup": self.stagegroup,
            "lotid": self.lotid,
            "waferid": self.waferid,
            "film": self.film,
        }
        for key, value in self.measurements.items():
            row.setdefault(key, value)
        return row


@dataclass(frozen=True)
class SpectrumScan(ParsedRecord):
    """
    One polarization channel of a spectral scan.

    Attributes:
        scan_class: ``EXP``, ``GEN`` or ``UNK`` (from the file name suffix)
        pol_type: Polarization marker of the body lines (``sR`` / ``uR``)
        val_summary: Value at the wavelength closest to 633 nm
    """

    eqpid: str
    timestamp: datetime
    lotid: str
    waferid: str
    point: int
    scan_class: str
    pol_type: str
    angle: Optional[float]
    val_summary: Optional[float]
    wavelengths: tuple[float, ...]
    values: tuple[float, ...]

    @property
    def source_timestamp(self) -> datetime:
        return self.timestamp

    def to_row(self) -> dict[str, Any]:
        return {
            "eqpid": self.eqpid,
            "ts": self.timestamp,
            "lotid": self.lotid,
            "waferid": self.waferid,
            "point": self.point,
            "class": self.scan_class,
            "type": self.pol_type,
            "angle": self.angle,
            "val_summary": self.val_summary,
            "wavelengths": list(self.wavelengths),
            "values": list(self.values),
        }


@dataclass(frozen=True)
class ErrorLogEntry(ParsedRecord):
    """One alarm line of the equipment error log."""

    eqpid: str
    error_id: str
    timestamp: datetime
    label: str
    description: str
    millisecond: int
    extra_message: str = ""
    extra_message_2: str = ""

    @property
    def source_timestamp(self) -> datetime:
        return self.timestamp

    def to_row(self) -> dict[str, Any]:
        return {
            "eqpid": self.eqpid,
            "error_id": self.error_id,
            "time_stamp": self.timestamp,
            "error_label": self.label,
            "error_desc": self.description,
            "millisecond": self.millisecond,
            "extra_message_1": self.extra_message,
            "extra_message_2": self.extra_message_2,
        }


@dataclass(frozen=True)
class EquipmentInfo(ParsedRecord):
    """Equipment description found in the header of an error log."""

    eqpid: str
    system_name: Optional[str] = None
    system_model: Optional[str] = None
    serial_num: Optional[str] = None
    application: Optional[str] = None
    version: Optional[str] = None
    db_version: Optional[str] = None
    date: Optional[datetime] = None

    @property
    def source_timestamp(self) -> datetime:
        return self.date or datetime.now()

    def to_row(self) -> dict[str, Any]:
        return {
            "eqpid": self.eqpid,
            "system_name": self.system_name,
            "system_model": self.system_model,
            "serial_num": self.serial_num,
            "application": self.application,
            "version": self.version,
            "db_version": self.db_version,
            "date": self.date,
        }


@dataclass(frozen=True)
class BatchItem:
    """A record waiting in the accumulator, with the file it came from."""

    file_path: str
    record: ParsedRecord


# =============================================================================
# Processing Outcome
# =============================================================================


class ProcessStatus(Enum):
    """Result of one processing pass over a file."""

    SUCCESS = "success"
    SKIP = "skip"
    FAIL = "fail"


@dataclass(frozen=True)
class ProcessOutcome:
    """
    Outcome of `IngestionPlugin.process`.

    Skips are expected conditions (file locked, unchanged, gone, nothing
    parseable); failures are errors worth an operator's attention.
    """

    status: ProcessStatus
    reason: str = ""
    rows_written: int = 0

    @classmethod
    def success(cls, rows_written: int = 0, reason: str = "") -> "ProcessOutcome":
        return cls(ProcessStatus.SUCCESS, reason, rows_written)

    @classmethod
    def skip(cls, reason: str) -> "ProcessOutcome":
        return cls(ProcessStatus.SKIP, reason)

    @classmethod
    def fail(cls, reason: str) -> "ProcessOutcome":
        return cls(ProcessStatus.FAIL, reason)

    @property
    def ok(self) -> bool:
        return self.status != ProcessStatus.FAIL


# =============================================================================
# Plugin Interface
# =============================================================================


class IngestionPlugin(ABC):
    """
    Abstract base class for file ingestion plugins.

    The host discovers plugins through the registry, reads the metadata
    attributes to configure its file watcher, and calls
    `process_and_upload` for every matching file it sees.

    Metadata:
        plugin_name: Registry key and log label
        default_task_name: Task name suggested to the host
        default_file_filter: Semicolon-separated glob patterns
        requires_override_names: Whether the host must pass original names
    """

    plugin_name: str = ""
    default_task_name: str = ""
    default_file_filter: str = "*.*"
    requires_override_names: bool = False

    @property
    def log(self) -> logging.LoggerAdapter:
        """Logger whose records carry this plugin's label."""
        return plugin_logger(logging.getLogger(type(self).__module__), self.plugin_name)

    @abstractmethod
    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        """
        Run one processing pass over a file.

        Args:
            file_path: File reported by the host
            settings: Equipment settings source (path, mapping or None)

        Returns:
            ProcessOutcome describing what happened.
        """
        pass

    def process_and_upload(
        self,
        file_path: PathLike,
        settings: Any = None,
        reserved: Any = None,
    ) -> None:
        """
        Host entry point. Never raises; the outcome is logged.

        Args:
            file_path: File reported by the host
            settings: Equipment settings source (path, mapping or None)
            reserved: Unused, kept for host compatibility
        """
        try:
            outcome = self.process(file_path, settings)
        except Exception as e:
            self.log.error(f"Unhandled error for {file_path}: {e}", exc_info=True)
            return

        if outcome.status == ProcessStatus.FAIL:
            self.log.error(f"{file_path}: {outcome.reason}")
        elif outcome.status == ProcessStatus.SKIP:
            self.log.debug(f"Skipped {file_path}: {outcome.reason}")
        else:
            self.log.debug(f"Processed {file_path} ({outcome.rows_written} rows)")

    def describe(self) -> dict[str, Any]:
        """Plugin metadata as a dictionary."""
        return {
            "plugin_name": self.plugin_name,
            "default_task_name": self.default_task_name,
            "default_file_filter": self.default_file_filter,
            "requires_override_names": self.requires_override_names,
        }
