"""
Offset-tracked tailing of append-only log files.

`OffsetTailer.tail` returns only the bytes appended since the last committed
offset. The offset is committed separately, after the caller has parsed and
stored the text, so a failed write leaves the same range to be read again on
the next trigger.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from ..config.constants import (
    DEFAULT_OPEN_RETRIES,
    DEFAULT_OPEN_RETRY_DELAY_SECONDS,
    DEFAULT_SOURCE_ENCODING,
)
from .exceptions import FileNotReadyError
from .file_utils import open_shared
from .tail_state import TailStateStore

logger = logging.getLogger(__name__)


class TailStatus(Enum):
    """What a tail pass found."""

    READ = "read"
    NO_CHANGE = "unchanged"
    NOT_FOUND = "not_found"
    NOT_READY = "not_ready"


@dataclass(frozen=True)
class TailResult:
    """
    Outcome of one tail pass.

    Attributes:
        status: Pass status
        text: Decoded text of the read range (empty unless READ)
        previous_offset: Offset the read started from
        new_offset: File length observed; committed on success
        truncated: Whether the file shrank since the last commit
    """

    status: TailStatus
    text: str = ""
    previous_offset: int = 0
    new_offset: int = 0
    truncated: bool = False

    @property
    def from_start(self) -> bool:
        """True when the read range starts at byte 0."""
        return self.status == TailStatus.READ and self.previous_offset == 0


class OffsetTailer:
    """
    Reads the unread tail of growing files.

    Usage:
        tailer = OffsetTailer(TailStateStore())
        result = tailer.tail("PreAlignLog.dat")
        if result.status == TailStatus.READ:
            ...parse and store result.text...
            tailer.commit("PreAlignLog.dat", result)
    """

    def __init__(
        self,
        state: Optional[TailStateStore] = None,
        encoding: str = DEFAULT_SOURCE_ENCODING,
        open_retries: int = DEFAULT_OPEN_RETRIES,
        retry_delay: float = DEFAULT_OPEN_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.state = state if state is not None else TailStateStore()
        self.encoding = encoding
        self.open_retries = open_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def tail(self, file_path: Union[str, Path]) -> TailResult:
        """
        Read whatever was appended since the last committed offset.

        Stored state is only changed for a missing file (its entry is
        dropped); everything else waits for `commit`.
        """
        last = self.state.get(file_path)

        try:
            fh = open_shared(file_path, self.open_retries, self.retry_delay, self._sleep)
        except FileNotFoundError:
            self.state.forget(file_path)
            return TailResult(TailStatus.NOT_FOUND, previous_offset=last, new_offset=last)
        except FileNotReadyError as e:
            logger.debug(str(e))
            return TailResult(TailStatus.NOT_READY, previous_offset=last, new_offset=last)

        with fh:
            length = os.fstat(fh.fileno()).st_size

            if length == last and last > 0:
                return TailResult(TailStatus.NO_CHANGE, previous_offset=last, new_offset=last)

            truncated = length < last
            start = 0 if truncated else last
            if truncated:
                logger.info(
                    f"File truncated. Resetting offset: {file_path} ({last} -> 0, length {length})"
                )

            fh.seek(start)
            data = fh.read(length - start)

        text = data.decode(self.encoding, errors="replace")
        return TailResult(
            TailStatus.READ,
            text=text,
            previous_offset=start,
            new_offset=start + len(data),
            truncated=truncated,
        )

    def commit(self, file_path: Union[str, Path], result: TailResult) -> None:
        """Store the offset of a successfully processed read."""
        if result.status != TailStatus.READ:
            return
        self.state.set(file_path, result.new_offset)

    def forget(self, file_path: Union[str, Path]) -> None:
        """Drop the progress of a file."""
        self.state.forget(file_path)

    def offset(self, file_path: Union[str, Path]) -> int:
        """Last committed offset of a file."""
        return self.state.get(file_path)

    def read_whole(self, file_path: Union[str, Path]) -> TailResult:
        """
        Read a disposable file from the start without touching state.

        Uses the same readiness policy as `tail`.
        """
        try:
            fh = open_shared(file_path, self.open_retries, self.retry_delay, self._sleep)
        except FileNotFoundError:
            return TailResult(TailStatus.NOT_FOUND)
        except FileNotReadyError as e:
            logger.debug(str(e))
            return TailResult(TailStatus.NOT_READY)

        with fh:
            data = fh.read()

        return TailResult(
            TailStatus.READ,
            text=data.decode(self.encoding, errors="replace"),
            new_offset=len(data),
        )
