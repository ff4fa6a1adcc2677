"""Process resource statistics: clocks, anonymous RSS and I/O counters."""

from __future__ import annotations

import os
import threading
import time

_STATUS_PATH = "/proc/self/status"
_STATUS_READ_SIZE = 2 * 1024
_IO_READ_SIZE = 64


def wall_time() -> int:
    """Monotonic wall clock time in nanoseconds."""
    return time.monotonic_ns()


def cpu_time() -> int:
    """CPU time consumed by the process, in nanoseconds."""
    return time.process_time_ns()


def _digits_value(text: str) -> int:
    digits = "".join(ch for ch in text if "0" <= ch <= "9")
    return int(digits) if digits else 0


def parse_rss_anon(text: str) -> int:
    """Return the ``RssAnon`` value of a proc status text, in bytes.

    The value in the text is in kB. Returns 0 if the entry is missing.
    """
    for line in text.split("\n"):
        name, sep, rest = line.partition(":")
        if sep and name == "RssAnon":
            return _digits_value(rest) * 1024
    return 0


def parse_io_counters(text: str) -> tuple[int, int]:
    """Return the read and written byte counts from a proc io text.

    The first line holds the read count and the second the written count.
    """
    lines = text.split("\n")
    read_count = _digits_value(lines[0]) if lines else 0
    write_count = _digits_value(lines[1]) if len(lines) > 1 else 0
    return read_count, write_count


def _open_or_none(path: str) -> int | None:
    try:
        return os.open(path, os.O_RDONLY)
    except OSError:
        return None


class ResourceStats:
    """Reads memory and I/O statistics of the current process and thread.

    Where the statistics are not available the readings are zero.
    """

    def __init__(self) -> None:
        self._io_read_noise = 0
        self._status_fd = _open_or_none(_STATUS_PATH)
        self._io_fd = _open_or_none(
            f"/proc/self/task/{threading.get_native_id()}/io"
        )

    def _read(self, fd: int, size: int) -> str:
        os.lseek(fd, 0, os.SEEK_SET)
        data = os.read(fd, size)
        # Our own reads of procfs count as input; remember them to discount.
        self._io_read_noise += len(data)
        return data.decode("ascii", errors="replace")

    def own_rss(self) -> int:
        """Anonymous resident memory of the process, in bytes."""
        if self._status_fd is None:
            return 0
        return parse_rss_anon(self._read(self._status_fd, _STATUS_READ_SIZE))

    def io(self) -> tuple[int, int]:
        """Bytes read and written by the current thread.

        Bytes read by this object from procfs are left out of the first count.
        """
        if self._io_fd is None:
            return 0, 0
        read_count, write_count = parse_io_counters(
            self._read(self._io_fd, _IO_READ_SIZE)
        )
        return read_count - self._io_read_noise, write_count

    def close(self) -> None:
        """Release the open procfs files."""
        if self._status_fd is not None:
            os.close(self._status_fd)
            self._status_fd = None
        if self._io_fd is not None:
            os.close(self._io_fd)
            self._io_fd = None

    def __enter__(self) -> ResourceStats:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()