"""A reporter recording every call event to a compressed file plus JSON metadata."""

from __future__ import annotations

import gzip
import os
import random
import socket
import sys
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from .profiler import Event, EventType, Reporter, ReporterCost
from .strbuilder import StrBuilder
from .utils import json_escape, resolve_confined_file_absolute_path

BUFFER_CAPACITY = 16384
WALL_TIME_KEY = "wt"
_STR_BUILDER_CAPACITY = 8 * 1024
_STR_BUILDER_FLUSH_MARGIN = 128
_DOUBLE_DECIMALS = 4
_NOT_AVAILABLE = "n/a"


def list_metadata_files(data_dir: str) -> list[str]:
    """Paths of the metadata (``.json``) files found in ``data_dir``.

    A missing or unreadable directory yields an empty list.
    """
    try:
        with os.scandir(data_dir) as entries:
            names = [entry.name for entry in entries if entry.name.endswith(".json")]
    except OSError:
        return []
    return [f"{data_dir}/{name}" for name in names]


def build_metadata_file_name(data_dir: str, key: str) -> str | None:
    """Resolved path of the metadata file of ``key``, confined to ``data_dir``."""
    return resolve_confined_file_absolute_path(data_dir, key, ".json")


def build_file_name(data_dir: str, key: str) -> str | None:
    """Resolved path of the event file of ``key``, confined to ``data_dir``."""
    return resolve_confined_file_absolute_path(data_dir, key, ".txt.gz")


def _hostname() -> str:
    try:
        name = socket.gethostname()
    except OSError:
        return _NOT_AVAILABLE
    return name[:255] if name else _NOT_AVAILABLE


def _thread_id() -> int:
    return threading.get_native_id() if sys.platform.startswith("linux") else 0


def _cwd() -> str:
    try:
        return os.getcwd()
    except OSError:
        return _NOT_AVAILABLE


@dataclass
class Metadata:
    """Description of one profiled run."""

    key: str
    exec_ts: int
    hostname: str
    process_pid: int
    process_tid: int
    process_pwd: str
    cli: bool = False
    cli_command_line: str = _NOT_AVAILABLE
    http_request_uri: str = _NOT_AVAILABLE
    http_method: str = _NOT_AVAILABLE
    http_host: str = _NOT_AVAILABLE
    custom_metadata_str: str | None = None
    wall_time_ms: int = 0
    peak_memory_usage: int = 0
    called_function_count: int = 0
    call_count: int = 0
    recorded_call_count: int = 0
    enabled_metrics: list[bool] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        cli: bool = False,
        cli_command_line: str | None = None,
        http_request_uri: str | None = None,
        http_method: str | None = None,
        http_host: str | None = None,
    ) -> Metadata:
        """Build the metadata of a run starting now in this process."""
        exec_ts = int(time.time())
        hostname = _hostname()
        pid = os.getpid()
        date = time.strftime("%Y%m%d_%H%M%S", time.localtime())
        key = f"spx-full-{date}-{hostname}-{pid}-{random.randint(0, 2**31 - 1)}"
        return cls(
            key=key,
            exec_ts=exec_ts,
            hostname=hostname,
            process_pid=pid,
            process_tid=_thread_id(),
            process_pwd=_cwd(),
            cli=bool(cli),
            cli_command_line=cli_command_line or _NOT_AVAILABLE,
            http_request_uri=http_request_uri or _NOT_AVAILABLE,
            http_method=http_method or _NOT_AVAILABLE,
            http_host=http_host or _NOT_AVAILABLE,
        )

    def to_json(self, metric_keys: Sequence[str]) -> str:
        """The metadata as a JSON document.

        ``metric_keys`` gives the key of each metric, in metric order; only
        the enabled ones are listed.
        """

        def text(name: str, value: str) -> str:
            return f'  "{name}": "{json_escape(value)}",\n'

        def number(name: str, value: int) -> str:
            return f'  "{name}": {int(value)},\n'

        if self.custom_metadata_str is None:
            custom = '  "custom_metadata_str": null,\n'
        else:
            custom = text("custom_metadata_str", self.custom_metadata_str)

        parts = [
            "{\n",
            text("key", self.key),
            number("exec_ts", self.exec_ts),
            text("host_name", self.hostname),
            number("process_pid", self.process_pid),
            number("process_tid", self.process_tid),
            text("process_pwd", self.process_pwd),
            number("cli", self.cli),
            text("cli_command_line", self.cli_command_line),
            text("http_request_uri", self.http_request_uri),
            text("http_method", self.http_method),
            text("http_host", self.http_host),
            custom,
            number("wall_time_ms", self.wall_time_ms),
            number("peak_memory_usage", self.peak_memory_usage),
            number("called_function_count", self.called_function_count),
            number("call_count", self.call_count),
            number("recorded_call_count", self.recorded_call_count),
            '  "enabled_metrics": [\n',
        ]
        enabled_keys = [
            key for key, enabled in zip(metric_keys, self.enabled_metrics) if enabled
        ]
        parts.extend(
            f'    {"," if position else ""}"{key}"\n'
            for position, key in enumerate(enabled_keys)
        )
        parts.append("  ]\n}\n")
        return "".join(parts)

    def save(self, file_name: str, metric_keys: Sequence[str]) -> None:
        """Write the JSON document to ``file_name``."""
        with open(file_name, "w", encoding="utf-8") as fp:
            fp.write(self.to_json(metric_keys))


@dataclass
class _BufferedEvent:
    function_idx: int
    start: bool
    metric_values: list[float]


class FullReporter(Reporter):
    """Writes every call start and end with its cumulative metric values.

    Events go to ``<data_dir>/<key>.txt.gz``; at finalisation the function
    names are appended and the metadata is saved to ``<data_dir>/<key>.json``.
    """

    def __init__(
        self,
        data_dir: str,
        metric_keys: Sequence[str],
        metadata: Metadata | None = None,
        memory_usage: Callable[[], int] | None = None,
    ) -> None:
        self.metric_keys = tuple(metric_keys)
        self.metadata = metadata if metadata is not None else Metadata.create()
        self._memory_usage = memory_usage
        self.file_name = f"{data_dir}/{self.metadata.key}.txt.gz"
        self.metadata_file_name = f"{data_dir}/{self.metadata.key}.json"

        try:
            os.mkdir(data_dir, 0o777)
        except OSError:
            pass

        self._output = gzip.open(self.file_name, "wt", encoding="utf-8")
        self._builder = StrBuilder(_STR_BUILDER_CAPACITY)
        self._buffer: list[_BufferedEvent] = []
        self._output.write("[events]\n")

    @property
    def key(self) -> str:
        """Key of the recorded run."""
        return self.metadata.key

    def notify(self, event: Event) -> ReporterCost:
        if event.type is EventType.CALL_END:
            self.metadata.call_count += 1

        if event.type is not EventType.FINALIZE:
            if event.type is EventType.CALL_END:
                self.metadata.recorded_call_count += 1
            if event.callee is None:
                raise ValueError("call events need a callee")
            self._buffer.append(
                _BufferedEvent(
                    event.callee.idx,
                    event.type is EventType.CALL_START,
                    list(event.cum),
                )
            )
            if len(self._buffer) < BUFFER_CAPACITY:
                return ReporterCost.LIGHT

        self._flush_buffer(event.enabled_metrics)

        if event.type is EventType.FINALIZE:
            self._finalize(event)

        return ReporterCost.HEAVY

    def close(self) -> None:
        """Close the event file."""
        if not self._output.closed:
            self._output.close()

    def _flush_buffer(self, enabled_metrics: Sequence[bool]) -> None:
        builder = self._builder
        builder.reset()
        for entry in self._buffer:
            builder.append_long(entry.function_idx)
            builder.append_char(" ")
            builder.append_char("1" if entry.start else "0")
            for value, enabled in zip(entry.metric_values, enabled_metrics):
                if not enabled:
                    continue
                builder.append_char(" ")
                builder.append_double(value, _DOUBLE_DECIMALS)
            builder.append_str("\n")

            if builder.remaining < _STR_BUILDER_FLUSH_MARGIN:
                self._output.write(str(builder))
                builder.reset()

        if len(builder):
            self._output.write(str(builder))
        builder.reset()
        self._buffer.clear()

    def _finalize(self, event: Event) -> None:
        self._output.write("[functions]\n")
        self._output.writelines(f"{entry.function}\n" for entry in event.func_table)

        metadata = self.metadata
        metadata.peak_memory_usage = (
            int(self._memory_usage()) if self._memory_usage is not None else 0
        )
        if WALL_TIME_KEY in self.metric_keys:
            wall_index = self.metric_keys.index(WALL_TIME_KEY)
            if wall_index < len(event.cum):
                metadata.wall_time_ms = int(event.cum[wall_index] / 1000)
        metadata.called_function_count = len(event.func_table)
        metadata.enabled_metrics = [bool(m) for m in event.enabled_metrics]

        try:
            metadata.save(self.metadata_file_name, self.metric_keys)
        except OSError:
            pass