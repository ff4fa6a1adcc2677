"""Core profiler types: functions, statistics, events, reporters and profilers."""

from __future__ import annotations

import abc
import enum
import zlib
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Function:
    """A profiled function, identified by its name and class name."""

    func_name: str
    class_name: str = ""
    hash_code: int | None = None

    def __post_init__(self) -> None:
        if self.hash_code is None:
            code = zlib.crc32(f"{self.class_name}::{self.func_name}".encode())
            object.__setattr__(self, "hash_code", code)

    def __str__(self) -> str:
        if self.class_name:
            return f"{self.class_name}::{self.func_name}"
        return self.func_name


@dataclass
class FuncStats:
    """Aggregated statistics of one function."""

    called: int = 0
    max_cycle_depth: int = 0
    inc: list[float] = field(default_factory=list)
    exc: list[float] = field(default_factory=list)


@dataclass
class FuncTableEntry:
    """A function together with its index in the function table and its stats."""

    idx: int
    function: Function
    stats: FuncStats = field(default_factory=FuncStats)


class EventType(enum.Enum):
    CALL_START = enum.auto()
    CALL_END = enum.auto()
    FINALIZE = enum.auto()


@dataclass
class Event:
    """What a profiler tells its reporter about a call or the end of profiling."""

    type: EventType
    enabled_metrics: Sequence[bool] = ()
    called: int = 0
    max: Sequence[float] = ()
    cum: Sequence[float] = ()
    func_table: Sequence[FuncTableEntry] = ()
    func_table_capacity: int = 0
    depth: int = 0
    caller: FuncTableEntry | None = None
    callee: FuncTableEntry | None = None
    inc: Sequence[float] | None = None
    exc: Sequence[float] | None = None


class ReporterCost(enum.Enum):
    """How expensive handling an event was for a reporter."""

    LIGHT = enum.auto()
    HEAVY = enum.auto()


class Reporter:
    """Receives profiler events. The base reporter ignores them."""

    def notify(self, event: Event) -> ReporterCost:
        """Handle ``event`` and tell how costly that was."""
        return ReporterCost.LIGHT

    def close(self) -> None:
        """Release what the reporter holds."""

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Profiler(abc.ABC):
    """Receives function call starts and ends."""

    @abc.abstractmethod
    def call_start(self, function: Function) -> None:
        """Record that ``function`` was entered."""

    @abc.abstractmethod
    def call_end(self) -> None:
        """Record that the innermost function returned."""

    @abc.abstractmethod
    def finalize(self) -> None:
        """Finish profiling; pending calls are closed."""

    def close(self) -> None:
        """Release what the profiler holds."""

    def __enter__(self) -> Profiler:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()