"""A profiler that records every function call and aggregates per-function stats."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from .profiler import (
    Event,
    EventType,
    FuncStats,
    FuncTableEntry,
    Function,
    Profiler,
    Reporter,
    ReporterCost,
)
from .resource_stats import cpu_time
from .utils import FatalError

STACK_CAPACITY = 2048
FUNC_TABLE_CAPACITY = 65536
CALIBRATION_ITERATIONS = 50000
_CALIBRATION_DEPTH = 5

Probe = Callable[[], float]


def _add(a: Sequence[float], b: Sequence[float]) -> list[float]:
    return [x + y for x, y in zip(a, b)]


def _sub(a: Sequence[float], b: Sequence[float]) -> list[float]:
    return [x - y for x, y in zip(a, b)]


def _max(a: Sequence[float], b: Sequence[float]) -> list[float]:
    return [x if x > y else y for x, y in zip(a, b)]


class MetricCollector:
    """Reads a set of metric probes and removes the noise added by profiling.

    Each probe is a callable returning the current value of one metric, or
    None for a metric that is not collected (its value is always 0).
    """

    def __init__(self, probes: Iterable[Probe | None]) -> None:
        self._probes = tuple(probes)
        self._noise = [0.0] * len(self._probes)
        self._last_raw = [0.0] * len(self._probes)

    def __len__(self) -> int:
        return len(self._probes)

    def _read(self) -> list[float]:
        return [0.0 if probe is None else float(probe()) for probe in self._probes]

    def collect(self) -> list[float]:
        """Current metric values with the accumulated noise removed."""
        raw = self._read()
        self._last_raw = raw
        return _sub(raw, self._noise)

    def noise_barrier(self) -> None:
        """Count everything since the last collection as noise."""
        raw = self._read()
        self._noise = [n + r - last for n, r, last in zip(self._noise, raw, self._last_raw)]
        self._last_raw = raw

    def add_fixed_noise(self, noise: Sequence[float]) -> None:
        """Add a fixed amount of noise to every metric."""
        self._noise = _add(self._noise, noise)


@dataclass
class _Frame:
    entry: FuncTableEntry | None
    start: list[float] = field(default_factory=list)
    children: list[float] = field(default_factory=list)


class TracingProfiler(Profiler):
    """Measures every call and keeps inclusive and exclusive costs per function.

    ``time_metrics`` are the indices of the time metrics; the per-call cost of
    the profiler itself is measured once and subtracted from them.
    """

    def __init__(
        self,
        max_depth: int,
        enabled_metrics: Sequence[bool],
        reporter: Reporter,
        collector: MetricCollector,
        time_metrics: Sequence[int] = (),
    ) -> None:
        self.enabled_metrics = tuple(bool(m) for m in enabled_metrics)
        count = len(self.enabled_metrics)
        if len(collector) != count:
            raise ValueError("the collector must provide one probe per metric")
        if any(not 0 <= i < count for i in time_metrics):
            raise ValueError("time metric index out of range")

        self.reporter = reporter
        self.collector = collector
        self.time_metrics = tuple(time_metrics)
        self.max_depth = max_depth if 0 < max_depth < STACK_CAPACITY else STACK_CAPACITY

        self._count = count
        self._finalized = False
        self._active = True
        self._calibrated = not self.time_metrics
        self.call_start_noise = [0.0] * count
        self.call_end_noise = [0.0] * count

        self.called = 0
        self._first = [0.0] * count
        self._last = [0.0] * count
        self._cum = [0.0] * count
        self._max = [0.0] * count

        self._depth = 0
        self._frames: list[_Frame | None] = [None] * self.max_depth

        self._entries: list[FuncTableEntry] = []
        self._index: dict[tuple[str, str], FuncTableEntry] = {}

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def func_table(self) -> Sequence[FuncTableEntry]:
        return self._entries

    def call_start(self, function: Function) -> None:
        if self._finalized:
            return

        if self._active:
            self._record_start(function)
        elif self._depth == STACK_CAPACITY:
            print(f"SPX: STACK_CAPACITY ({STACK_CAPACITY}) exceeded", file=sys.stderr)

        self._depth += 1
        self._active = self._depth < self.max_depth

    def _record_start(self, function: Function) -> None:
        if self.called == 0 and not self._calibrated:
            self._calibrate(function)

        current = self.collector.collect()
        if self.called == 0:
            self._first = current
            self._max = current
        self._update_globals(current)
        self.called += 1

        entry = self._get_entry(function)
        frame = _Frame(entry)
        self._frames[self._depth] = frame
        if entry is None:
            return

        frame.start = current
        frame.children = [0.0] * self._count

        self._notify(
            EventType.CALL_START, self._parent_entry(), entry, None, None
        )
        self.collector.add_fixed_noise(self.call_start_noise)

    def call_end(self) -> None:
        if self._finalized:
            return
        if self._depth == 0:
            raise FatalError("Cannot rewind below 0 depth")

        self._depth -= 1
        self._active = self._depth < self.max_depth
        if not self._active:
            return

        current = self.collector.collect()
        self._update_globals(current)

        frame = self._frames[self._depth]
        if frame is None or frame.entry is None:
            return
        entry = frame.entry

        inc = _sub(current, frame.start)
        exc = _sub(inc, frame.children)

        cycle_depth = 0
        for i in range(self._depth - 1, -1, -1):
            parent = self._frames[i]
            if parent is None or parent.entry is None:
                continue
            if i == self._depth - 1:
                parent.children = _add(parent.children, inc)
            if parent.entry is entry:
                cycle_depth += 1
                if cycle_depth == 1:
                    parent.children = _sub(parent.children, exc)

        stats = entry.stats
        stats.called += 1
        stats.max_cycle_depth = max(stats.max_cycle_depth, cycle_depth)
        if cycle_depth == 0:
            stats.inc = _add(stats.inc, inc)
            stats.exc = _add(stats.exc, exc)

        self._notify(EventType.CALL_END, self._parent_entry(), entry, inc, exc)
        self.collector.add_fixed_noise(self.call_end_noise)

    def finalize(self) -> None:
        self._active = True
        while self._depth > 0:
            self.call_end()
        self._finalized = True
        self.reporter.notify(self._make_event(EventType.FINALIZE, None, None, None, None))

    def close(self) -> None:
        """Drop the function table."""
        self._reset_func_table()

    def _update_globals(self, current: list[float]) -> None:
        self._last = current
        self._cum = _sub(current, self._first)
        self._max = _max(self._max, current)

    def _parent_entry(self) -> FuncTableEntry | None:
        if self._depth == 0:
            return None
        parent = self._frames[self._depth - 1]
        return parent.entry if parent is not None else None

    def _make_event(self, type_, caller, callee, inc, exc) -> Event:
        return Event(
            type=type_,
            enabled_metrics=self.enabled_metrics,
            called=self.called,
            max=self._max,
            cum=self._cum,
            func_table=self._entries,
            func_table_capacity=FUNC_TABLE_CAPACITY,
            depth=self._depth,
            caller=caller,
            callee=callee,
            inc=inc,
            exc=exc,
        )

    def _notify(self, type_, caller, callee, inc, exc) -> None:
        event = self._make_event(type_, caller, callee, inc, exc)
        if self.reporter.notify(event) is ReporterCost.HEAVY:
            self.collector.noise_barrier()

    def _get_entry(self, function: Function) -> FuncTableEntry | None:
        key = (function.func_name, function.class_name)
        entry = self._index.get(key)
        if entry is not None or len(self._entries) == FUNC_TABLE_CAPACITY:
            return entry

        entry = FuncTableEntry(
            idx=len(self._entries),
            function=function,
            stats=FuncStats(inc=[0.0] * self._count, exc=[0.0] * self._count),
        )
        self._entries.append(entry)
        self._index[key] = entry
        if len(self._entries) == FUNC_TABLE_CAPACITY:
            print(f"SPX: FUNC_TABLE_CAPACITY ({FUNC_TABLE_CAPACITY}) reached", file=sys.stderr)
        return entry

    def _reset_func_table(self) -> None:
        self._entries = []
        self._index = {}

    def _calibrate(self, function: Function) -> None:
        self._calibrated = True
        original_reporter = self.reporter
        self.reporter = Reporter()

        start = cpu_time()
        for _ in range(CALIBRATION_ITERATIONS):
            self.call_start(function)
            self._depth = min(self._depth, _CALIBRATION_DEPTH)
        avg_noise = float((cpu_time() - start) // CALIBRATION_ITERATIONS)
        for i in self.time_metrics:
            self.call_start_noise[i] = avg_noise

        start = cpu_time()
        for _ in range(CALIBRATION_ITERATIONS):
            self.call_end()
            self._depth += 1
        avg_noise = float((cpu_time() - start) // CALIBRATION_ITERATIONS)
        for i in self.time_metrics:
            self.call_end_noise[i] = avg_noise

        self.reporter = original_reporter
        self.called = 0
        self._depth = 0
        self._reset_func_table()