"""A profiler that forwards a sampled view of the call stack to another one."""

from __future__ import annotations

import threading

from .profiler import Function, Profiler
from .utils import FatalError

STACK_CAPACITY = 2048


class SamplingProfiler(Profiler):
    """Samples the call stack about once per period and replays the difference.

    A background heartbeat marks a sample as due every ``sampling_period_us``
    microseconds. At the next call start or end the stack is compared with the
    previously sampled one. Calls that are gone are ended and new calls are
    started on the wrapped profiler.
    """

    def __init__(self, sampled_profiler: Profiler, sampling_period_us: int) -> None:
        if sampling_period_us < 1:
            raise FatalError("sampling_period_us must be greater than zero")

        self.sampled_profiler = sampled_profiler
        self.sampling_period_us = sampling_period_us

        self._previous: list[Function] = []
        self._current: list[Function] = []

        self._ready = threading.Event()
        self._ready.set()
        self._stop = threading.Event()
        self._closed = False

        self._heartbeat = threading.Thread(
            target=self._beat, name="spxprof-sampler-heartbeat", daemon=True
        )
        self._heartbeat.start()

    def _beat(self) -> None:
        period = self.sampling_period_us / 1_000_000
        while not self._stop.wait(period):
            self._ready.set()

    def call_start(self, function: Function) -> None:
        if len(self._current) == STACK_CAPACITY:
            raise FatalError("STACK_CAPACITY exceeded")
        self._current.append(function)
        self._handle_sample(call_end=False)

    def call_end(self) -> None:
        if not self._current:
            raise FatalError("Cannot rewind below 0 depth")
        self._handle_sample(call_end=True)
        self._current.pop()

    def _handle_sample(self, call_end: bool) -> None:
        if not self._ready.is_set():
            return
        self._ready.clear()

        # Only hash codes are compared: an alias sharing a hash merely makes
        # the sampled report slightly less accurate.
        common = 0
        for previous, current in zip(self._previous, self._current):
            if previous.hash_code != current.hash_code:
                break
            common += 1

        sampled = self.sampled_profiler
        for _ in self._previous[common:]:
            sampled.call_end()
        for function in self._current[common:]:
            sampled.call_start(function)

        self._previous = list(self._current)

        if call_end:
            sampled.call_end()
            self._previous.pop()

    def finalize(self) -> None:
        self.sampled_profiler.finalize()

    def close(self) -> None:
        """Stop the heartbeat and close the wrapped profiler."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._heartbeat.join()
        self.sampled_profiler.close()