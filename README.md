# spxprof

Building blocks for a simple function-level profiler.

`spxprof` provides the parts needed to profile a call stack. The
`TracingProfiler` measures inclusive and exclusive metric values for each
function. The `SamplingProfiler` wraps another profiler and forwards only
the stack changes it sees once per sampling period. The `FullReporter`
writes a gzip-compressed event log and a JSON metadata file.

The package has no dependencies outside the standard library.

## Installation

```
pip install spxprof
```

## Modules

### `spxprof.profiler`

This module holds the shared model.

- `Function(func_name, class_name="", hash_code=None)` is frozen. When no
  hash code is given, one is derived from the names with CRC-32. `str()`
  gives `Class::func`, or just `func` when there is no class.
- `FuncStats` holds `called`, `max_cycle_depth` and the `inc` and `exc`
  value lists.
- `FuncTableEntry` holds `idx`, `function` and `stats`.
- `Event` is what a profiler hands to its reporter. Its type is an
  `EventType`: `CALL_START`, `CALL_END` or `FINALIZE`.
- `Reporter` is the base class for reporters. Its `notify(event)` returns a
  `ReporterCost` of `LIGHT` or `HEAVY`. The base `Reporter` ignores every
  event.
- `Profiler` is the abstract base class for profilers. It defines
  `call_start(function)`, `call_end()`, `finalize()` and `close()`.

Reporters and profilers are context managers. Leaving the `with` block
calls `close()`.

### `spxprof.tracer`

- `MetricCollector(probes)` takes one callable per metric, or `None` for a
  metric that is not collected (its value is always 0).
  - `collect()` returns the current values with the accumulated noise
    removed.
  - `noise_barrier()` counts the time since the last collection as noise.
  - `add_fixed_noise(values)` adds a fixed amount of noise to each metric.
- `TracingProfiler(max_depth, enabled_metrics, reporter, collector, time_metrics=())`
  records every call up to `max_depth`. A value of 0 means the limit is the
  stack capacity of 2048. Calls deeper than the limit are counted but not
  measured.
  - Its function table holds at most 65536 entries. It is exposed as
    `func_table`, and the current depth as `depth`.
  - Recursion is detected, and the deepest cycle of each function is kept
    in `max_cycle_depth`.
  - When `time_metrics` is not empty, the first measured call starts a
    calibration. The calibration runs 50,000 start and end iterations and
    measures the profiler's own per-call cost. That cost is then subtracted
    from the time metrics.
  - `finalize()` ends any calls still open and sends a `FINALIZE` event.
  - Calling `call_end()` at depth 0 raises `FatalError`.

### `spxprof.sampler`

`SamplingProfiler(sampled_profiler, sampling_period_us)` works in three
steps:

1. A background heartbeat thread marks a sample as due once per period.
2. At the next call start or end, the current stack is compared with the
   previously sampled stack, by `hash_code`.
3. Calls that are gone are ended on the wrapped profiler, and new calls
   are started on it.

`close()` stops the heartbeat thread and closes the wrapped profiler. A
period below 1 raises `FatalError`, and so does a stack deeper than 2048.

### `spxprof.reporter_full`

`FullReporter(data_dir, metric_keys, metadata=None, memory_usage=None)`
writes two files, both named after the run's key (`reporter.key`):

- **The event log** is `<data_dir>/<key>.txt.gz`.
  - It starts with an `[events]` section. Each line there holds the
    function index, `1` or `0` for a start or an end, and the cumulative
    value of each enabled metric with up to 4 decimals.
  - On finalisation a `[functions]` section is appended, listing the
    function names in table order.
  - Events are buffered, 16384 at a time, before they are written.
- **The metadata** is `<data_dir>/<key>.json`, saved on finalisation.
  - `wall_time_ms` is taken from the metric whose key is `"wt"`.
  - `peak_memory_usage` is taken from the optional `memory_usage` callable.

`Metadata.create(...)` builds the metadata for a run that starts now in
this process. It records:

- the host name;
- the process id;
- the thread id (on Linux only; 0 elsewhere);
- the working directory;
- any CLI and HTTP details you pass in.

`Metadata.to_json(metric_keys)` renders the metadata as JSON, and
`save(file_name, metric_keys)` writes that JSON to a file.

Three helpers locate saved reports:

- `list_metadata_files(data_dir)` lists the `.json` files in a directory.
- `build_metadata_file_name(data_dir, key)` and
  `build_file_name(data_dir, key)` resolve a report's paths. They return
  `None` when the file does not exist or lies outside `data_dir`.

### `spxprof.resource_stats`

- `wall_time()` returns monotonic time in nanoseconds.
- `cpu_time()` returns process CPU time in nanoseconds.
- `ResourceStats` reads `/proc` where it is available:
  - `own_rss()` returns anonymous resident memory in bytes.
  - `io()` returns the bytes read and written by the current thread. Its
    own procfs reads are left out of the read count.

  Where `/proc` is missing, both readings are zero. `ResourceStats` is a
  context manager.
- `parse_rss_anon(text)` and `parse_io_counters(text)` parse the procfs
  text.

### `spxprof.stdio`

This module works on POSIX only. Elsewhere it raises `OSError`.

- `disable(fd)` redirects a file descriptor to the null device and returns
  a saved copy of the original.
- `restore(fd, copy)` puts the saved copy back.
- `with silenced(fd): ...` does both around a block.
- `disabling_supported()` tells whether this works on the current platform.

### `spxprof.strbuilder`

`StrBuilder(capacity)` is a fixed-capacity text builder.

- It has `append_long`, `append_double(value, nb_dec)`, `append_str` and
  `append_char`.
- Each append returns 0 when the text does not fit.
- It also has `reset()`, `remaining`, `len()` and `str()`.

### `spxprof.utils`

- `ip_match(ip_address, target)` matches `*`, an exact address, or an IPv4
  subnet such as `10.0.0.0/8`.
- `json_escape(src, limit=8192)` escapes text for JSON. It raises
  `FatalError` when the escaped text reaches `limit` characters or more.
- `tokenize(text, delim, size)` yields the tokens of `text`, each
  truncated to `size - 1` characters.
- `resolve_confined_file_absolute_path(root_dir, relative_path, suffix=None)`
  resolves a path and confines it to `root_dir`.
- `FatalError` is the exception for unrecoverable internal errors.

## Example

```python
from spxprof.profiler import Function
from spxprof.reporter_full import FullReporter
from spxprof.resource_stats import cpu_time, wall_time
from spxprof.tracer import MetricCollector, TracingProfiler

metric_keys = ["wt", "ct"]
collector = MetricCollector([wall_time, cpu_time])

with FullReporter("/tmp/spx-data", metric_keys) as reporter:
    with TracingProfiler(0, [True, True], reporter, collector, [0, 1]) as profiler:
        profiler.call_start(Function("main"))
        profiler.call_start(Function("load", "Config"))
        profiler.call_end()
        profiler.call_end()
        profiler.finalize()
    print(reporter.file_name, reporter.metadata_file_name)
```

## What the package does not do

- **It does not hook into a running program.** You must call
  `call_start` and `call_end` yourself, or from your own instrumentation.
- **It has no console report.** There is no flat-profile or trace printer.
- **It has no report viewer.** Nothing reads back or displays the files
  that `FullReporter` writes.
- **It has no command-line tool.**

## Running the tests

```
pip install -e .[test]
pytest
```