import gzip
import json
import os

import pytest

from spxprof.profiler import Event, EventType, FuncStats, FuncTableEntry, Function, ReporterCost
from spxprof.reporter_full import (
    BUFFER_CAPACITY,
    FullReporter,
    Metadata,
    build_file_name,
    build_metadata_file_name,
    list_metadata_files,
)

METRIC_KEYS = ("wt", "ct", "zm")
ENABLED = (True, True, False)


def _entries():
    return [
        FuncTableEntry(0, Function("main"), FuncStats()),
        FuncTableEntry(1, Function("run", "App"), FuncStats()),
    ]


def _event(type_, callee=None, cum=(0.0, 0.0, 0.0), table=()):
    return Event(
        type=type_,
        enabled_metrics=ENABLED,
        cum=list(cum),
        func_table=list(table),
        callee=callee,
    )


def test_list_metadata_files_only_json(tmp_path):
    (tmp_path / "a.json").write_text("{}")
    (tmp_path / "b.txt.gz").write_text("")
    (tmp_path / "c.json").write_text("{}")
    found = sorted(list_metadata_files(str(tmp_path)))
    assert found == [f"{tmp_path}/a.json", f"{tmp_path}/c.json"]


def test_list_metadata_files_missing_dir(tmp_path):
    assert list_metadata_files(str(tmp_path / "missing")) == []


def test_build_file_names(tmp_path):
    (tmp_path / "run1.json").write_text("{}")
    (tmp_path / "run1.txt.gz").write_bytes(b"")
    root = f"{tmp_path}/"
    assert build_metadata_file_name(root, "run1") == os.path.realpath(tmp_path / "run1.json")
    assert build_file_name(root, "run1") == os.path.realpath(tmp_path / "run1.txt.gz")
    assert build_file_name(root, "missing") is None


def test_build_file_name_confined(tmp_path):
    inner = tmp_path / "data"
    inner.mkdir()
    (tmp_path / "outside.json").write_text("{}")
    assert build_metadata_file_name(f"{inner}/", "../outside") is None


def test_metadata_create_defaults():
    metadata = Metadata.create()
    assert metadata.key.startswith("spx-full-")
    assert metadata.process_pid == os.getpid()
    assert metadata.cli_command_line == "n/a"
    assert metadata.http_method == "n/a"
    assert metadata.custom_metadata_str is None


def test_metadata_create_values():
    metadata = Metadata.create(True, "php x.php", "/index", "GET", "example.com")
    assert metadata.cli is True
    assert metadata.http_request_uri == "/index"
    assert metadata.http_host == "example.com"


def test_metadata_json_round_trip():
    metadata = Metadata.create(http_request_uri='/a"b')
    metadata.enabled_metrics = list(ENABLED)
    metadata.custom_metadata_str = "tag"
    data = json.loads(metadata.to_json(METRIC_KEYS))
    assert data["key"] == metadata.key
    assert data["http_request_uri"] == '/a"b'
    assert data["custom_metadata_str"] == "tag"
    assert data["enabled_metrics"] == ["wt", "ct"]
    assert data["cli"] == 0


def test_metadata_json_null_custom():
    metadata = Metadata.create()
    text = metadata.to_json(METRIC_KEYS)
    assert '  "custom_metadata_str": null,\n' in text
    assert json.loads(text)["custom_metadata_str"] is None


def test_metadata_save(tmp_path):
    metadata = Metadata.create()
    path = tmp_path / "m.json"
    metadata.save(str(path), METRIC_KEYS)
    assert json.loads(path.read_text())["process_pid"] == os.getpid()


def test_full_reporter_records_run(tmp_path):
    data_dir = str(tmp_path / "spx")
    entries = _entries()
    reporter = FullReporter(data_dir, METRIC_KEYS, memory_usage=lambda: 4096)
    with reporter:
        assert reporter.notify(_event(EventType.CALL_START, entries[0])) is ReporterCost.LIGHT
        assert (
            reporter.notify(_event(EventType.CALL_START, entries[1], (1.5, 2.0, 7.0)))
            is ReporterCost.LIGHT
        )
        assert (
            reporter.notify(_event(EventType.CALL_END, entries[1], (2_500_000.0, 3.0, 0.0)))
            is ReporterCost.LIGHT
        )
        cost = reporter.notify(
            _event(EventType.FINALIZE, cum=(2_500_000.0, 3.0, 0.0), table=entries)
        )
        assert cost is ReporterCost.HEAVY

    with gzip.open(reporter.file_name, "rt") as fp:
        lines = fp.read().splitlines()
    assert lines == [
        "[events]",
        "0 1 0 0",
        "1 1 1.5 2",
        "1 0 2500000 3",
        "[functions]",
        "main",
        "App::run",
    ]

    with open(reporter.metadata_file_name) as fp:
        data = json.load(fp)
    assert data["key"] == reporter.key
    assert data["call_count"] == 1
    assert data["recorded_call_count"] == 1
    assert data["called_function_count"] == 2
    assert data["peak_memory_usage"] == 4096
    assert data["wall_time_ms"] == 2500
    assert data["enabled_metrics"] == ["wt", "ct"]
    assert list_metadata_files(data_dir) == [reporter.metadata_file_name]


def test_full_reporter_flushes_when_buffer_full(tmp_path):
    entry = _entries()[0]
    with FullReporter(str(tmp_path), METRIC_KEYS) as reporter:
        costs = [
            reporter.notify(_event(EventType.CALL_START, entry))
            for _ in range(BUFFER_CAPACITY)
        ]
    assert costs[-1] is ReporterCost.HEAVY
    assert all(cost is ReporterCost.LIGHT for cost in costs[:-1])
    with gzip.open(reporter.file_name, "rt") as fp:
        lines = fp.read().splitlines()
    assert len(lines) == BUFFER_CAPACITY + 1


def test_full_reporter_uses_given_metadata(tmp_path):
    metadata = Metadata.create(cli=True)
    with FullReporter(str(tmp_path), METRIC_KEYS, metadata) as reporter:
        assert reporter.key == metadata.key
    assert reporter.file_name == f"{tmp_path}/{metadata.key}.txt.gz"


def test_full_reporter_requires_callee(tmp_path):
    with FullReporter(str(tmp_path), METRIC_KEYS) as reporter:
        with pytest.raises(ValueError):
            reporter.notify(_event(EventType.CALL_START))