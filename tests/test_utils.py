import json
import os

import pytest

from spxprof.utils import (
    FatalError,
    ip_match,
    json_escape,
    resolve_confined_file_absolute_path,
    tokenize,
)


def test_ip_match_wildcard_and_exact():
    assert ip_match("127.0.0.1", "*") is True
    assert ip_match("127.0.0.1", "127.0.0.1") is True
    assert ip_match("127.0.0.1", "127.0.0.2") is False


def test_ip_match_subnet():
    assert ip_match("192.168.1.42", "192.168.1.0/24") is True
    assert ip_match("192.168.2.42", "192.168.1.0/24") is False
    assert ip_match("10.200.3.4", "10.0.0.0/8") is True


@pytest.mark.parametrize(
    "target",
    ["192.168.1.0/32", "192.168.1.0/0", "1.2.3/8", "192.168.1.0/240", "bad.ip.addr/24"],
)
def test_ip_match_rejected_targets(target):
    assert ip_match("192.168.1.1", target) is False


def test_ip_match_invalid_address():
    assert ip_match("not-an-ip", "192.168.1.0/24") is False


def test_json_escape_round_trip():
    src = 'a"b\\c/d\be\ff\ng\rh\ti'
    escaped = json_escape(src)
    assert json.loads('"' + escaped + '"') == src


def test_json_escape_plain_text_unchanged():
    assert json_escape("plain text") == "plain text"


def test_json_escape_limit():
    src = "abc"
    assert json_escape(src, len(src) + 1) == src
    with pytest.raises(FatalError):
        json_escape(src, len(src))
    with pytest.raises(FatalError):
        json_escape('"', 2)


def test_tokenize_keeps_empty_tokens():
    assert list(tokenize("a,b,,c", ",", 16)) == ["a", "b", "", "c"]
    assert list(tokenize("", ",", 16)) == [""]


def test_tokenize_truncates():
    assert list(tokenize("abcdef,gh", ",", 4)) == ["abc", "gh"]


def test_tokenize_join_round_trip():
    text = "wt,ct,zm,zr"
    assert ",".join(tokenize(text, ",", 64)) == text


def test_tokenize_bad_delimiter():
    with pytest.raises(ValueError):
        list(tokenize("a", ",,", 4))


def test_resolve_existing_file(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    target = root / "key.json"
    target.write_text("{}")
    resolved = resolve_confined_file_absolute_path(str(root) + os.sep, "key", ".json")
    assert resolved == os.path.realpath(target)


def test_resolve_missing_file(tmp_path):
    assert resolve_confined_file_absolute_path(str(tmp_path) + os.sep, "nope", ".json") is None


def test_resolve_outside_root(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    (tmp_path / "outside.json").write_text("{}")
    assert (
        resolve_confined_file_absolute_path(str(root) + os.sep, "../outside", ".json")
        is None
    )


def test_resolve_without_suffix(tmp_path):
    (tmp_path / "plain").write_text("x")
    resolved = resolve_confined_file_absolute_path(str(tmp_path) + os.sep, "plain", None)
    assert resolved == os.path.realpath(tmp_path / "plain")