"""Small helpers: IP matching, confined path resolution, JSON escaping."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator

_INADDR_NONE = 0xFFFFFFFF
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_JSON_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "/": "/",
    "\b": "b",
    "\f": "f",
    "\n": "n",
    "\r": "r",
    "\t": "t",
}


class FatalError(RuntimeError):
    """An unrecoverable internal error."""


def _parse_c_number(part: str) -> int | None:
    if not part:
        return None
    lowered = part.lower()
    try:
        if lowered.startswith("0x"):
            return int(lowered[2:], 16) if len(lowered) > 2 else 0
        if lowered.startswith("0") and len(lowered) > 1:
            return int(lowered[1:], 8)
        if not lowered.isdigit():
            return None
        return int(lowered, 10)
    except ValueError:
        return None


def _inet_addr(text: str) -> int | None:
    """Parse an IPv4 address the classic way; None when invalid."""
    parts = text.split(".")
    if not 1 <= len(parts) <= 4:
        return None
    numbers = []
    for part in parts:
        number = _parse_c_number(part)
        if number is None:
            return None
        numbers.append(number)

    *leading, last = numbers
    if any(n > 0xFF for n in leading):
        return None
    last_bits = 8 * (4 - len(leading))
    if last >= 1 << last_bits:
        return None

    address = 0
    for number in leading:
        address = (address << 8) | number
    address = (address << last_bits) | last
    if address == _INADDR_NONE:
        return None
    return address


def ip_match(ip_address: str, target: str) -> bool:
    """Tell whether ``ip_address`` matches ``target``.

    ``target`` is ``*``, an exact address, or an IPv4 subnet such as
    ``10.0.0.0/8`` with a prefix length between 1 and 31.
    """
    if target == "*" or target == ip_address:
        return True

    slash_pos = target.find("/")
    if slash_pos < 0:
        return False
    if not 7 <= slash_pos <= 15:
        return False

    suffix = target[slash_pos:]
    if not 2 <= len(suffix) <= 3:
        return False

    target_address = _inet_addr(target[:slash_pos])
    if target_address is None:
        return False

    match = _LEADING_INT.match(suffix[1:])
    mask_bits = int(match.group(1)) if match else 0
    if not 1 <= mask_bits <= 31:
        return False

    mask = (0xFFFFFFFF << (32 - mask_bits)) & 0xFFFFFFFF

    address = _inet_addr(ip_address)
    if address is None:
        return False

    return (address & mask) == (target_address & mask)


def resolve_confined_file_absolute_path(
    root_dir: str, relative_path: str, suffix: str | None = None
) -> str | None:
    """Resolve ``root_dir + relative_path + suffix`` to an existing real path.

    Returns None if the file does not exist or lies outside ``root_dir``.
    """
    candidate = f"{root_dir}{relative_path}{suffix or ''}"
    try:
        resolved = os.path.realpath(candidate, strict=True)
        root_real = os.path.realpath(root_dir, strict=True)
    except OSError:
        return None

    if not resolved.startswith(os.path.join(root_real, "")):
        return None
    return resolved


def json_escape(src: str, limit: int = 8 * 1024) -> str:
    """Escape ``src`` for use inside a JSON string literal.

    Raises FatalError if the escaped text would not be shorter than ``limit``.
    """
    escaped = "".join(
        "\\" + _JSON_ESCAPES[ch] if ch in _JSON_ESCAPES else ch for ch in src
    )
    if len(escaped) >= limit:
        raise FatalError(
            "The provided buffer is too small to contain the escaped JSON string"
        )
    return escaped


def tokenize(text: str, delim: str, size: int) -> Iterator[str]:
    """Yield the ``delim``-separated tokens of ``text``.

    Each token is cut to at most ``size - 1`` characters; empty tokens are kept.
    """
    if len(delim) != 1:
        raise ValueError("delimiter must be a single character")
    if size < 1:
        raise ValueError("size must be at least 1")
    for token in text.split(delim):
        yield token[: size - 1]