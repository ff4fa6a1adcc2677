"""Temporarily redirect a standard stream file descriptor to the null device."""

from __future__ import annotations

import errno
import functools
import os
from collections.abc import Iterator
from contextlib import contextmanager


def disabling_supported() -> bool:
    """Tell whether streams can be silenced on this platform."""
    return os.name == "posix"


def _require_support() -> None:
    if not disabling_supported():
        raise OSError(errno.ENOTSUP, "disabling standard streams is not supported")


@functools.lru_cache(maxsize=None)
def _null_output() -> int:
    return os.open(os.devnull, os.O_WRONLY)


def disable(fd: int) -> int:
    """Send writes to ``fd`` to the null device.

    Returns a copy of the original descriptor, to be passed to ``restore``.
    Raises OSError on failure.
    """
    _require_support()
    null_fd = _null_output()
    copy = os.dup(fd)
    try:
        os.dup2(null_fd, fd)
    except OSError:
        os.close(copy)
        raise
    return copy


def restore(fd: int, copy: int) -> int:
    """Put the saved descriptor ``copy`` back in place of ``fd`` and close it."""
    _require_support()
    os.dup2(copy, fd)
    os.close(copy)
    return fd


@contextmanager
def silenced(fd: int) -> Iterator[int]:
    """Silence ``fd`` for the duration of the block; yields the saved copy."""
    copy = disable(fd)
    try:
        yield copy
    finally:
        restore(fd, copy)