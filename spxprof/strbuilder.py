"""A bounded string builder for fast textual serialisation of numbers."""

from __future__ import annotations


class StrBuilder:
    """Accumulates text up to a fixed capacity.

    Appends that do not fit return ``0``. Numeric appends are then left out
    entirely. ``append_str`` keeps the part of the string that fit.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._parts: list[str] = []
        self._size = 0

    @property
    def remaining(self) -> int:
        """Number of characters that can still be appended."""
        return self.capacity - self._size

    def reset(self) -> None:
        """Discard the accumulated text."""
        self._parts.clear()
        self._size = 0

    def __str__(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return self._size

    def _append_whole(self, text: str) -> int:
        if len(text) > self.remaining:
            return 0
        self._parts.append(text)
        self._size += len(text)
        return len(text)

    def append_double(self, value: float, nb_dec: int) -> int:
        """Append ``value`` in fixed point with at most ``nb_dec`` decimals.

        Trailing zero decimals are dropped. Returns the number of characters
        written, or ``0`` if the text does not fit.
        """
        if self.remaining == 0:
            return 0
        if value == 0:
            return self.append_char("0")

        scaled = int(value * 10**nb_dec + 0.5)
        negative = scaled < 0
        scaled = abs(scaled)

        reversed_chars: list[str] = []
        position = 0
        while scaled:
            position += 1
            digit = str(scaled % 10)
            scaled //= 10
            if digit == "0" and not reversed_chars and position <= nb_dec:
                continue
            reversed_chars.append(digit)
            if position == nb_dec:
                reversed_chars.append(".")

        if negative:
            reversed_chars.append("-")

        return self._append_whole("".join(reversed(reversed_chars)))

    def append_long(self, value: int) -> int:
        """Append an integer in decimal; ``0`` is returned if it does not fit."""
        if self.remaining == 0:
            return 0
        return self._append_whole(str(int(value)))

    def append_str(self, text: str) -> int:
        """Append ``text``; on overflow the part that fits is kept and 0 returned."""
        room = self.remaining
        if len(text) > room:
            if room:
                self._parts.append(text[:room])
                self._size += room
            return 0
        if text:
            self._parts.append(text)
            self._size += len(text)
        return len(text)

    def append_char(self, char: str) -> int:
        """Append a single character; returns 1, or 0 when full."""
        if len(char) != 1:
            raise ValueError("exactly one character expected")
        if self.remaining == 0:
            return 0
        self._parts.append(char)
        self._size += 1
        return 1