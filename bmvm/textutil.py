"""Small text and path helpers used by the machine tools."""

from __future__ import annotations

import os

_U64_MASK = (1 << 64) - 1
_SEPARATORS = ("/", "\\") if os.name == "nt" else ("/",)
_DECIMAL_DIGITS = "0123456789"


def chop_by_delim(text, delim):
    """Split ``text`` at the first ``delim``.

    Returns ``(head, rest)``; the delimiter itself is dropped. When the
    delimiter is absent the whole text is the head and the rest is empty.
    Works for both ``str`` and ``bytes``.
    """
    head, _, rest = text.partition(delim)
    return head, rest


def parse_u64(text: str) -> int:
    """Parse the leading decimal digits of ``text`` as an unsigned 64-bit value.

    Parsing stops at the first non-digit; the result wraps modulo 2**64.
    """
    result = 0
    for ch in text:
        if ch not in _DECIMAL_DIGITS:
            break
        result = (result * 10 + int(ch)) & _U64_MASK
    return result


def parse_hex(text: str) -> int:
    """Parse ``text`` as hexadecimal digits into an unsigned 64-bit value.

    Raises ``ValueError`` on any character that is not a hex digit.
    An empty string parses to zero.
    """
    result = 0
    for ch in text:
        if ch in _DECIMAL_DIGITS:
            digit = ord(ch) - ord("0")
        elif "a" <= ch <= "f":
            digit = ord(ch) - ord("a") + 10
        elif "A" <= ch <= "F":
            digit = ord(ch) - ord("A") + 10
        else:
            raise ValueError(f"invalid hexadecimal digit {ch!r} in {text!r}")
        result = (result * 0x10 + digit) & _U64_MASK
    return result


def _dot_guard(name: str) -> str:
    return "" if name in (".", "..") else name


def file_name_of_path(path: str | None) -> str | None:
    """Return the file name of ``path`` without its directory and extension."""
    if path is None:
        return None

    dot = path.rfind(".")
    sep = max(path.rfind(s) for s in _SEPARATORS)

    if dot < 0 and sep < 0:
        return _dot_guard(path)
    if sep > dot:
        return _dot_guard(path[sep + 1:])
    return _dot_guard(path[sep + 1:dot])


def path_join(base: str, file_path: str) -> str:
    """Join two path pieces with the platform separator."""
    return f"{base}{os.sep}{file_path}"


def path_file_exist(file_path: str) -> bool:
    """Tell whether ``file_path`` names an existing regular file."""
    return os.path.isfile(file_path)