"""
Utility functions and helpers for fatcarve.

Small helpers shared by the geometry, scanner and carver modules live
here so they can be tested on their own and stay free of circular
imports.
"""

from __future__ import annotations

PLACEHOLDER = "#"


def sanitize_ascii(raw: bytes, placeholder: str = PLACEHOLDER) -> str:
    """Return ``raw`` as a string with non ASCII bytes replaced.

    Every byte outside ``0x20 <= b < 0x80`` becomes ``placeholder``.
    The result always has exactly ``len(raw)`` characters, so a fixed
    width boot sector field keeps its width.

    Parameters
    ----------
    raw: bytes
        Field bytes cut from the boot sector.
    placeholder: str, optional
        Single character substituted for unprintable bytes.

    Returns
    -------
    str
        The sanitised field.
    """
    return "".join(chr(b) if 0x20 <= b < 0x80 else placeholder for b in raw)


def le16(buf: bytes, offset: int) -> int:
    """Little-endian 16 bit unsigned value at ``offset``."""
    return int.from_bytes(buf[offset:offset + 2], "little", signed=False)


def le32(buf: bytes, offset: int) -> int:
    """Little-endian 32 bit unsigned value at ``offset``."""
    return int.from_bytes(buf[offset:offset + 4], "little", signed=False)


def human_size(nbytes: int) -> str:
    """Format a byte count as kibibytes, or mebibytes above 1024k.

    >>> human_size(20480)
    '20.0k'
    >>> human_size(3 * 1024 * 1024)
    '3.0M'
    """
    size = nbytes / 1024.0
    unit = "k"
    if size > 1024.0:
        size /= 1024.0
        unit = "M"
    return f"{size:.1f}{unit}"
