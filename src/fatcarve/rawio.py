import os
from typing import Optional

from .errors import DeviceIOError


def to_raw_if_drive(path: str) -> str:
    p = (path or "").strip()
    if os.name == "nt":
        # "E:" or "E:/" picked from a dialog
        if 2 <= len(p) <= 3 and p[1] == ":" and p[0].isalpha():
            return r"\\.\%s:" % p[0].upper()
    return p


class RawDevice:
    """Read-only, unbuffered access to a block device or image file."""

    def __init__(self, path: str):
        self.path = to_raw_if_drive(path)
        self._fin = None
        try:
            self._fin = open(self.path, "rb", buffering=0)
        except OSError as e:
            raise DeviceIOError(f"cannot open for reading: {e.strerror or e}", self.path) from e
        self._length: Optional[int] = None

    @property
    def length(self) -> int:
        # block devices report st_size 0, seeking to the end works for both
        if self._length is None:
            try:
                self._length = self._fin.seek(0, os.SEEK_END)
            except OSError as e:
                raise DeviceIOError(f"cannot determine size: {e}", self.path) from e
        return self._length

    def _seek(self, offset: int):
        try:
            self._fin.seek(offset, os.SEEK_SET)
        except (OSError, ValueError) as e:
            raise DeviceIOError(f"seek({offset}) failed: {e}", self.path, offset) from e

    def read_at(self, offset: int, size: int) -> bytes:
        self._seek(offset)
        try:
            data = self._fin.read(size)
        except OSError as e:
            raise DeviceIOError(f"read({offset}, {size}) failed: {e}", self.path, offset) from e
        if data is None or len(data) < size:
            n = 0 if data is None else len(data)
            raise DeviceIOError(f"read({offset}, {size}) = {n}: short read", self.path, offset)
        return data

    def readinto_at(self, offset: int, buf) -> int:
        size = len(buf)
        self._seek(offset)
        try:
            n = self._fin.readinto(buf)
        except OSError as e:
            raise DeviceIOError(f"read({offset}, {size}) failed: {e}", self.path, offset) from e
        if n is None or n < size:
            raise DeviceIOError(f"read({offset}, {size}) = {n or 0}: short read", self.path, offset)
        return n

    def close(self):
        if self._fin is not None:
            self._fin.close()
            self._fin = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class SectorReader:
    """Geometry-aware access to whole sectors of a :class:`RawDevice`.

    There is no partial sector handling: a read that comes back short
    means the device ended before the geometry says it should, and is
    raised as :class:`DeviceIOError`.
    """

    def __init__(self, device: RawDevice, sector_size: int):
        if sector_size <= 0:
            raise ValueError(f"sector size must be positive, got {sector_size}")
        self.device = device
        self.sector_size = sector_size

    def offset_of(self, index: int) -> int:
        return index * self.sector_size

    def read_sector(self, index: int) -> bytes:
        return self.device.read_at(self.offset_of(index), self.sector_size)

    def read_sector_into(self, index: int, buf) -> int:
        """Fill ``buf`` (exactly one sector long) with sector ``index``."""
        if len(buf) != self.sector_size:
            raise ValueError(f"buffer holds {len(buf)} bytes, sector is {self.sector_size}")
        return self.device.readinto_at(self.offset_of(index), buf)
