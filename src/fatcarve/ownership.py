"""
Sector ownership derived from the scan result.

Only the start sector of each detected image is ever marked. The carver
walks forward from an image's start and stops at the first sector that
belongs to a different image; since start sectors are unique and
ascending, that sector is necessarily the next image's start. Interior
sectors therefore never need an owner.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .scanner import DetectedImage

UNOWNED = None


class SectorOwnership:
    """Mapping from every sector index to an image id or ``UNOWNED``.

    The map covers ``0 .. sectors_total - 1``. Only assigned sectors
    are stored, so a device with millions of sectors costs memory in
    proportion to the number of images.
    """

    def __init__(self, sectors_total: int) -> None:
        if sectors_total < 0:
            raise ValueError(f"sectors_total must not be negative, got {sectors_total}")
        self.sectors_total = sectors_total
        self._owners: Dict[int, int] = {}

    def _check(self, sector: int) -> None:
        if not 0 <= sector < self.sectors_total:
            raise IndexError(f"sector {sector} outside 0..{self.sectors_total - 1}")

    def assign(self, sector: int, image_id: int) -> None:
        self._check(sector)
        current = self._owners.get(sector)
        if current is not None:
            raise ValueError(f"sector {sector} already starts image {current}")
        self._owners[sector] = image_id

    def owner(self, sector: int) -> Optional[int]:
        self._check(sector)
        return self._owners.get(sector, UNOWNED)

    __getitem__ = owner

    def __len__(self) -> int:
        return self.sectors_total

    def __iter__(self) -> Iterator[Optional[int]]:
        for sector in range(self.sectors_total):
            yield self._owners.get(sector, UNOWNED)

    def assigned(self) -> List[Tuple[int, int]]:
        """``(sector, image_id)`` pairs in ascending sector order."""
        return sorted(self._owners.items())


def build_ownership(sectors_total: int, images: Iterable[DetectedImage]) -> SectorOwnership:
    ownership = SectorOwnership(sectors_total)
    for image in images:
        ownership.assign(image.start_sector, image.id)
    return ownership
