"""
Sector-by-sector JPEG header scanner.

On media that were empty before they were written, every file occupies
a contiguous run of sectors and starts on a sector boundary. It is
therefore enough to look at the first two bytes of each sector for the
JPEG start-of-image marker; a byte granular search would be far slower
and only helps with fragmented media, which this tool does not handle.

The boot sector (sector 0) is never scanned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from .geometry import DeviceGeometry
from .rawio import SectorReader
from .signatures import ImageKind, classify, is_start_of_image

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 16

ProgressCallback = Callable[[int, int, int], None]


@dataclass(frozen=True)
class DetectedImage:
    """A JPEG start found during the scan.

    Attributes
    ----------
    id: int
        Position in the scan result. Ids follow discovery order, which
        is ascending sector order because the scan is sequential.
    start_sector: int
        Index of the sector holding the FF D8 marker.
    kind: ImageKind
        Coarse subtype taken from the APP0/APP1 identifier.
    tag: str
        The raw four character identifier, for diagnostics.
    """
    id: int
    start_sector: int
    kind: ImageKind = ImageKind.JPEG
    tag: str = "jpeg"


class SignatureScanner:
    """Find every sector of a device that begins a JPEG image."""

    def __init__(
        self,
        reader: SectorReader,
        geometry: DeviceGeometry,
        progress_cb: Optional[ProgressCallback] = None,
        max_images: int = 0,
        stop_flag: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Create a scanner.

        Parameters
        ----------
        reader: SectorReader
            Reader configured with ``geometry.sector_size``.
        geometry: DeviceGeometry
            Resolved geometry; sectors ``1 .. sectors_total - 1`` are scanned.
        progress_cb: callable, optional
            Called as ``progress_cb(sector, sectors_total, found)`` every
            few sectors and once at the end.
        max_images: int, optional
            When positive, stop after ``max_images + 1`` hits so the last
            image worth carving is still bounded by a successor. ``0``
            scans the whole device.
        stop_flag: callable, optional
            Polled with every progress report; when it returns ``True``
            the scan ends and ``stopped`` is set.
        """
        self.reader = reader
        self.geometry = geometry
        self.progress_cb = progress_cb or (lambda sector, total, found: None)
        self.max_images = max(0, max_images)
        self.stop_flag = stop_flag or (lambda: False)
        self.stopped = False

    def iter_images(self) -> Iterator[DetectedImage]:
        total = self.geometry.sectors_total
        buf = bytearray(self.reader.sector_size)
        found = 0
        sector = 1
        while sector < total:
            self.reader.read_sector_into(sector, buf)
            if is_start_of_image(buf):
                kind, tag = classify(buf)
                logger.debug("ffd8 %s at 0x%x sector %d",
                             tag, self.reader.offset_of(sector), sector)
                yield DetectedImage(id=found, start_sector=sector, kind=kind, tag=tag)
                found += 1
                if self.max_images and found > self.max_images:
                    break
            if sector % PROGRESS_INTERVAL == 0:
                self.progress_cb(sector, total, found)
                if self.stop_flag():
                    self.stopped = True
                    logger.info("scan stopped at sector %d", sector)
                    break
            sector += 1
        self.progress_cb(min(sector, total), total, found)
        logger.info("%d candidates found.", found)

    def scan(self) -> List[DetectedImage]:
        return list(self.iter_images())
