import os
import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List

from .errors import OutputIOError
from .geometry import DeviceGeometry
from .ownership import UNOWNED, SectorOwnership
from .rawio import SectorReader
from .scanner import DetectedImage
from .signatures import JPEG
from .utils import human_size

logger = logging.getLogger(__name__)


@dataclass
class CarveResult:
    image: DetectedImage
    out_path: str
    sectors: int
    size: int
    sha256: str

    @property
    def end_sector(self) -> int:
        return self.image.start_sector + self.sectors


def _ensure_parent(path: str):
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class SectorCarver:
    """
    Write each detected image as the run of sectors from its start
    sector up to the start of the next image.

    The last image runs to the end of the device; without end marker
    detection it may carry a lot of trailing data.
    """
    def __init__(
        self,
        reader: SectorReader,
        geometry: DeviceGeometry,
        ownership: SectorOwnership,
        prefix: str,
    ):
        self.reader = reader
        self.geometry = geometry
        self.ownership = ownership
        self.prefix = prefix

    def output_path(self, image: DetectedImage) -> str:
        return f"{self.prefix}{image.id:04d}.{JPEG.ext}"

    def _owned_by(self, sector: int, image: DetectedImage) -> bool:
        owner = self.ownership.owner(sector)
        return owner is UNOWNED or owner == image.id

    def _open_output(self, out_path: str):
        _ensure_parent(out_path)
        return open(out_path, "wb")

    def carve(self, image: DetectedImage) -> CarveResult:
        out_path = self.output_path(image)
        total = self.geometry.sectors_total
        buf = bytearray(self.reader.sector_size)
        digest = hashlib.sha256()
        sector = image.start_sector
        n = 0
        try:
            fo = self._open_output(out_path)
        except OSError as e:
            raise OutputIOError(f"cannot write: {e.strerror or e}", out_path) from e
        try:
            while sector < total and self._owned_by(sector, image):
                self.reader.read_sector_into(sector, buf)
                try:
                    fo.write(buf)
                except OSError as e:
                    raise OutputIOError(f"write fails: {e.strerror or e}", out_path) from e
                digest.update(buf)
                sector += 1
                n += 1
        except BaseException:
            # the error already raised is the one reported
            try:
                fo.close()
            except OSError as e:
                logger.debug("%s: close after failure: %s", out_path, e)
            raise
        try:
            fo.close()
        except OSError as e:
            raise OutputIOError(f"final write failed: {e.strerror or e}", out_path) from e

        size = n * self.reader.sector_size
        logger.info("%s written. (%s)", out_path, human_size(size))
        return CarveResult(image=image, out_path=out_path, sectors=n, size=size,
                           sha256=digest.hexdigest())

    def carve_all(self, images: Iterable[DetectedImage], limit: int = 0) -> Iterator[CarveResult]:
        todo: List[DetectedImage] = sorted(images, key=lambda img: img.id)
        if limit > 0:
            todo = todo[:limit]
        for i, image in enumerate(todo):
            yield self.carve(image)
            logger.info(" %d%% done", (i + 1) * 100 // len(todo))
