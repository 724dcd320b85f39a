"""
End-to-end JPEG recovery for fatcarve.

:class:`FileRecovery` runs the four stages in their fixed order on one
read-only handle of the source: geometry resolution, signature scan,
ownership map, carving. The scan must finish before anything is carved
because every image's extent depends on where the next one starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from .carver import CarveResult, SectorCarver
from .config import CarveConfig
from .errors import ConfigError
from .geometry import DeviceGeometry, GeometryResolver
from .ownership import build_ownership
from .rawio import RawDevice, SectorReader
from .scanner import DetectedImage, ProgressCallback, SignatureScanner

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "./recovered_"


@dataclass
class RecoveryReport:
    """Everything one recovery run produced."""
    geometry: DeviceGeometry
    images: List[DetectedImage] = field(default_factory=list)
    results: List[CarveResult] = field(default_factory=list)

    @property
    def bytes_written(self) -> int:
        return sum(r.size for r in self.results)


class FileRecovery:
    """Recover JPEG files from a FAT formatted device or image."""

    def __init__(
        self,
        source: str,
        prefix: str = DEFAULT_PREFIX,
        config: Optional[CarveConfig] = None,
        progress_cb: Optional[ProgressCallback] = None,
        max_images: int = 0,
        sleep: Optional[Callable[[float], None]] = None,
        stop_flag: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Create a new recovery context.

        Parameters
        ----------
        source: str
            Path to the block device or disk image.
        prefix: str, optional
            Output path prefix; files are named ``<prefix>NNNN.jpg``.
        config: CarveConfig, optional
            Geometry overrides. Defaults to no overrides.
        progress_cb: callable, optional
            Scan progress callback, see :class:`SignatureScanner`.
        max_images: int, optional
            Carve at most this many images. ``0`` means no limit, negative
            values are rejected with :class:`ConfigError`.
        sleep: callable, optional
            Replacement for :func:`time.sleep` in the grace delay.
        stop_flag: callable, optional
            Checked during the scan; returning ``True`` ends it early.
        """
        self.source = source
        self.prefix = prefix
        self.config = config or CarveConfig()
        self.progress_cb = progress_cb
        if max_images < 0:
            raise ConfigError(f"max images must not be negative, got {max_images}")
        self.max_images = max_images
        self.stop_flag = stop_flag
        resolver_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.resolver = GeometryResolver(self.config, **resolver_kwargs)
        self.device: Optional[RawDevice] = None
        self.reader: Optional[SectorReader] = None
        self.geometry: Optional[DeviceGeometry] = None

    def open(self) -> None:
        if self.device is None:
            self.device = RawDevice(self.source)

    def close(self) -> None:
        if self.device is not None:
            self.device.close()
            self.device = None

    def __enter__(self) -> "FileRecovery":
        self.open()
        return self

    def __exit__(self, *exc) -> bool:
        self.close()
        return False

    def resolve(self) -> DeviceGeometry:
        self.open()
        self.geometry = self.resolver.resolve(self.device)
        self.reader = SectorReader(self.device, self.geometry.sector_size)
        return self.geometry

    def iter_scan(self) -> Iterator[DetectedImage]:
        if self.geometry is None:
            self.resolve()
        logger.info("searching %s ...", self.source)
        scanner = SignatureScanner(self.reader, self.geometry,
                                   progress_cb=self.progress_cb,
                                   max_images=self.max_images,
                                   stop_flag=self.stop_flag)
        return scanner.iter_images()

    def scan(self) -> List[DetectedImage]:
        return list(self.iter_scan())

    def will_carve(self, image: DetectedImage) -> bool:
        """False for the extra hit the scan keeps only to bound the last image."""
        return not self.max_images or image.id < self.max_images

    def iter_carve(self, images: List[DetectedImage]) -> Iterator[CarveResult]:
        if self.geometry is None:
            self.resolve()
        ownership = build_ownership(self.geometry.sectors_total, images)
        carver = SectorCarver(self.reader, self.geometry, ownership, self.prefix)
        logger.info("writing to %s ...", self.prefix)
        return carver.carve_all(images, limit=self.max_images)

    def carve(self, images: List[DetectedImage]) -> List[CarveResult]:
        return list(self.iter_carve(images))

    def run(self) -> RecoveryReport:
        with self:
            geometry = self.resolve()
            images = self.scan()
            results = self.carve(images)
        return RecoveryReport(geometry=geometry, images=images, results=results)
