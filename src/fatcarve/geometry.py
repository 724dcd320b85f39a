"""
FAT boot sector interpretation.

The boot sector of a card that was reformatted, or partially
overwritten, cannot be fully trusted. :class:`GeometryResolver` reads
what it can and falls back to configured defaults, or to the size of
the device itself, for every field the scan depends on. Each fallback
is logged as a warning; only an unusable result raises.

Offsets used (all little-endian)::

    3..10   OEM name
    11      bytes per sector (16 bit)
    13      sectors per cluster
    19      total sectors (16 bit)
    32      total sectors (32 bit, FAT16/FAT32)
    38      extended boot signature 0x28/0x29 (FAT12/16 layout)
    39      serial number, 43..53 label, 54..61 fs type (FAT12/16 layout)
    66      extended boot signature 0x29 (FAT32 layout)
    67      serial number, 71..81 label, 82..89 fs type (FAT32 layout)
    510     0x55 0xAA
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import CarveConfig, SUPPORTED_SECTOR_SIZES
from .errors import GeometryError, MissingSignatureError
from .rawio import RawDevice
from .utils import le16, le32, sanitize_ascii

logger = logging.getLogger(__name__)

BOOT_SECTOR_SIZE = 512
BOOT_SIGNATURE = b"\x55\xAA"
SECTORS_TOTAL_SENTINEL = 0xFFFF

# (serial, label start, label end, fs type start, fs type end), inclusive ends
_EXTENDED_LAYOUT = {
    16: (39, 43, 53, 54, 61),
    32: (67, 71, 81, 82, 89),
}


@dataclass(frozen=True)
class DeviceGeometry:
    """Geometry needed to address the sectors of a device.

    Only ``sector_size`` and ``sectors_total`` matter to scanning and
    carving. The remaining fields are kept for diagnostics.
    """
    sector_size: int
    sectors_total: int
    cluster_size: int
    fat_type: int
    oem_name: str = ""
    volume_label: str = ""
    fs_type: str = ""
    serial_number: int = 0
    signature_present: bool = True

    @property
    def total_bytes(self) -> int:
        return self.sector_size * self.sectors_total

    def summary(self) -> str:
        lines = [
            f"fat{self.fat_type}: sector_size={self.sector_size}, "
            f"sectors_total={self.sectors_total}, "
            f"sectors_per_cluster={self.cluster_size}, oem_name='{self.oem_name}'"
        ]
        if self.fat_type > 12:
            lines.append(
                f"volume_label='{self.volume_label}', fs_type='{self.fs_type}', "
                f"serial_num=0x{self.serial_number:08x}"
            )
        return "\n".join(lines)


def has_boot_signature(buf: bytes) -> bool:
    return buf[510:512] == BOOT_SIGNATURE


def detect_fat_type(buf: bytes) -> Optional[int]:
    """Return 32 or 16 from the extended boot record marker, else ``None``."""
    if buf[66] == 0x29:
        return 32
    if buf[38] in (0x28, 0x29):
        return 16
    return None


def parse_boot_sector(buf: bytes, config: CarveConfig) -> Tuple[dict, List[str]]:
    """Decode the boot sector fields of ``buf``.

    This is the part of geometry resolution that needs nothing but the
    sector bytes. A ``sectors_total`` of zero or 0xFFFF is returned as
    is; the caller decides how to recover it.

    Parameters
    ----------
    buf: bytes
        The first 512 bytes of the device.
    config: CarveConfig
        Supplies the fallback sector size and FAT type.

    Returns
    -------
    tuple
        ``(fields, warnings)`` where ``fields`` holds the keyword
        arguments of :class:`DeviceGeometry` and ``warnings`` lists
        every fallback that was applied.
    """
    if len(buf) < BOOT_SECTOR_SIZE:
        raise GeometryError(f"boot sector holds {len(buf)} bytes, need {BOOT_SECTOR_SIZE}")

    warnings: List[str] = []
    fields = dict(
        sector_size=le16(buf, 11),
        sectors_total=le16(buf, 19),
        cluster_size=buf[13],
        oem_name=sanitize_ascii(buf[3:11]),
        signature_present=has_boot_signature(buf),
    )

    if fields["sector_size"] not in SUPPORTED_SECTOR_SIZES:
        warnings.append(
            f"invalid sector size {fields['sector_size']}, defaulting to {config.sector_size}"
        )
        fields["sector_size"] = config.sector_size

    fat_type = detect_fat_type(buf)
    if fat_type is None:
        warnings.append(f"no extended boot record found, defaulting to fat{config.fat_type}")
        fat_type = config.fat_type
    fields["fat_type"] = fat_type

    if fields["sectors_total"] == 0 and fat_type > 12:
        fields["sectors_total"] = le32(buf, 32)

    layout = _EXTENDED_LAYOUT.get(fat_type)
    if layout:
        serial, label_start, label_end, fs_start, fs_end = layout
        fields["serial_number"] = le32(buf, serial)
        fields["volume_label"] = sanitize_ascii(buf[label_start:label_end + 1])
        fields["fs_type"] = sanitize_ascii(buf[fs_start:fs_end + 1])

    return fields, warnings


class GeometryResolver:
    """Produce a :class:`DeviceGeometry` for an open device.

    ``sleep`` is called with the configured grace delay when a device
    without boot signature is accepted; tests pass a stub.
    """

    def __init__(self, config: Optional[CarveConfig] = None,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self.config = config or CarveConfig()
        self.sleep = sleep

    def resolve(self, device: RawDevice) -> DeviceGeometry:
        buf = device.read_at(0, BOOT_SECTOR_SIZE)

        pause = 0.0
        if not has_boot_signature(buf):
            if not self.config.ignore_missing_signature:
                raise MissingSignatureError(
                    "FAT signature 55aa not found. Make sure you specify the entire device, "
                    "or set FAT_NO_SIG=1 to ignore this.",
                    device.path,
                )
            logger.warning("FAT signature 55aa not found ... continuing at your own risk")
            pause = self.config.grace_delay

        fields, warnings = parse_boot_sector(buf, self.config)
        for w in warnings:
            logger.warning(w)

        if fields["sectors_total"] in (0, SECTORS_TOTAL_SENTINEL):
            bad = fields["sectors_total"]
            fields["sectors_total"] = device.length // fields["sector_size"]
            logger.warning(
                "sectors_total=%d appears invalid, derived %d from the device size "
                "(override with e.g. FAT_SECTORS_TOTAL=31332352)",
                bad, fields["sectors_total"],
            )

        if self.config.sectors_total is not None:
            fields["sectors_total"] = self.config.sectors_total

        if fields["sectors_total"] <= 0:
            raise GeometryError("device holds no complete sector", device.path)

        geometry = DeviceGeometry(**fields)
        for line in geometry.summary().splitlines():
            logger.info(line)

        if pause:
            logger.warning("Waiting %g sec for your review -- press CTRL-C to abort.", pause)
            self.sleep(pause)
        return geometry
