import os
import tempfile

from fatcarve.config import CarveConfig, SUPPORTED_SECTOR_SIZES
from fatcarve.errors import GeometryError, MissingSignatureError
from fatcarve.geometry import GeometryResolver, parse_boot_sector
from fatcarve.rawio import RawDevice

from _disk import boot_sector, write


def _resolve(data: bytes, config: CarveConfig = None, sleep=None):
    calls = []
    with tempfile.TemporaryDirectory() as tmp:
        path = write(os.path.join(tmp, "dev.img"), data)
        resolver = GeometryResolver(config or CarveConfig(), sleep=sleep or calls.append)
        with RawDevice(path) as dev:
            return resolver.resolve(dev), calls


def test_supported_sector_sizes_are_recovered():
    for ss in SUPPORTED_SECTOR_SIZES:
        boot = boot_sector(sector_size=ss, sectors_total=1234)
        geo, _ = _resolve(boot.ljust(ss * 2, b"\x00"))
        assert geo.sector_size == ss, f"sector size {ss} became {geo.sector_size}"
        assert geo.sectors_total == 1234
        assert geo.fat_type == 16


def test_fat16_informational_fields():
    boot = boot_sector(oem=b"mkfs\x01\xffat", label=b"HOLIDAY\x0022 ", serial=0xDEADBEEF)
    geo, _ = _resolve(boot)
    assert geo.oem_name == "mkfs##at"
    assert geo.volume_label == "HOLIDAY#22 "
    assert len(geo.volume_label) == 11
    assert geo.fs_type == "FAT16   "
    assert geo.serial_number == 0xDEADBEEF
    assert geo.cluster_size == 4
    assert "serial_num=0xdeadbeef" in geo.summary()


def test_fat32_reads_wide_sector_count():
    boot = boot_sector(fat_type=32, sectors_total=0, total32=31332352, label=b"CAMERA     ")
    geo, _ = _resolve(boot)
    assert geo.fat_type == 32
    assert geo.sectors_total == 31332352
    assert geo.volume_label == "CAMERA     "
    assert geo.fs_type == "FAT32   "


def test_zero_sector_count_falls_back_to_device_size():
    boot = boot_sector(sectors_total=0, total32=0)
    geo, _ = _resolve(boot.ljust(512 * 37 + 100, b"\x00"))
    assert geo.sectors_total == 37


def test_sentinel_sector_count_falls_back_to_device_size():
    boot = boot_sector(sector_size=1024, sectors_total=0xFFFF)
    geo, _ = _resolve(boot.ljust(1024 * 9, b"\x00"))
    assert geo.sectors_total == 9


def test_sector_count_override_wins():
    for total in (0, 0xFFFF, 500):
        boot = boot_sector(sectors_total=total)
        geo, _ = _resolve(boot.ljust(512 * 4, b"\x00"), CarveConfig(sectors_total=77))
        assert geo.sectors_total == 77


def test_missing_signature_aborts():
    boot = boot_sector(signature=False)
    try:
        _resolve(boot)
    except MissingSignatureError as e:
        assert "55aa" in str(e)
    else:
        raise AssertionError("missing signature was accepted")


def test_missing_signature_override_waits_then_continues():
    boot = boot_sector(signature=False, sectors_total=50)
    geo, calls = _resolve(boot, CarveConfig(ignore_missing_signature=True))
    assert not geo.signature_present
    assert geo.sectors_total == 50
    assert calls == [5.0]


def test_present_signature_does_not_wait():
    _, calls = _resolve(boot_sector())
    assert calls == []


def test_invalid_sector_size_uses_configured_fallback():
    boot = boot_sector(sector_size=300, sectors_total=20)
    geo, _ = _resolve(boot, CarveConfig(sector_size=1024))
    assert geo.sector_size == 1024
    geo, _ = _resolve(boot)
    assert geo.sector_size == 512


def test_missing_extended_record_uses_configured_fat_type():
    # FAT12 has no wide sector count, so the device size decides
    boot = boot_sector(fat_type=None, sectors_total=0, total32=999)
    geo, _ = _resolve(boot.ljust(512 * 6, b"\x00"), CarveConfig(fat_type=12))
    assert geo.fat_type == 12
    assert geo.sectors_total == 6
    assert geo.volume_label == ""
    assert "volume_label" not in geo.summary()


def test_parse_boot_sector_reports_fallbacks():
    fields, warnings = parse_boot_sector(boot_sector(sector_size=300, fat_type=None), CarveConfig())
    assert fields["sector_size"] == 512
    assert fields["fat_type"] == 16
    assert len(warnings) == 2


def test_short_boot_sector_is_rejected():
    try:
        parse_boot_sector(b"\x00" * 100, CarveConfig())
    except GeometryError:
        pass
    else:
        raise AssertionError("short boot sector accepted")


def test_device_without_complete_sector_is_rejected():
    boot = boot_sector(sector_size=4096, sectors_total=0)
    try:
        _resolve(boot)
    except GeometryError as e:
        assert "no complete sector" in str(e)
    else:
        raise AssertionError("empty geometry accepted")
