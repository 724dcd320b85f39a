import glob
import os
import tempfile

from fatcarve.cli import main
from fatcarve.config import CarveConfig
from fatcarve.errors import ConfigError, DeviceIOError
from fatcarve.rawio import RawDevice, SectorReader
from fatcarve.utils import human_size, sanitize_ascii

from _disk import JFIF_HEADER, boot_sector, disk_image, filler, write


def test_config_from_env():
    cfg = CarveConfig.from_env({
        "FAT_NO_SIG": "1",
        "FAT_SECTOR_SIZE": "2048",
        "FAT_SECTORS_TOTAL": " 31332352 ",
        "FAT_TYPE": "32",
    })
    assert cfg.ignore_missing_signature
    assert cfg.sector_size == 2048
    assert cfg.sectors_total == 31332352
    assert cfg.fat_type == 32
    assert CarveConfig.from_env({}) == CarveConfig()


def test_config_rejects_bad_values():
    for env in ({"FAT_SECTOR_SIZE": "300"}, {"FAT_SECTOR_SIZE": "big"},
                {"FAT_TYPE": "8"}, {"FAT_SECTORS_TOTAL": "0"}):
        try:
            CarveConfig.from_env(env)
        except ConfigError:
            pass
        else:
            raise AssertionError(f"{env} accepted")


def test_config_merge_keeps_unset_values():
    cfg = CarveConfig(sector_size=1024).merged(sectors_total=10, fat_type=None)
    assert cfg.sector_size == 1024
    assert cfg.sectors_total == 10
    assert cfg.fat_type == 16


def test_sector_reader_reads_exact_sectors():
    data = disk_image(sectors=8)
    with tempfile.TemporaryDirectory() as tmp:
        path = write(os.path.join(tmp, "dev.img"), data)
        with RawDevice(path) as dev:
            assert dev.length == 8 * 512
            reader = SectorReader(dev, 512)
            assert reader.read_sector(5) == filler(5, 512)
            buf = bytearray(512)
            reader.read_sector_into(7, buf)
            assert bytes(buf) == filler(7, 512)


def test_sector_reader_short_read_is_fatal():
    with tempfile.TemporaryDirectory() as tmp:
        path = write(os.path.join(tmp, "dev.img"), b"\x00" * 1000)
        with RawDevice(path) as dev:
            reader = SectorReader(dev, 512)
            try:
                reader.read_sector(1)
            except DeviceIOError as e:
                assert e.offset == 512
                assert "short read" in str(e)
            else:
                raise AssertionError("short read accepted")
            try:
                reader.read_sector_into(0, bytearray(100))
            except ValueError:
                pass
            else:
                raise AssertionError("undersized buffer accepted")


def test_open_missing_device():
    with tempfile.TemporaryDirectory() as tmp:
        try:
            RawDevice(os.path.join(tmp, "nope.img"))
        except DeviceIOError as e:
            assert "nope.img" in str(e)
        else:
            raise AssertionError("missing device opened")


def test_helpers():
    assert sanitize_ascii(b"AB\x00\x7f\x80z") == "AB#\x7f#z"
    assert human_size(20480) == "20.0k"
    assert human_size(1024 * 1024) == "1024.0k"
    assert human_size(5 * 1024 * 1024 + 512 * 1024) == "5.5M"


def test_cli_without_device_prints_help():
    assert main([]) == 0


def test_cli_recovers_images():
    data = disk_image(starts={10: JFIF_HEADER, 50: JFIF_HEADER})
    with tempfile.TemporaryDirectory() as tmp:
        src = write(os.path.join(tmp, "card.img"), data)
        prefix = os.path.join(tmp, "cli_")
        assert main([src, prefix]) == 0
        assert sorted(os.path.basename(p) for p in glob.glob(prefix + "*")) == [
            "cli_0000.jpg", "cli_0001.jpg"]


def test_cli_exit_codes():
    with tempfile.TemporaryDirectory() as tmp:
        bad = write(os.path.join(tmp, "bad.img"), disk_image(boot=boot_sector(signature=False)))
        assert main([bad, os.path.join(tmp, "x_")]) == 3
        assert main([os.path.join(tmp, "missing.img")]) == 1
        good = write(os.path.join(tmp, "good.img"), disk_image())
        assert main([good, os.path.join(tmp, "y_"), "--sector-size", "300"]) == 2
        assert main([good, os.path.join(tmp, "z_"), "--max-images", "-1"]) == 2
        assert glob.glob(os.path.join(tmp, "x_*")) == []
        assert glob.glob(os.path.join(tmp, "z_*")) == []
