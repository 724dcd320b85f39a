import os
import tempfile

from fatcarve.geometry import DeviceGeometry
from fatcarve.ownership import UNOWNED, SectorOwnership, build_ownership
from fatcarve.rawio import RawDevice, SectorReader
from fatcarve.scanner import DetectedImage, SignatureScanner
from fatcarve.signatures import ImageKind, classify

from _disk import BARE_HEADER, EXIF_HEADER, JFIF_HEADER, disk_image, write


def _scan(data: bytes, sector_size=512, sectors=100, **kwargs):
    geo = DeviceGeometry(sector_size=sector_size, sectors_total=sectors, cluster_size=1, fat_type=16)
    with tempfile.TemporaryDirectory() as tmp:
        path = write(os.path.join(tmp, "dev.img"), data)
        with RawDevice(path) as dev:
            return SignatureScanner(SectorReader(dev, sector_size), geo, **kwargs).scan()


def test_scanner_finds_headers_in_sector_order():
    data = disk_image(starts={40: EXIF_HEADER, 3: JFIF_HEADER, 77: BARE_HEADER})
    images = _scan(data)
    assert [i.start_sector for i in images] == [3, 40, 77]
    assert [i.id for i in images] == [0, 1, 2]
    assert [i.kind for i in images] == [ImageKind.JFIF, ImageKind.EXIF, ImageKind.JPEG]
    assert images[0].tag == "JFIF"
    assert images[2].tag == "jpeg"


def test_scanner_skips_boot_sector_and_unaligned_markers():
    data = bytearray(disk_image(starts={20: JFIF_HEADER}))
    data[0:2] = b"\xFF\xD8"
    data[30 * 512 + 5:30 * 512 + 7] = b"\xFF\xD8"
    images = _scan(bytes(data))
    assert [i.start_sector for i in images] == [20]


def test_scanner_checks_last_sector():
    images = _scan(disk_image(starts={99: JFIF_HEADER}))
    assert [i.start_sector for i in images] == [99]


def test_scanner_respects_sector_size():
    data = disk_image(sector_size=2048, sectors=10, starts={4: BARE_HEADER})
    images = _scan(data, sector_size=2048, sectors=10)
    assert [i.start_sector for i in images] == [4]


def test_scanner_stops_one_past_max_images():
    starts = {s: BARE_HEADER for s in (5, 10, 15, 20, 25)}
    images = _scan(disk_image(starts=starts), max_images=2)
    assert [i.start_sector for i in images] == [5, 10, 15]


def test_scanner_stop_flag_ends_scan():
    starts = {s: BARE_HEADER for s in (5, 16, 17, 60)}
    geo = DeviceGeometry(sector_size=512, sectors_total=100, cluster_size=1, fat_type=16)
    polls = []

    def stop():
        polls.append(1)
        return len(polls) >= 2

    with tempfile.TemporaryDirectory() as tmp:
        path = write(os.path.join(tmp, "dev.img"), disk_image(starts=starts))
        with RawDevice(path) as dev:
            scanner = SignatureScanner(SectorReader(dev, 512), geo, stop_flag=stop)
            images = scanner.scan()
    assert [i.start_sector for i in images] == [5, 16, 17]
    assert scanner.stopped
    assert len(polls) == 2


def test_scanner_reports_progress():
    calls = []
    _scan(disk_image(starts={50: JFIF_HEADER}), progress_cb=lambda s, t, f: calls.append((s, t, f)))
    assert calls[0] == (16, 100, 0)
    assert calls[-1] == (100, 100, 1)


def test_classification_is_only_annotation():
    assert classify(b"\xFF\xD8\xFF\xE0\x00\x10JFIF\x00") == (ImageKind.JFIF, "JFIF")
    assert classify(b"\xFF\xD8\xFF\xE1\x00\x10Exif\x00") == (ImageKind.EXIF, "Exif")
    assert classify(b"\xFF\xD8\xFF\xE1\x00\x10\x01abc") == (ImageKind.JPEG, "#abc")
    assert classify(b"\xFF\xD8\x00\x00\x00\x10JFIF\x00") == (ImageKind.JPEG, "jpeg")


def test_ownership_marks_only_start_sectors():
    images = [DetectedImage(id=i, start_sector=s) for i, s in enumerate((3, 40, 77))]
    own = build_ownership(100, images)
    assert len(own) == 100
    assert own.assigned() == [(3, 0), (40, 1), (77, 2)]
    values = list(own)
    assert sum(1 for v in values if v is not UNOWNED) == 3
    assert own[40] == 1
    assert own[41] is UNOWNED


def test_ownership_rejects_bad_sectors():
    own = SectorOwnership(10)
    own.assign(4, 0)
    try:
        own.assign(4, 1)
    except ValueError:
        pass
    else:
        raise AssertionError("sector assigned twice")
    for bad in (-1, 10):
        try:
            own.owner(bad)
        except IndexError:
            pass
        else:
            raise AssertionError(f"sector {bad} accepted")
