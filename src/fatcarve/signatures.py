from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .utils import sanitize_ascii


@dataclass(frozen=True)
class FileSignature:
    name: str
    ext: str
    header: bytes                          # must sit at the start of a sector


class ImageKind(str, Enum):
    JPEG = "jpeg"
    JFIF = "jfif"
    EXIF = "exif"


# Only JPEG is carved; the start-of-image marker is matched per sector.
JPEG = FileSignature(
    name="jpeg",
    ext="jpg",
    header=b"\xFF\xD8",
)

# APP0 (JFIF) and APP1 (Exif) markers carry an identifier at bytes 6..9
APP_MARKERS = (b"\xFF\xE0", b"\xFF\xE1")

_KIND_BY_TAG = {
    "JFIF": ImageKind.JFIF,
    "Exif": ImageKind.EXIF,
}


def is_start_of_image(buf: bytes) -> bool:
    return buf[:2] == JPEG.header


def classify(buf: bytes) -> Tuple[ImageKind, str]:
    """Return ``(kind, tag)`` for a sector that starts with FF D8.

    The tag is only used in diagnostics; an unknown tag still counts as
    a plain JPEG.
    """
    tag = "jpeg"
    if bytes(buf[2:4]) in APP_MARKERS:
        tag = sanitize_ascii(bytes(buf[6:10]))
    return _KIND_BY_TAG.get(tag, ImageKind.JPEG), tag
