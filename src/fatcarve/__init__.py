"""
fatcarve core package.

This package bundles together the geometry, scanning, ownership and
carving components used to recover JPEG images from FAT formatted
media. The modules are import-light; the PySide6 front-end in
:mod:`fatcarve.gui_qt` is never imported from here.
"""

__version__ = "0.3.0"

# Re-export common classes for convenience
from .config import CarveConfig
from .errors import (
    RecoveryError,
    ConfigError,
    GeometryError,
    MissingSignatureError,
    DeviceIOError,
    OutputIOError,
)
from .rawio import RawDevice, SectorReader
from .geometry import DeviceGeometry, GeometryResolver
from .scanner import DetectedImage, SignatureScanner
from .ownership import SectorOwnership, build_ownership
from .carver import CarveResult, SectorCarver
from .recovery import FileRecovery, RecoveryReport

__all__ = [
    'CarveConfig',
    'RecoveryError',
    'ConfigError',
    'GeometryError',
    'MissingSignatureError',
    'DeviceIOError',
    'OutputIOError',
    'RawDevice',
    'SectorReader',
    'DeviceGeometry',
    'GeometryResolver',
    'DetectedImage',
    'SignatureScanner',
    'SectorOwnership',
    'build_ownership',
    'CarveResult',
    'SectorCarver',
    'FileRecovery',
    'RecoveryReport',
]
