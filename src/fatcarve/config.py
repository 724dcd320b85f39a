"""
Configuration for geometry resolution and carving.

The values mirror the environment variables the tool has always
honoured for corrupt boot sectors::

    FAT_NO_SIG=1               ignore a missing 55 AA signature
    FAT_SECTOR_SIZE=512        sector size to fall back to
    FAT_SECTORS_TOTAL=2000000  force the number of sectors
    FAT_TYPE=16                FAT type to fall back to

Each variable is read once, in :meth:`CarveConfig.from_env`. Command
line options are applied on top with :meth:`CarveConfig.merged`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import ConfigError

SUPPORTED_SECTOR_SIZES = (512, 1024, 2048, 4096)
SUPPORTED_FAT_TYPES = (12, 16, 32)

DEFAULT_SECTOR_SIZE = 512
DEFAULT_FAT_TYPE = 16
DEFAULT_GRACE_DELAY = 5.0

ENV_NO_SIG = "FAT_NO_SIG"
ENV_SECTOR_SIZE = "FAT_SECTOR_SIZE"
ENV_SECTORS_TOTAL = "FAT_SECTORS_TOTAL"
ENV_FAT_TYPE = "FAT_TYPE"


@dataclass(frozen=True)
class CarveConfig:
    """Overrides consulted while resolving the device geometry.

    Attributes
    ----------
    ignore_missing_signature: bool
        Continue when the boot sector lacks the 55 AA signature.
    sector_size: int
        Sector size used when the boot sector holds an unsupported one.
    sectors_total: Optional[int]
        When set, replaces whatever sector count was derived.
    fat_type: int
        FAT type used when no extended boot record marker is found.
    grace_delay: float
        Seconds to wait before scanning a device without signature.
    """
    ignore_missing_signature: bool = False
    sector_size: int = DEFAULT_SECTOR_SIZE
    sectors_total: Optional[int] = None
    fat_type: int = DEFAULT_FAT_TYPE
    grace_delay: float = DEFAULT_GRACE_DELAY

    def __post_init__(self) -> None:
        if self.sector_size not in SUPPORTED_SECTOR_SIZES:
            raise ConfigError(
                f"unsupported sector size {self.sector_size} "
                f"(expected one of {', '.join(map(str, SUPPORTED_SECTOR_SIZES))})"
            )
        if self.fat_type not in SUPPORTED_FAT_TYPES:
            raise ConfigError(f"unsupported FAT type {self.fat_type} (expected 12, 16 or 32)")
        if self.sectors_total is not None and self.sectors_total <= 0:
            raise ConfigError(f"sectors total must be positive, got {self.sectors_total}")
        if self.grace_delay < 0:
            raise ConfigError(f"grace delay must not be negative, got {self.grace_delay}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CarveConfig":
        """Build a configuration from ``FAT_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get(ENV_NO_SIG):
            kwargs["ignore_missing_signature"] = True
        if env.get(ENV_SECTOR_SIZE):
            kwargs["sector_size"] = _parse_int(ENV_SECTOR_SIZE, env[ENV_SECTOR_SIZE])
        if env.get(ENV_SECTORS_TOTAL):
            kwargs["sectors_total"] = _parse_int(ENV_SECTORS_TOTAL, env[ENV_SECTORS_TOTAL])
        if env.get(ENV_FAT_TYPE):
            kwargs["fat_type"] = _parse_int(ENV_FAT_TYPE, env[ENV_FAT_TYPE])
        return cls(**kwargs)

    def merged(self, **overrides) -> "CarveConfig":
        """Return a copy with every non-``None`` override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name}={value!r} is not an integer") from None
