import argparse
import logging
import sys

from . import __version__
from .config import CarveConfig, SUPPORTED_FAT_TYPES
from .errors import RecoveryError
from .recovery import DEFAULT_PREFIX, FileRecovery

logger = logging.getLogger("fatcarve")

EPILOG = f"""\
outputdir/prefix defaults to '{DEFAULT_PREFIX}'.

The following environment variables help with a corrupt boot sector:
 FAT_NO_SIG=1               ignore missing FAT signature
 FAT_SECTOR_SIZE=512        sector size used when the boot sector has none
 FAT_SECTORS_TOTAL=2000000  specify number of sectors
 FAT_TYPE=16                FAT type used when the boot sector has none
Command line options take precedence over the environment.
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fatcarve",
        description="Recover JPEG images from a FAT formatted device or image.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("device", nargs="?", help="Block device or disk image to read")
    p.add_argument("prefix", nargs="?", default=DEFAULT_PREFIX,
                   help="Output directory and file name prefix")
    p.add_argument("--no-sig", action="store_true", default=None,
                   help="Continue even if the 55aa boot signature is missing")
    p.add_argument("--sector-size", type=int, help="Sector size used when the boot sector has an invalid one")
    p.add_argument("--sectors-total", type=int, help="Force the number of sectors")
    p.add_argument("--fat-type", type=int, choices=SUPPORTED_FAT_TYPES,
                   help="FAT type used when the boot sector does not tell")
    p.add_argument("--max-images", type=int, default=0,
                   help="Stop after this many images (0 = no limit)")
    p.add_argument("-v", "--verbose", action="store_true", help="Report every JPEG header found")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _progress(sector: int, total: int, found: int):
    sys.stderr.write(f" {total - sector}     \t{found}      \r")
    sys.stderr.flush()


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    if not args.device:
        p.print_help(sys.stderr)
        return 0

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )
    try:
        config = CarveConfig.from_env().merged(
            ignore_missing_signature=args.no_sig,
            sector_size=args.sector_size,
            sectors_total=args.sectors_total,
            fat_type=args.fat_type,
        )
        recovery = FileRecovery(args.device, args.prefix, config,
                                progress_cb=_progress, max_images=args.max_images)
        report = recovery.run()
    except RecoveryError as e:
        logger.error("%s", e)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("aborted")
        return 130
    logger.info("%d images recovered from %s.", len(report.results), args.device)
    return 0


if __name__ == "__main__":
    sys.exit(main())
