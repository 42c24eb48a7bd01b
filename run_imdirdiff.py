#!/usr/bin/env python3
"""Compare two directory trees of images and write a visual report.

Usage:
    python run_imdirdiff.py old/ new/                # in-process hybrid metric
    python run_imdirdiff.py old/ new/ --flip         # use NVIDIA FLIP instead
    python run_imdirdiff.py old/ new/ --no-report    # terminal output only

Every setting can also come from the environment (IMDD_ prefix) or .env.
"""
import argparse
import logging
import stat
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from pydantic import ValidationError

from pipeline import diff_run
from pipeline.errors import ImDirDiffError, InvalidDirectoryError
from settings import Settings
from utils.terminal import RecordPrinter

logger = logging.getLogger("imdirdiff")


def check_dir(path: Path) -> None:
    """Raise InvalidDirectoryError unless ``path`` is an existing directory."""
    try:
        mode = path.stat().st_mode
    except OSError as exc:
        raise InvalidDirectoryError(f"Error reading {path}: {exc.strerror or exc}") from exc
    if not stat.S_ISDIR(mode):
        raise InvalidDirectoryError(f"Error reading {path}: Not a directory.")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="imdirdiff",
        description="Compare two directories of images.",
    )
    parser.add_argument("a", type=Path, help="Reference directory")
    parser.add_argument("b", type=Path, help="Directory to compare against A")
    parser.add_argument("--flip", action="store_true",
                        help="Use NVIDIA FLIP (https://github.com/NVlabs/flip) instead of the built-in metric")
    parser.add_argument("--report-dir", type=Path, dest="report_dir",
                        help="Where to write index.html and the copied images")
    parser.add_argument("--no-report", action="store_true", dest="no_report",
                        help="Only print results; write no files")
    parser.add_argument("--copy-unmatched", action="store_true", dest="copy_unmatched",
                        help="Also copy images that exist on one side only")
    parser.add_argument("--color", choices=["auto", "always", "never"],
                        help="Colorize terminal output (default: auto)")
    return parser.parse_args(argv)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    # Only flags given on the command line override environment / .env values
    overrides: dict = {}
    if args.flip:
        overrides["backend"] = "flip"
    if args.report_dir is not None:
        overrides["report_dir"] = args.report_dir
    if args.no_report:
        overrides["generate_report"] = False
    if args.copy_unmatched:
        overrides["copy_unmatched"] = True
    if args.color is not None:
        overrides["color"] = args.color
    return Settings(**overrides)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        check_dir(args.a)
        check_dir(args.b)
        manifest = diff_run.run(
            settings, args.a, args.b, emit=RecordPrinter(settings.color)
        )
    except ImDirDiffError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if settings.generate_report:
        logger.info("=== Done → %s ===", settings.index_path)
    else:
        logger.info("=== Done: %d difference(s) ===", len(manifest.records))
    return 0


if __name__ == "__main__":
    sys.exit(main())
