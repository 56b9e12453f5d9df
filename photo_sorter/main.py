import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import PhotoSorterApp
from .exceptions import IncomingWalkError, UndoLogError
from .models import SortSettings
from .reporting import ReportGenerator


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Photo Sorter: move incoming pictures into a date-partitioned library"
    )

    p.add_argument("--libdir", type=Path, required=True,
                   help="The directory containing your photo library (destination for sort)")
    p.add_argument("--incomingdir", type=Path, required=True,
                   help="The directory with incoming photos (unsorted)")
    p.add_argument("--rejectdir", type=Path, required=True,
                   help="Root for rejected files; 'duplicates', 'trashed' and 'unsupported' "
                        "subdirectories are created as needed")
    p.add_argument("--dedupe", choices=config.DEDUPE_MODES, default=config.DEDUPE_LAZY,
                   help="lazy = dedupe per destination directory, eager = dedupe across the entire library")
    p.add_argument("--dryrun", action="store_true", help="Simulate actions without modifying disk")
    p.add_argument("--undofile", type=Path, default=Path(config.DEFAULT_UNDO_FILE),
                   help="Shell script to write undo commands to")
    p.add_argument("--match-live-photos", action="store_true",
                   help="Match videos to live-photo metadata (IMG_1.MP4 -> IMG_1.HEIC.json)")
    p.add_argument("--no-rsync", action="store_true",
                   help="Move files in-process instead of via rsync")
    p.add_argument("--report-csv", type=Path, default=None, help="Write a per-file report CSV")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")
    p.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = p.parse_args(argv)

    incoming = args.incomingdir.resolve()
    for name, value in (("--libdir", args.libdir), ("--rejectdir", args.rejectdir)):
        resolved = value.resolve()
        if resolved == incoming or incoming in resolved.parents:
            p.error(f"{name} must not be inside --incomingdir")
        if resolved in incoming.parents:
            p.error(f"--incomingdir must not be inside {name}")

    return args


def build_settings(args) -> SortSettings:
    return SortSettings(
        lib_dir=args.libdir.resolve(),
        incoming_dir=args.incomingdir.resolve(),
        reject_dir=args.rejectdir.resolve(),
        dedupe=args.dedupe,
        dry_run=args.dryrun,
        undo_file=args.undofile.resolve(),
        match_live_photos=args.match_live_photos,
        use_rsync=False if args.no_rsync else None,
        show_progress=not args.no_progress,
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    settings = build_settings(args)

    logging.info("=== Photo Sorter Started ===")
    logging.info(f"Incoming: {settings.incoming_dir}")
    logging.info(f"Library:  {settings.lib_dir}")
    logging.info(f"Rejects:  {settings.reject_dir}")
    logging.info(f"Dedupe:   {settings.dedupe}")
    if settings.dry_run:
        logging.info("Dry run only")

    if not settings.incoming_dir.is_dir():
        logging.error(f"Incoming directory not found: {settings.incoming_dir}")
        return 1

    app = PhotoSorterApp(settings)
    try:
        summary = app.run()
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except IncomingWalkError as e:
        logging.error(f"Failed to sort incoming pictures in {settings.incoming_dir}: {e}")
        return 1
    except UndoLogError as e:
        logging.error(f"Undo log failure, stopping: {e}")
        return 1

    reporter = ReportGenerator(summary)
    reporter.log_summary()
    if args.report_csv:
        reporter.write_csv(args.report_csv)

    if not settings.dry_run:
        logging.info(f"To reinstate moved files, execute {settings.undo_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
