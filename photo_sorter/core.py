import logging
from datetime import tzinfo
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from . import config
from .exceptions import (
    FileHashError,
    FileOperationError,
    IncomingWalkError,
    TimestampUnavailableError,
    UndoLogError,
)
from .metadata.extract import MetadataExtractor
from .metadata.resolver import TimestampResolver
from .metadata.sidecar import GooglePhotoMetadataReader
from .models import Fate, FileOutcome, RunSummary, SortSettings
from .organization.mover import FileMover
from .organization.rules import DestinationPlanner, local_timezone
from .organization.undo import UndoLog
from .scanning.filesystem import DiskScanner
from .scanning.index import ContentIndex


class PhotoSorterApp:
    """
    Sorts an incoming tree into the library.

    Per file, in order:
      1. .json sidecars are skipped (consumed with their picture)
      2. trashed per sidecar -> <reject>/trashed
      3. capture time from embedded metadata, then sidecar
      4. dated: duplicate -> <reject>/duplicates, else into the library
      5. undated: duplicate -> <reject>/duplicates, else <reject>/unsupported
         (moved after the walk)
    Then empty directories under the incoming root are pruned.
    """

    def __init__(self, settings: SortSettings, local_tz: Optional[tzinfo] = None):
        self.settings = settings
        self.local_tz = local_tz or local_timezone()

        self.index = ContentIndex()
        self.undo_log = UndoLog(settings.undo_file, settings.undo_temp_file)
        self.mover = FileMover(self.undo_log, dry_run=settings.dry_run, use_rsync=settings.use_rsync)
        self.resolver = TimestampResolver(
            MetadataExtractor(self.local_tz),
            GooglePhotoMetadataReader(self.local_tz, match_live_photos=settings.match_live_photos),
        )
        self.planner = DestinationPlanner(settings.lib_dir, self.local_tz)

    def run(self) -> RunSummary:
        """
        Executes one full pass and writes the undo script.

        The undo script is written even when the pass aborts, so whatever
        already happened can still be reversed.
        """
        s = self.settings
        if not s.dry_run:
            self.undo_log.initialize()

        try:
            if s.dedupe == config.DEDUPE_EAGER:
                logging.info(f"Indexing library {s.lib_dir} (eager dedupe)...")
                self.index.build_index_for_directory(s.lib_dir)
                logging.info(f"Indexed {len(self.index)} library files.")
            summary = self.sort(s.incoming_dir)
        except BaseException:
            if not s.dry_run:
                try:
                    self.undo_log.finalize()
                except UndoLogError as e:
                    logging.error(str(e))
            raise

        if not s.dry_run:
            self.undo_log.finalize()
        return summary

    def sort(self, root: Path) -> RunSummary:
        """
        Walks root and decides every file's fate.

        Raises IncomingWalkError (after the unsupported clean-up) if part of
        the tree could not be listed.
        """
        summary = RunSummary()
        unsupported: List[FileOutcome] = []
        walk_error: Optional[IncomingWalkError] = None

        logging.info(f"Scanning incoming files from {root}")
        scanner = DiskScanner(strict=True)
        try:
            for path in tqdm(scanner.iter_files(root), desc="Sorting", unit="file",
                             disable=not self.settings.show_progress):
                outcome = self.classify(path, root)
                if outcome is None:
                    summary.skipped_sidecars += 1
                    continue
                summary.record(outcome)
                if outcome.fate == Fate.UNSUPPORTED:
                    unsupported.append(outcome)
        except IncomingWalkError as e:
            logging.error(f"Failed to walk incoming tree: {e}")
            walk_error = e

        self._relocate_unsupported(unsupported, root)
        self.mover.delete_empty_directories_recursively(root)

        if walk_error is not None:
            raise walk_error
        return summary

    def classify(self, path: Path, root: Path) -> Optional[FileOutcome]:
        """
        Decides and applies the fate of one file. Returns None for sidecars.

        Unsupported files are only marked here; they move after the walk.
        """
        if path.suffix.lower() in config.SIDECAR_EXTS:
            logging.debug(f"Skipping sidecar {path}")
            return None

        metadata = self.resolver.read_sidecar(path)
        if metadata is not None and metadata.is_trashed:
            logging.info(f"Treating file as 'trashed' based on the metadata: {path}")
            return self._quarantine(path, root, self.settings.trashed_dir, Fate.TRASHED)

        try:
            resolved = self.resolver.resolve(path, metadata)
        except TimestampUnavailableError as e:
            logging.debug(str(e))
            return self._handle_undated(path, root)

        dest = self.planner.plan(path, resolved.timestamp)
        try:
            if self.settings.dedupe == config.DEDUPE_LAZY:
                self.index.ensure_directory_indexed(dest.parent)
            if self.index.is_file_present(path):
                logging.info(f"Treating file as 'duplicate': {path}")
                return self._quarantine(path, root, self.settings.duplicates_dir, Fate.DUPLICATE)

            logging.info(f"Relocating file {path} (date from {resolved.source})")
            final_dest = self.mover.move_with_rename(path, dest)
        except (FileHashError, FileOperationError) as e:
            logging.warning(f"{path} Failed to sort file: {e}")
            return FileOutcome(path, Fate.FAILED, note=str(e))

        self._register(path, final_dest)
        return FileOutcome(path, Fate.SORTED, final_dest, note=resolved.source)

    # --- Internal Helpers ---

    def _handle_undated(self, path: Path, root: Path) -> FileOutcome:
        # Only useful with eager dedupe, but it saves caring about why the
        # file is unsupported.
        try:
            is_duplicate = self.index.is_file_present(path)
        except FileHashError as e:
            logging.warning(f"{path} Failed to check for duplicates: {e}")
            return FileOutcome(path, Fate.FAILED, note=str(e))

        if is_duplicate:
            logging.info(f"Treating file as 'duplicate' (unsupported): {path}")
            return self._quarantine(path, root, self.settings.duplicates_dir, Fate.DUPLICATE)

        logging.info(f"Treating file as 'unsupported' due to lack of metadata: {path}")
        return FileOutcome(path, Fate.UNSUPPORTED, note="no capture date")

    def _quarantine(self, path: Path, root: Path, dest_root: Path, fate: Fate) -> FileOutcome:
        try:
            final_dest = self.mover.move_with_preserved_relative_path(path, root, dest_root)
        except FileOperationError as e:
            logging.warning(f"{path} Failed to move to {dest_root}: {e}")
            return FileOutcome(path, Fate.FAILED, note=str(e))
        return FileOutcome(path, fate, final_dest)

    def _register(self, source: Path, final_dest: Path):
        # A dry run moves nothing, so index the source to keep later
        # duplicates in this run detectable.
        target = source if self.settings.dry_run else final_dest
        try:
            self.index.add_file_to_index(target)
        except FileHashError as e:
            logging.warning(f"{final_dest} Failed to index file: {e}")

    def _relocate_unsupported(self, outcomes: List[FileOutcome], root: Path):
        if not outcomes:
            return
        logging.info(f"Cleaning up {len(outcomes)} unsupported files.")
        for outcome in tqdm(outcomes, desc="Unsupported", unit="file",
                            disable=not self.settings.show_progress):
            try:
                outcome.destination = self.mover.move_with_preserved_relative_path(
                    outcome.path, root, self.settings.unsupported_dir
                )
            except FileOperationError as e:
                logging.warning(f"{outcome.path} Failed to move unsupported file: {e}")
                outcome.fate = Fate.FAILED
                outcome.note = str(e)
