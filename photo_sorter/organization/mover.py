import os
import shutil
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from .. import config
from ..exceptions import DecollisionExhaustedError, FileOperationError
from .undo import UndoLog


class FileMover:
    """
    Moves files into place, never overwriting anything.

    Each destructive step writes its reversal to the undo log first. The
    physical move is copy-then-delete (rsync --remove-source-files, or
    copy2 + unlink) so it also works across mount points.
    """

    def __init__(self, undo_log: UndoLog, dry_run: bool = False, use_rsync: Optional[bool] = None):
        self.undo = undo_log
        self.dry_run = dry_run
        if use_rsync is None:
            use_rsync = shutil.which("rsync") is not None
        self.use_rsync = use_rsync

    def move_with_rename(self, source: Path, dest: Path) -> Path:
        """
        Moves source to dest, creating parent directories and renaming to
        name.N.ext when dest is taken. Returns the final destination.

        In dry-run mode nothing is touched and dest is returned unchanged.
        """
        source = Path(source)
        dest = Path(dest)

        if self.dry_run:
            logging.info(f"[DRY RUN] Move {source} -> {dest}")
            return dest

        self._make_parent_dirs(dest.parent)
        final_dest = self.non_colliding_path(dest)

        logging.info(f"Moving {source} -> {final_dest}")
        self.undo.record_file_move(source, final_dest, self.use_rsync)
        self._transfer(source, final_dest)
        return final_dest

    def move_with_preserved_relative_path(self, source: Path, source_root: Path, dest_root: Path) -> Path:
        """Moves source_root/<rel> to dest_root/<rel>."""
        try:
            rel = Path(source).relative_to(source_root)
        except ValueError as e:
            raise FileOperationError(f"{source} is not under {source_root}") from e
        return self.move_with_rename(source, Path(dest_root) / rel)

    def delete_empty_directories_recursively(self, root: Path):
        """
        Removes every empty directory below root, deepest first. root itself
        is kept. Directories that still hold files are left alone.
        """
        for child in self._list_subdirs(Path(root)):
            self._prune(child)

    def non_colliding_path(self, dest: Path) -> Path:
        if not os.path.lexists(dest):
            return dest

        for i in range(1, config.MAX_DECOLLISION_ATTEMPTS + 1):
            candidate = dest.with_name(f"{dest.stem}.{i}{dest.suffix}")
            if not os.path.lexists(candidate):
                return candidate

        raise DecollisionExhaustedError(
            f"Failed to de-collide {dest} in {config.MAX_DECOLLISION_ATTEMPTS} tries"
        )

    # --- Internal Helpers ---

    def _make_parent_dirs(self, directory: Path):
        missing: List[Path] = []
        current = directory
        while not current.exists() and current != current.parent:
            missing.append(current)
            current = current.parent

        # Shallowest first, so the reversed script removes the deepest first
        for d in reversed(missing):
            self.undo.record_dir_create(d)

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Failed to create {directory}: {e}") from e

    def _transfer(self, source: Path, dest: Path):
        if self.use_rsync:
            cmd = config.RSYNC_MOVE_CMD + [str(source), str(dest)]
            try:
                subprocess.run(cmd, check=True, capture_output=True, text=True)
            except subprocess.CalledProcessError as e:
                raise FileOperationError(f"rsync failed for {source}: {e.stderr.strip()}") from e
            except OSError as e:
                raise FileOperationError(f"Failed to run rsync for {source}: {e}") from e
            return

        # Copy under a hidden name; dest only appears once the copy is complete
        partial = dest.with_name(f".{dest.name}{config.PARTIAL_SUFFIX}")
        try:
            shutil.copy2(source, partial)
            os.replace(partial, dest)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise FileOperationError(f"Failed to copy {source} -> {dest}: {e}") from e
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        try:
            source.unlink()
        except OSError as e:
            # Keep exactly one copy: the original stays where it was
            dest.unlink(missing_ok=True)
            raise FileOperationError(f"Failed to remove {source} after copy: {e}") from e

    def _prune(self, directory: Path):
        for child in self._list_subdirs(directory):
            self._prune(child)

        try:
            with os.scandir(directory) as it:
                if any(True for _ in it):
                    logging.debug(f"Keeping non-empty directory {directory}")
                    return
        except OSError as e:
            logging.warning(f"Cannot inspect {directory}: {e}")
            return

        if self.dry_run:
            logging.info(f"[DRY RUN] Delete directory {directory}")
            return

        self.undo.record_dir_delete(directory)
        try:
            os.rmdir(directory)
            logging.info(f"Deleted empty directory {directory}")
        except OSError as e:
            logging.warning(f"Failed to delete directory {directory}: {e}")

    def _list_subdirs(self, directory: Path) -> List[Path]:
        try:
            with os.scandir(directory) as it:
                subdirs = [Path(e.path) for e in it if e.is_dir(follow_symlinks=False)]
        except OSError as e:
            logging.warning(f"Cannot list {directory}: {e}")
            return []
        subdirs.sort(key=lambda p: p.name.lower())
        return subdirs
