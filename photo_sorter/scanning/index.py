import logging
from pathlib import Path
from typing import Dict, Optional, Set

from ..exceptions import FileHashError
from .filesystem import DiskScanner
from .hasher import FileHasher


class ContentIndex:
    """
    In-memory map of content fingerprint -> path holding that content.

    Lives for a single run; nothing is persisted. Directories are indexed
    lazily and at most once (see is_directory_indexed).
    """

    def __init__(self, hasher: Optional[FileHasher] = None):
        self.hasher = hasher or FileHasher()
        self.scanner = DiskScanner(strict=False)
        self.fingerprint_to_path: Dict[str, Path] = {}
        self.indexed_directories: Set[Path] = set()

    def __len__(self) -> int:
        return len(self.fingerprint_to_path)

    def is_directory_indexed(self, directory: Path) -> bool:
        return Path(directory) in self.indexed_directories

    def build_index_for_directory(self, directory: Path):
        """
        Recursively fingerprints every file under directory.

        Files that fail to hash are logged and skipped. A directory that does
        not exist yet is simply marked as indexed (nothing to compare against).
        """
        directory = Path(directory)
        logging.debug(f"Building index for {directory}")

        added = 0
        for current, files in self.scanner.iter_directories(directory):
            for path in files:
                try:
                    fp = self.hasher.fingerprint(path)
                except FileHashError as e:
                    logging.warning(f"Skipping {path}: {e}")
                    continue
                if fp not in self.fingerprint_to_path:
                    self.fingerprint_to_path[fp] = path
                    added += 1
            self.indexed_directories.add(current)

        self.indexed_directories.add(directory)
        logging.debug(f"Indexed {added} new files under {directory}")

    def ensure_directory_indexed(self, directory: Path):
        if not self.is_directory_indexed(directory):
            self.build_index_for_directory(directory)

    def add_file_to_index(self, path: Path):
        """Registers path as the canonical location of its content."""
        fp = self.hasher.fingerprint(path)
        logging.debug(f"Adding to index: {fp} {path}")
        self.fingerprint_to_path[fp] = Path(path)

    def is_file_present(self, path: Path) -> bool:
        """Raises FileHashError if path cannot be read."""
        return self.hasher.fingerprint(path) in self.fingerprint_to_path

    def find_existing(self, path: Path) -> Optional[Path]:
        """Returns the indexed path holding the same content as path, if any."""
        return self.fingerprint_to_path.get(self.hasher.fingerprint(path))
