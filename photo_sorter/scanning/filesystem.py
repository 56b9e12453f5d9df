import os
import logging
from pathlib import Path
from typing import Iterator, List, Tuple

from ..exceptions import IncomingWalkError


class DiskScanner:
    """
    Depth-first walker using os.scandir for speed.

    strict=True is used for the incoming tree: any directory that cannot be
    listed aborts the walk. strict=False is used when indexing the library,
    where unreadable or missing directories are logged and skipped.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def iter_directories(self, root: Path) -> Iterator[Tuple[Path, List[Path]]]:
        """
        Yields (directory, files) pairs, parents before children.

        Each directory is listed completely before it is yielded, so callers
        may move files out of it while iterating.
        """
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                if self.strict:
                    raise IncomingWalkError(f"Cannot list {current}: {e}") from e
                if isinstance(e, FileNotFoundError):
                    logging.debug(f"Directory does not exist: {current}")
                else:
                    logging.warning(f"Cannot list {current}: {e}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            yield current, files

    def iter_files(self, root: Path) -> Iterator[Path]:
        for _, files in self.iter_directories(root):
            yield from files
