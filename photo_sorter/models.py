from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from . import config


class Fate(str, Enum):
    """Terminal state of an incoming file after one run."""
    SORTED = "sorted"
    DUPLICATE = "duplicate"
    TRASHED = "trashed"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"        # left in place after a hash/move error


@dataclass
class MediaMetadata:
    """
    Values of interest from a Google Photos JSON sidecar.
    """
    is_trashed: bool = False
    captured_at: Optional[datetime] = None
    source_path: Optional[Path] = None


@dataclass
class ResolvedTimestamp:
    timestamp: datetime
    source: str              # human readable, e.g. "exif" or the sidecar path


@dataclass
class FileOutcome:
    path: Path
    fate: Fate
    destination: Optional[Path] = None
    note: str = ""


@dataclass
class RunSummary:
    outcomes: List[FileOutcome] = field(default_factory=list)
    skipped_sidecars: int = 0

    def record(self, outcome: FileOutcome) -> FileOutcome:
        self.outcomes.append(outcome)
        return outcome

    def counts(self) -> Counter:
        return Counter(o.fate for o in self.outcomes)

    def by_fate(self, fate: Fate) -> List[FileOutcome]:
        return [o for o in self.outcomes if o.fate == fate]


@dataclass
class SortSettings:
    """
    Run-time options for a single sorting pass.
    """
    lib_dir: Path
    incoming_dir: Path
    reject_dir: Path
    dedupe: str = config.DEDUPE_LAZY
    dry_run: bool = False
    undo_file: Path = Path(config.DEFAULT_UNDO_FILE)
    match_live_photos: bool = False
    use_rsync: Optional[bool] = None   # None = use rsync when it is on PATH
    show_progress: bool = True

    @property
    def duplicates_dir(self) -> Path:
        return self.reject_dir / config.DUPLICATES_SUBDIR

    @property
    def trashed_dir(self) -> Path:
        return self.reject_dir / config.TRASHED_SUBDIR

    @property
    def unsupported_dir(self) -> Path:
        return self.reject_dir / config.UNSUPPORTED_SUBDIR

    @property
    def undo_temp_file(self) -> Path:
        return self.undo_file.with_name(self.undo_file.name + config.UNDO_TEMP_SUFFIX)
