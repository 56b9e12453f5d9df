"""
Write-ahead undo log.

Every destructive step appends its reversal command to a temp file *before*
the step runs, so an interrupted run leaves a superset of what actually
happened. When the run finishes, the temp file is rewritten as a shell script
with the commands in reverse order (latest action undone first).
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List

from .. import config
from ..exceptions import UndoLogError


def sh_quote(path) -> str:
    """Double-quotes a path for /bin/sh, escaping the characters that stay special."""
    s = str(path)
    for ch in ('\\', '"', '$', '`'):
        s = s.replace(ch, '\\' + ch)
    return f'"{s}"'


class UndoLog:
    def __init__(self, undo_file: Path, temp_file: Path):
        self.undo_file = Path(undo_file)
        self.temp_file = Path(temp_file)

    def initialize(self):
        """
        Starts a fresh log. A previous undo script is kept under a
        timestamp-suffixed name instead of being overwritten.
        """
        try:
            self.temp_file.unlink(missing_ok=True)
            if self.undo_file.exists():
                stamp = datetime.now().astimezone().isoformat(timespec="seconds")
                backup = self.undo_file.with_name(f"{self.undo_file.name}.{stamp}")
                os.chmod(self.undo_file, 0o644)
                self.undo_file.rename(backup)
                logging.info(f"Previous undo script preserved as {backup}")
        except OSError as e:
            raise UndoLogError(f"Failed to initialize undo log {self.undo_file}: {e}") from e

    def append(self, command: str):
        try:
            with open(self.temp_file, "a", encoding="utf-8") as f:
                f.write(command + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise UndoLogError(f"Failed to write undo log {self.temp_file}: {e}") from e

    def record_dir_create(self, directory: Path):
        self.append(f"rmdir {sh_quote(directory)}")

    def record_dir_delete(self, directory: Path):
        self.append(f"mkdir {sh_quote(directory)}")

    def record_file_move(self, source: Path, dest: Path, use_rsync: bool):
        if use_rsync:
            self.append(f"{config.RSYNC_UNDO_CMD} {sh_quote(dest)} {sh_quote(source)}")
        else:
            self.append(f"{config.MV_UNDO_CMD} {sh_quote(dest)} {sh_quote(source)}")

    def pending_commands(self) -> List[str]:
        """Commands written so far, in forward (chronological) order."""
        try:
            with open(self.temp_file, "r", encoding="utf-8") as f:
                return [line.rstrip("\n") for line in f if line.strip()]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise UndoLogError(f"Failed to read undo log {self.temp_file}: {e}") from e

    def finalize(self) -> Path:
        """Writes the reversed script with a shebang and removes the temp file."""
        lines = self.pending_commands()
        try:
            with open(self.undo_file, "w", encoding="utf-8") as f:
                f.write(config.UNDO_SHEBANG + "\n")
                for line in reversed(lines):
                    f.write(line + "\n")
            os.chmod(self.undo_file, config.UNDO_FILE_MODE)
            self.temp_file.unlink(missing_ok=True)
        except OSError as e:
            raise UndoLogError(f"Failed to write undo script {self.undo_file}: {e}") from e

        logging.debug(f"Wrote {len(lines)} undo commands to {self.undo_file}")
        return self.undo_file
