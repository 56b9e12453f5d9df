import hashlib
import logging
import os
from pathlib import Path

from .. import config
from ..exceptions import FileHashError


class FileHasher:
    def fingerprint(self, path: Path) -> str:
        """
        Computes the duplicate-detection key for a file.

        Format: <md5 hex of full content>-<size in bytes>
        The size suffix is best-effort: if it cannot be read it is omitted
        rather than failing the whole fingerprint.

        Raises FileHashError if the file cannot be opened or read to the end.
        """
        try:
            with open(path, 'rb') as f:
                size_suffix = ""
                try:
                    size_suffix = f"-{os.fstat(f.fileno()).st_size}"
                except OSError as e:
                    logging.warning(f"Unable to read file size of {path}: {e}")

                digest = self._md5_from_handle(f)
        except OSError as e:
            raise FileHashError(f"Failed to hash {path}: {e}") from e

        return digest + size_suffix

    def _md5_from_handle(self, fileobj) -> str:
        """Streams the whole handle through MD5. Caller positions the handle."""
        h = hashlib.md5()
        while chunk := fileobj.read(config.HASH_CHUNK_SIZE):
            h.update(chunk)
        return h.hexdigest()
