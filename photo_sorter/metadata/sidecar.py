"""
Google Photos JSON sidecar handling.

Takeout exports place metadata next to each picture as <name>.<ext>.json:

    {
      "title": "IMG_3560.JPG",
      "photoTakenTime": {"timestamp": "1562768659", "formatted": "..."},
      "trashed": true,
      ...
    }

Only `trashed` and `photoTakenTime.timestamp` are read; everything else is
ignored. A missing sidecar is the normal case and is not an error.
"""
import glob
import json
import logging
import re
from datetime import datetime, tzinfo
from pathlib import Path
from typing import List, Optional

from .. import config
from ..exceptions import SidecarParseError
from ..models import MediaMetadata

# foo(1).png -> foo.png
NUMBERED_STEM_RE = re.compile(r'\(\d+\)$')


class GooglePhotoMetadataReader:
    def __init__(self, local_tz: tzinfo, match_live_photos: bool = False):
        self.local_tz = local_tz
        self.match_live_photos = match_live_photos

    def read(self, picture: Path) -> Optional[MediaMetadata]:
        """
        Returns the sidecar metadata for picture, or None if there is no
        sidecar or it cannot be matched to the picture with full confidence.

        Raises SidecarParseError if the chosen sidecar is unreadable or is not
        a JSON object.
        """
        logging.debug(f"Looking for metadata for {picture}")
        candidates = self.candidate_paths(picture)

        if not self.is_unambiguous(picture, candidates):
            logging.warning(
                f"Skipping Google metadata for {picture} because it could not be "
                f"matched to the file with full confidence."
            )
            return None

        for candidate in candidates:
            try:
                text = candidate.read_text(encoding="utf-8-sig")
            except FileNotFoundError:
                continue
            except (OSError, UnicodeDecodeError) as e:
                raise SidecarParseError(f"Cannot read sidecar {candidate}: {e}") from e

            metadata = self.parse(text, candidate)
            logging.debug(
                f"Using Google metadata file {candidate} for {picture}: "
                f"trashed={metadata.is_trashed} taken={metadata.captured_at}"
            )
            return metadata

        return None

    def parse(self, text: str, source: Optional[Path] = None) -> MediaMetadata:
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise SidecarParseError(f"Invalid JSON in {source}: {e}") from e
        if not isinstance(doc, dict):
            raise SidecarParseError(f"Expected a JSON object in {source}")

        metadata = MediaMetadata(source_path=source)

        trashed = doc.get("trashed")
        if isinstance(trashed, bool):
            metadata.is_trashed = trashed

        taken = doc.get("photoTakenTime")
        if isinstance(taken, dict):
            metadata.captured_at = self._parse_unix_timestamp(taken.get("timestamp"))

        return metadata

    def candidate_paths(self, picture: Path) -> List[Path]:
        """
        Sidecar names to probe, in order: upper then lower case variants of
        the picture's extension, plus the HEIC variants for live-photo videos.
        """
        ext = picture.suffix
        stem = picture.stem if ext else picture.name
        exts = [ext.upper(), ext.lower()]
        if self.match_live_photos:
            exts.extend(config.LIVE_PHOTO_SIDECAR_EXTS)

        result: List[Path] = []
        for e in exts:
            candidate = picture.with_name(f"{stem}{e}.json")
            if candidate not in result:
                result.append(candidate)
        return result

    def is_unambiguous(self, picture: Path, candidates: List[Path]) -> bool:
        # Seen in the wild:
        #   fileA.jpg, fileA(1).jpg, fileA.JPG.json, fileA.JPG(1).json
        # where fileA.jpg belonged to fileA.JPG(1).json. Takeout does not keep
        # picture and sidecar numbering in lockstep, so any sign of numbered
        # siblings disables the sidecar.
        if is_file_duplicated(picture):
            logging.debug(f"Metadata ambiguous: picture name {picture} is potentially duplicated")
            return False
        for candidate in candidates:
            if is_file_duplicated(candidate):
                logging.debug(f"Metadata ambiguous: sidecar name {candidate} is potentially duplicated")
                return False
        return True

    def _parse_unix_timestamp(self, value) -> Optional[datetime]:
        if value is None or value == "":
            return None
        try:
            return datetime.fromtimestamp(int(str(value)), tz=self.local_tz)
        except (ValueError, OverflowError, OSError):
            logging.debug(f"Ignoring unparsable photoTakenTime timestamp: {value!r}")
            return None


def is_file_duplicated(path: Path) -> bool:
    """
    True when more than one file matches <base>(*)<ext> or <base><ext>,
    where <base> is the stem without a trailing "(N)".
    """
    ext = path.suffix
    stem = path.stem if ext else path.name
    base = NUMBERED_STEM_RE.sub("", stem)
    parent = glob.escape(str(path.parent))

    numbered = f"{parent}/{glob.escape(base)}(*){glob.escape(ext)}"
    bare = f"{parent}/{glob.escape(base + ext)}"
    try:
        count = len(glob.glob(numbered)) + len(glob.glob(bare))
    except OSError as e:
        logging.warning(f"Assuming {path} is duplicated; failed to list siblings: {e}")
        return True

    logging.debug(f"Sibling check for {path}: {count} match(es)")
    return count > 1
