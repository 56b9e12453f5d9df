import logging
import re
import subprocess
import json
from pathlib import Path
from datetime import datetime, timezone, tzinfo
from typing import Optional, Any

import exifread
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataExtractionError

EXIF_DATE_RE = re.compile(r'^\d{4}:\d{2}:\d{2}')


class MetadataExtractor:
    """
    Reads the capture time embedded in a media file.

    Strategies:
      - Images: Uses 'exifread' (fast, Python-native).
      - Video: Uses 'pymediainfo' (fast wrapper) -> falls back to 'exiftool' (robust).

    EXIF dates carry no zone and are taken as wall-clock time in `local_tz`.
    Dates explicitly marked as UTC are converted into `local_tz`.
    """

    def __init__(self, local_tz: tzinfo):
        self.local_tz = local_tz

    def extract_embedded_timestamp(self, path: Path) -> datetime:
        """
        Returns the embedded capture time as an aware datetime.

        Raises MetadataExtractionError if the file has no usable embedded date.
        """
        if path.suffix.lower() in config.VIDEO_EXTS:
            dt = self.get_video_timestamp(path)
        else:
            dt = self.get_image_timestamp(path)

        if dt is None:
            raise MetadataExtractionError(f"No embedded capture date in {path}")
        return self._localize(dt)

    def get_image_timestamp(self, path: Path) -> Optional[datetime]:
        """Extracts the EXIF capture date from image files (RAW, JPEG, TIFF)."""
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.debug(f"ExifRead failed for {path}: {e}")
            return None

        return self._parse_exif_date(tags)

    def get_video_timestamp(self, path: Path) -> Optional[datetime]:
        # Strategy 1: Try MediaInfo (Fastest, usually sufficient)
        try:
            dt = self._extract_mediainfo(path)
            if dt:
                return dt
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")

        # Strategy 2: Try ExifTool (Robust fallback, requires system install)
        try:
            return self._extract_exiftool(path)
        except Exception as e:
            # Only log at debug level to avoid spamming console if tool is missing
            logging.debug(f"ExifTool failed for {path}: {e}")

        return None

    # --- Internal Extraction Helpers ---

    def _extract_mediainfo(self, path: Path) -> Optional[datetime]:
        mi = MediaInfo.parse(str(path))
        for track in mi.tracks:
            if track.track_type != "General":
                continue
            # We check multiple fields because different cameras write to different tags.
            for field in config.VIDEO_DATE_FIELDS:
                val = getattr(track, field, None)
                if val:
                    dt = self._parse_flexible_date(str(val))
                    if dt:
                        return dt
        return None

    def _extract_exiftool(self, path: Path) -> Optional[datetime]:
        """
        Wraps the 'exiftool' command line utility.
        Must be installed and on the system PATH.
        """
        # -j = JSON output
        # -n = No formatting (clean dates)
        cmd = ["exiftool", "-j", "-n", str(path)]
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True)
        data_list: Any = json.loads(out)
        if not data_list:
            return None

        tags = data_list[0]
        for field in config.EXIFTOOL_DATE_FIELDS:
            if tags.get(field):
                dt = self._parse_flexible_date(str(tags[field]))
                if dt:
                    return dt
        return None

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        """Helper to parse standard EXIF date strings from exifread."""
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).strip().replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_flexible_date(self, dt_str: str) -> Optional[datetime]:
        """
        Handles various date formats (ISO, UTC markers, Exiftool quirks).
        Returns an aware datetime for UTC-marked or offset-carrying values,
        otherwise a naive one.
        """
        if not dt_str:
            return None

        is_utc = "UTC" in dt_str
        clean = dt_str.replace("UTC", "").strip()

        # Standard EXIF style "YYYY:MM:DD HH:MM:SS"
        if EXIF_DATE_RE.match(clean):
            clean = clean.replace(":", "-", 2)

        try:
            dt = datetime.fromisoformat(clean)
        except ValueError:
            return None

        if dt.tzinfo is None and is_utc:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    def _localize(self, dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.local_tz)
        return dt.astimezone(self.local_tz)
