import logging
from pathlib import Path
from typing import Optional

from ..exceptions import MetadataExtractionError, SidecarParseError, TimestampUnavailableError
from ..models import MediaMetadata, ResolvedTimestamp
from .extract import MetadataExtractor
from .sidecar import GooglePhotoMetadataReader

_UNREAD = object()


class TimestampResolver:
    """
    Picks one authoritative capture time for a media file.

    Priority: embedded metadata (EXIF / MediaInfo) -> Google sidecar.
    The sidecar is only trusted when the ambiguity guard in
    GooglePhotoMetadataReader passes.
    """

    def __init__(self, extractor: MetadataExtractor, sidecars: GooglePhotoMetadataReader):
        self.extractor = extractor
        self.sidecars = sidecars

    def read_sidecar(self, path: Path) -> Optional[MediaMetadata]:
        """Sidecar lookup that never raises; parse errors are logged."""
        try:
            return self.sidecars.read(path)
        except SidecarParseError as e:
            logging.warning(f"Ignoring Google metadata for {path}: {e}")
            return None

    def resolve(self, path: Path, metadata=_UNREAD) -> ResolvedTimestamp:
        """
        Returns the capture time and a description of where it came from.

        `metadata` is the sidecar the caller has already read (None meaning
        there is none); when omitted the sidecar is looked up here.

        Raises TimestampUnavailableError if no source yields a timestamp.
        """
        try:
            dt = self.extractor.extract_embedded_timestamp(path)
            return ResolvedTimestamp(dt, "embedded")
        except MetadataExtractionError as e:
            logging.debug(f"{e}; trying Google metadata")

        if metadata is _UNREAD:
            metadata = self.read_sidecar(path)

        if metadata is not None and metadata.captured_at is not None:
            return ResolvedTimestamp(metadata.captured_at, f"sidecar {metadata.source_path}")

        raise TimestampUnavailableError(f"No capture date for {path} (file or Google metadata)")
