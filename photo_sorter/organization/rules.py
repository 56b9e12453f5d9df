import logging
from datetime import datetime, tzinfo
from pathlib import Path

from .. import config


def local_timezone() -> tzinfo:
    """
    The local UTC offset as of now, as a fixed zone.

    Captured once per run: a run that spans a DST change keeps using the
    offset it started with.
    """
    return datetime.now().astimezone().tzinfo


class DestinationPlanner:
    def __init__(self, lib_dir: Path, local_tz: tzinfo):
        self.lib_dir = Path(lib_dir)
        self.local_tz = local_tz

    def plan(self, path: Path, timestamp: datetime) -> Path:
        """
        <lib>/<YYYY>/<YYYY-MM-DD>/<YYYY-MM-DD_HH-MM-SS>_<original name>
        """
        if timestamp.tzinfo is None:
            local = timestamp.replace(tzinfo=self.local_tz)
        else:
            local = timestamp.astimezone(self.local_tz)

        folder = self.lib_dir / local.strftime(config.YEAR_FORMAT) / local.strftime(config.DATE_DIR_FORMAT)
        result = folder / (local.strftime(config.FILE_PREFIX_FORMAT) + Path(path).name)
        logging.debug(f"Derived path {result} from timestamp {timestamp.isoformat()}")
        return result
