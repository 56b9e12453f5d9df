import pytest
from datetime import timezone
from pathlib import Path
from PIL import Image

from photo_sorter.core import PhotoSorterApp
from photo_sorter.models import SortSettings
from photo_sorter.organization.mover import FileMover
from photo_sorter.organization.undo import UndoLog


@pytest.fixture
def settings(tmp_path):
    """SortSettings over fresh incoming/library/reject trees under tmp_path."""
    for name in ("incoming", "lib", "reject"):
        (tmp_path / name).mkdir()
    return SortSettings(
        lib_dir=tmp_path / "lib",
        incoming_dir=tmp_path / "incoming",
        reject_dir=tmp_path / "reject",
        undo_file=tmp_path / "undo.sh",
        use_rsync=False,
        show_progress=False,
    )


@pytest.fixture
def make_app(settings):
    """Builds an app pinned to UTC so sidecar timestamps format predictably."""
    def _make(**overrides):
        for key, value in overrides.items():
            setattr(settings, key, value)
        return PhotoSorterApp(settings, local_tz=timezone.utc)
    return _make


@pytest.fixture
def undo_log(tmp_path):
    return UndoLog(tmp_path / "undo.sh", tmp_path / "undo.sh.temp")


@pytest.fixture
def mover(undo_log):
    return FileMover(undo_log, dry_run=False, use_rsync=False)


@pytest.fixture
def make_jpeg():
    """Writes a small JPEG, optionally with an EXIF 'Image DateTime' tag."""
    def _make(path: Path, taken=None, color=(255, 0, 0)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        save_kwargs = {}
        if taken:
            exif = Image.Exif()
            exif[0x0132] = taken  # DateTime, "YYYY:MM:DD HH:MM:SS"
            save_kwargs["exif"] = exif
        with Image.new("RGB", (8, 8), color=color) as im:
            im.save(path, format="JPEG", **save_kwargs)
        return path
    return _make
