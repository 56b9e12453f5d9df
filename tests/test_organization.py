import os
import logging
import stat
import shutil
import pytest
from pathlib import Path
from datetime import datetime, timedelta, timezone

import photo_sorter.organization.mover as mover_module
from photo_sorter.exceptions import DecollisionExhaustedError, FileOperationError
from photo_sorter.organization.mover import FileMover
from photo_sorter.organization.rules import DestinationPlanner
from photo_sorter.organization.undo import UndoLog, sh_quote


def read_lines(path: Path):
    return path.read_text(encoding="utf-8").splitlines()


# --- Moves ---

def test_move_creates_parents_and_records_undo(mover, undo_log, tmp_path):
    src = tmp_path / "in" / "IMG_1.JPG"
    src.parent.mkdir()
    src.write_bytes(b"pic")
    dest = tmp_path / "lib" / "2019" / "2019-07-10" / "IMG_1.JPG"

    final = mover.move_with_rename(src, dest)

    assert final == dest
    assert dest.read_bytes() == b"pic"
    assert not src.exists()
    assert undo_log.pending_commands() == [
        f'rmdir "{tmp_path / "lib"}"',
        f'rmdir "{tmp_path / "lib" / "2019"}"',
        f'rmdir "{tmp_path / "lib" / "2019" / "2019-07-10"}"',
        f'mv -n "{dest}" "{src}"',
    ]


def test_move_into_existing_dir_records_only_move(mover, undo_log, tmp_path):
    src = tmp_path / "a.jpg"
    src.write_bytes(b"a")
    (tmp_path / "lib").mkdir()

    mover.move_with_rename(src, tmp_path / "lib" / "a.jpg")
    assert len(undo_log.pending_commands()) == 1


def test_collisions_get_numbered_suffix(mover, tmp_path):
    lib = tmp_path / "lib"
    lib.mkdir()
    (lib / "a.jpg").write_bytes(b"original")

    finals = []
    for i in range(2):
        src = tmp_path / f"src{i}.jpg"
        src.write_bytes(f"copy {i}".encode())
        finals.append(mover.move_with_rename(src, lib / "a.jpg"))

    assert finals == [lib / "a.1.jpg", lib / "a.2.jpg"]
    assert (lib / "a.jpg").read_bytes() == b"original"


def test_decollision_gives_up_after_ten(mover, tmp_path):
    lib = tmp_path / "lib"
    lib.mkdir()
    (lib / "a.jpg").write_bytes(b"original")

    for i in range(10):
        src = tmp_path / f"src{i}.jpg"
        src.write_bytes(f"copy {i}".encode())
        mover.move_with_rename(src, lib / "a.jpg")
    assert (lib / "a.10.jpg").exists()

    eleventh = tmp_path / "eleventh.jpg"
    eleventh.write_bytes(b"eleventh")
    with pytest.raises(DecollisionExhaustedError):
        mover.move_with_rename(eleventh, lib / "a.jpg")

    assert eleventh.read_bytes() == b"eleventh"
    assert len(list(lib.iterdir())) == 11


def test_dry_run_touches_nothing(undo_log, tmp_path):
    src = tmp_path / "a.jpg"
    src.write_bytes(b"a")
    dest = tmp_path / "lib" / "deep" / "a.jpg"

    mover = FileMover(undo_log, dry_run=True, use_rsync=False)
    assert mover.move_with_rename(src, dest) == dest

    assert src.exists()
    assert not (tmp_path / "lib").exists()
    assert not undo_log.temp_file.exists()


def test_move_with_preserved_relative_path(mover, tmp_path):
    root = tmp_path / "incoming"
    src = root / "album" / "x.jpg"
    src.parent.mkdir(parents=True)
    src.write_bytes(b"x")

    final = mover.move_with_preserved_relative_path(src, root, tmp_path / "reject" / "duplicates")
    assert final == tmp_path / "reject" / "duplicates" / "album" / "x.jpg"
    assert final.exists()


def test_move_with_preserved_path_outside_root(mover, tmp_path):
    src = tmp_path / "elsewhere.jpg"
    src.write_bytes(b"x")
    with pytest.raises(FileOperationError):
        mover.move_with_preserved_relative_path(src, tmp_path / "incoming", tmp_path / "reject")
    assert src.exists()


def test_failed_copy_leaves_source(monkeypatch, mover, tmp_path):
    src = tmp_path / "a.jpg"
    src.write_bytes(b"a")
    dest = tmp_path / "lib" / "a.jpg"

    def broken_copy(s, d):
        Path(d).write_bytes(b"partial")
        raise OSError("disk full")

    monkeypatch.setattr(mover_module.shutil, "copy2", broken_copy)

    with pytest.raises(FileOperationError):
        mover.move_with_rename(src, dest)
    assert src.read_bytes() == b"a"
    assert not dest.exists()


def test_interrupted_copy_leaves_no_destination(monkeypatch, mover, undo_log, tmp_path):
    src = tmp_path / "a.jpg"
    src.write_bytes(b"original")
    dest = tmp_path / "lib" / "a.jpg"

    def interrupted_copy(s, d):
        Path(d).write_bytes(b"part")
        raise KeyboardInterrupt

    monkeypatch.setattr(mover_module.shutil, "copy2", interrupted_copy)

    with pytest.raises(KeyboardInterrupt):
        mover.move_with_rename(src, dest)

    assert src.read_bytes() == b"original"
    assert not dest.exists()
    assert list(dest.parent.iterdir()) == []
    # Replaying the recorded mv finds nothing to move back over the source
    assert undo_log.pending_commands()[-1] == f'mv -n "{dest}" "{src}"'


def test_rsync_transfer_and_undo(monkeypatch, undo_log, tmp_path):
    calls = []

    def fake_run(cmd, check, capture_output, text):
        calls.append(cmd)
        shutil.copy2(cmd[-2], cmd[-1])
        os.unlink(cmd[-2])

    monkeypatch.setattr(mover_module.subprocess, "run", fake_run)

    src = tmp_path / "a.jpg"
    src.write_bytes(b"a")
    (tmp_path / "lib").mkdir()
    dest = tmp_path / "lib" / "a.jpg"

    FileMover(undo_log, use_rsync=True).move_with_rename(src, dest)

    assert calls == [["rsync", "-a", "--remove-source-files", str(src), str(dest)]]
    assert undo_log.pending_commands() == [
        f'rsync -avh --progress --remove-source-files "{dest}" "{src}"'
    ]


# --- Pruning ---

def test_delete_empty_directories(mover, undo_log, tmp_path):
    root = tmp_path / "incoming"
    (root / "a" / "b" / "c").mkdir(parents=True)
    (root / "keep").mkdir()
    (root / "keep" / "left.json").write_text("{}")

    mover.delete_empty_directories_recursively(root)

    assert root.exists()
    assert not (root / "a").exists()
    assert (root / "keep" / "left.json").exists()
    assert undo_log.pending_commands() == [
        f'mkdir "{root / "a" / "b" / "c"}"',
        f'mkdir "{root / "a" / "b"}"',
        f'mkdir "{root / "a"}"',
    ]


def test_delete_empty_directories_dry_run(undo_log, tmp_path):
    root = tmp_path / "incoming"
    (root / "a").mkdir(parents=True)

    FileMover(undo_log, dry_run=True).delete_empty_directories_recursively(root)
    assert (root / "a").exists()
    assert undo_log.pending_commands() == []


def test_dry_run_prune_only_reports_empty_directories(caplog, undo_log, tmp_path):
    root = tmp_path / "incoming"
    (root / "empty").mkdir(parents=True)
    (root / "keep").mkdir()
    (root / "keep" / "left.json").write_text("{}")
    caplog.set_level(logging.INFO)

    FileMover(undo_log, dry_run=True).delete_empty_directories_recursively(root)

    assert f"Delete directory {root / 'empty'}" in caplog.text
    assert f"Delete directory {root / 'keep'}" not in caplog.text


# --- Undo log ---

def test_undo_script_is_reversed(undo_log, tmp_path):
    d = tmp_path / "D"
    f1 = (tmp_path / "F1", d / "F1")
    f2 = (tmp_path / "F2", d / "F2")

    undo_log.initialize()
    undo_log.record_dir_create(d)
    undo_log.record_file_move(*f1, use_rsync=False)
    undo_log.record_file_move(*f2, use_rsync=False)
    script = undo_log.finalize()

    assert read_lines(script) == [
        "#!/bin/sh",
        f'mv -n "{d / "F2"}" "{tmp_path / "F2"}"',
        f'mv -n "{d / "F1"}" "{tmp_path / "F1"}"',
        f'rmdir "{d}"',
    ]
    assert not undo_log.temp_file.exists()
    assert os.stat(script).st_mode & stat.S_IXUSR


def test_initialize_preserves_previous_script(undo_log, tmp_path):
    undo_log.undo_file.write_text("#!/bin/sh\necho old\n")
    undo_log.temp_file.write_text("stale\n")

    undo_log.initialize()

    assert not undo_log.undo_file.exists()
    assert not undo_log.temp_file.exists()
    backups = list(tmp_path.glob("undo.sh.*"))
    assert len(backups) == 1
    assert "echo old" in backups[0].read_text()


def test_finalize_without_actions_writes_shebang(undo_log):
    undo_log.initialize()
    assert read_lines(undo_log.finalize()) == ["#!/bin/sh"]


def test_sh_quote_escapes_specials():
    assert sh_quote('/p/a "b" $HOME `x`') == '"/p/a \\"b\\" \\$HOME \\`x\\`"'


# --- Destination rules ---

def test_planner_layout():
    planner = DestinationPlanner(Path("/lib"), timezone.utc)
    dest = planner.plan(Path("/in/IMG_1.JPG"), datetime.fromtimestamp(1562768659, tz=timezone.utc))
    assert dest == Path("/lib/2019/2019-07-10/2019-07-10_14-24-19_IMG_1.JPG")


def test_planner_uses_fixed_offset():
    planner = DestinationPlanner(Path("/lib"), timezone(timedelta(hours=-5)))
    dest = planner.plan(Path("x.jpg"), datetime(2020, 1, 1, 2, 0, 0, tzinfo=timezone.utc))
    assert dest == Path("/lib/2019/2019-12-31/2019-12-31_21-00-00_x.jpg")
