"""
Tests for the folder scanner.
"""
import os

import pytest

from upload_watcher.exceptions import FolderError
from upload_watcher.scanner import FileScanner


def test_scan_returns_unknown_regular_files_in_listing_order(tmp_watch_dir):
    for name in ["one.png", "two.jpg", "three.gif"]:
        (tmp_watch_dir / name).write_bytes(b"data")
    (tmp_watch_dir / "subdir").mkdir()

    candidates = FileScanner().scan_folder(tmp_watch_dir, lambda name: True)

    expected = [n for n in os.listdir(tmp_watch_dir) if n != "subdir"]
    assert [c.name for c in candidates] == expected
    assert all(c.path == tmp_watch_dir / c.name for c in candidates)
    assert all(c.size == 4 for c in candidates)


def test_scan_skips_known_names(tmp_watch_dir):
    (tmp_watch_dir / "a.png").write_bytes(b"a")
    (tmp_watch_dir / "b.jpg").write_bytes(b"b")

    candidates = FileScanner().scan_folder(tmp_watch_dir, lambda name: name != "a.png")

    assert [c.name for c in candidates] == ["b.jpg"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_scan_skips_dangling_links_and_links_to_directories(tmp_watch_dir, tmp_path):
    """Test that entries which cannot be stat'ed or are not files are ignored."""
    (tmp_watch_dir / "real.png").write_bytes(b"x")
    try:
        os.symlink(tmp_path / "missing.png", tmp_watch_dir / "dangling.png")
        os.symlink(tmp_path, tmp_watch_dir / "dirlink")
    except OSError:
        pytest.skip("cannot create symlinks")

    candidates = FileScanner().scan_folder(tmp_watch_dir, lambda name: True)

    assert [c.name for c in candidates] == ["real.png"]


def test_missing_folder_raises_folder_error(tmp_path):
    with pytest.raises(FolderError) as exc_info:
        FileScanner().scan_folder(tmp_path / "nope", lambda name: True)

    assert exc_info.value.folder == str(tmp_path / "nope")
