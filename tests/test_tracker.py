"""
Tests for the upload tracker component.
"""
import json
import logging
import threading

import pytest

from upload_watcher.exceptions import StorageCorrupt
from upload_watcher.tracker import UploadTracker


def test_missing_record_file_starts_empty(upload_tracker, tmp_record_file):
    """Test that a tracker without a record file starts with no names."""
    assert len(upload_tracker) == 0
    assert upload_tracker.load() == set()
    assert not tmp_record_file.exists()


def test_add_persists_name_as_json_array(upload_tracker, tmp_record_file):
    """Test that adding a name rewrites the record file."""
    upload_tracker.add("shot1.png")

    assert upload_tracker.contains("shot1.png")
    with open(tmp_record_file) as f:
        assert json.load(f) == ["shot1.png"]


def test_add_is_idempotent(upload_tracker, tmp_record_file):
    upload_tracker.add("shot1.png")
    upload_tracker.add("shot1.png")

    assert len(upload_tracker) == 1
    with open(tmp_record_file) as f:
        assert json.load(f) == ["shot1.png"]


def test_reload_yields_equal_set_regardless_of_order(tmp_record_file):
    """Test that persisting then reloading gives back the same names."""
    names = ["c.png", "a.jpg", "b.gif", "z.webp"]
    first = UploadTracker(tmp_record_file)
    for name in names:
        first.add(name)

    second = UploadTracker(tmp_record_file)
    assert second.names == set(names)

    reversed_tracker = UploadTracker(tmp_record_file.with_name("other.json"))
    for name in reversed(names):
        reversed_tracker.add(name)
    assert UploadTracker(tmp_record_file.with_name("other.json")).names == second.names


def test_contains_does_not_touch_disk(upload_tracker, tmp_record_file):
    """Test that membership is answered from memory."""
    upload_tracker.add("shot1.png")
    tmp_record_file.unlink()

    assert upload_tracker.contains("shot1.png")
    assert "shot1.png" in upload_tracker
    assert not upload_tracker.contains("shot2.png")


@pytest.mark.parametrize("content", ["invalid json[", '{"names": ["a.png"]}', '["a.png", 3]'])
def test_corrupt_record_falls_back_to_empty(tmp_record_file, content, caplog):
    """Test that an unreadable record is logged and treated as empty."""
    tmp_record_file.write_text(content)

    with caplog.at_level(logging.ERROR):
        tracker = UploadTracker(tmp_record_file)

    assert len(tracker) == 0
    assert "Error loading upload record" in caplog.text


def test_read_names_raises_storage_corrupt(tmp_record_file):
    tmp_record_file.write_text("not json")
    tracker = UploadTracker(tmp_record_file)

    with pytest.raises(StorageCorrupt):
        tracker._read_names()


def test_write_failure_is_logged_not_raised(tmp_path, caplog):
    """Test that a failed record write keeps the name in memory."""
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    tracker = UploadTracker(blocker / "uploaded_files.json")

    with caplog.at_level(logging.ERROR):
        tracker.add("shot1.png")

    assert tracker.contains("shot1.png")
    assert "Error saving upload record" in caplog.text


def test_concurrent_adds_do_not_lose_updates(tmp_record_file):
    """Test that adds racing from many threads all reach the file."""
    tracker = UploadTracker(tmp_record_file)
    names = [f"shot{i}.png" for i in range(25)]
    threads = [threading.Thread(target=tracker.add, args=(name,)) for name in names]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with open(tmp_record_file) as f:
        assert set(json.load(f)) == set(names)
