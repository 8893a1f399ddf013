"""
Module for tracking and persisting the set of uploaded filenames.
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Set

from .exceptions import StorageCorrupt, StorageWriteError

logger = logging.getLogger(__name__)


class UploadTracker:
    """Tracks and persists the names of successfully uploaded files.

    Names are only ever added. The backing file is a JSON array of names
    which is rewritten in full on every addition.
    """

    def __init__(self, record_file: Path):
        """Initialize the upload tracker.

        Args:
            record_file: Path to the JSON file holding uploaded names
        """
        self.record_file = Path(record_file)
        self._names: Set[str] = set()
        self._lock = threading.Lock()

        # Load existing records if available
        self._names = self.load()

    def _read_names(self) -> Set[str]:
        """Read names from the record file.

        Returns:
            Set of names stored in the file

        Raises:
            StorageCorrupt: If the file is not a JSON array of strings
        """
        try:
            with open(self.record_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageCorrupt(str(self.record_file), f"Invalid JSON: {e}") from e
        except OSError as e:
            raise StorageCorrupt(str(self.record_file), f"Unreadable: {e}") from e

        if not isinstance(data, list) or not all(isinstance(n, str) for n in data):
            raise StorageCorrupt(str(self.record_file), "Expected a JSON array of filenames")
        return set(data)

    def load(self) -> Set[str]:
        """Load uploaded names from the record file.

        Returns:
            Set of names, empty if no record exists or it cannot be parsed
        """
        if not self.record_file.exists():
            return set()

        try:
            names = self._read_names()
        except StorageCorrupt as e:
            logger.error(f"Error loading upload record, starting empty: {e}")
            return set()

        logger.info(f"Loaded {len(names)} uploaded file names from {self.record_file}")
        return names

    def _save(self) -> None:
        """Rewrite the record file with the current names.

        Raises:
            StorageWriteError: If the file cannot be written
        """
        tmp_file = self.record_file.with_name(self.record_file.name + '.tmp')
        try:
            self.record_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump(sorted(self._names), f, indent=2)
            os.replace(tmp_file, self.record_file)
        except OSError as e:
            raise StorageWriteError(str(self.record_file), f"Cannot write upload record: {e}") from e

    def add(self, name: str) -> None:
        """Record a file name as uploaded.

        Args:
            name: Base name of the uploaded file
        """
        with self._lock:
            if name in self._names:
                return
            self._names.add(name)
            try:
                self._save()
            except StorageWriteError as e:
                logger.error(f"Error saving upload record after adding {name}: {e}")
                return

        logger.debug(f"Recorded {name} as uploaded ({len(self._names)} total)")

    def contains(self, name: str) -> bool:
        """Check whether a file name has already been uploaded.

        Args:
            name: Base name of the file

        Returns:
            True if the name is recorded, False otherwise
        """
        return name in self._names

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> Set[str]:
        with self._lock:
            return set(self._names)
