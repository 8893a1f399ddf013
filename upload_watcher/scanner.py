"""
Module for scanning the watched folder for upload candidates.
"""
import logging
import os
import stat
from pathlib import Path
from typing import Callable, List

from .exceptions import FolderError
from .models import PendingUpload

logger = logging.getLogger(__name__)


class FileScanner:
    """Lists a folder and picks out regular files that still need uploading."""

    def list_entries(self, folder: Path) -> List[str]:
        """List entry names in a folder, in listing order.

        Args:
            folder: Folder to list

        Returns:
            Entry names

        Raises:
            FolderError: If the folder cannot be read
        """
        try:
            return os.listdir(folder)
        except OSError as e:
            raise FolderError(str(folder), f"Error reading folder: {e.strerror or e}") from e

    def scan_folder(self, folder: Path,
                    is_candidate: Callable[[str], bool]) -> List[PendingUpload]:
        """Scan a folder for files that are not yet uploaded.

        Entries that vanish or cannot be stat'ed mid-scan are skipped, as
        are directories and anything else that is not a regular file.

        Args:
            folder: Path to the folder to scan
            is_candidate: Returns True for names that still need uploading

        Returns:
            Pending uploads in listing order

        Raises:
            FolderError: If the folder cannot be read
        """
        folder = Path(folder)
        candidates = []
        for name in self.list_entries(folder):
            path = folder / name
            try:
                st = path.stat()
            except OSError as e:
                logger.debug(f"Skipping {path}: {e}")
                continue

            if not stat.S_ISREG(st.st_mode):
                continue
            if is_candidate(name):
                candidates.append(PendingUpload(name=name, path=path, size=st.st_size))

        return candidates
