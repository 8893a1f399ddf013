"""
Module for loading and persisting watcher configuration.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict

from .exceptions import StorageCorrupt, StorageWriteError
from .models import (
    DEFAULT_CHANGE_SETTLE_DELAY,
    DEFAULT_SCAN_SETTLE_DELAY,
    WatchConfig,
    is_valid_endpoint,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "folderPath": str(Path.home() / "Pictures" / "Screenshots"),
    "remoteUploadUrl": "http://localhost:8080/upload",
    "scanSettleDelay": DEFAULT_SCAN_SETTLE_DELAY,
    "changeSettleDelay": DEFAULT_CHANGE_SETTLE_DELAY,
}


def _as_delay(value: Any, key: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
        return float(value)
    logger.warning(f"Invalid {key} {value!r} in config, using default")
    return float(DEFAULT_CONFIG[key])


class ConfigStore:
    """Configuration backed by a JSON file.

    Persisted values are merged over DEFAULT_CONFIG and the merged record
    is written back on every load. Unknown keys are kept but ignored.
    """

    def __init__(self, config_file: Path):
        """Initialize the configuration store.

        Args:
            config_file: Path to the JSON configuration file
        """
        self.config_file = Path(config_file)
        self._data: Dict[str, Any] = dict(DEFAULT_CONFIG)

    def _read(self) -> Dict[str, Any]:
        """Read the raw configuration object.

        Raises:
            StorageCorrupt: If the file is not a JSON object
        """
        try:
            with open(self.config_file, encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageCorrupt(str(self.config_file), f"Invalid JSON: {e}") from e
        except OSError as e:
            raise StorageCorrupt(str(self.config_file), f"Unreadable: {e}") from e

        if not isinstance(data, dict):
            raise StorageCorrupt(str(self.config_file), "Expected a JSON object")
        return data

    def load(self) -> WatchConfig:
        """Load configuration, falling back to defaults for missing fields.

        Returns:
            The merged WatchConfig
        """
        stored: Dict[str, Any] = {}
        if self.config_file.exists():
            try:
                stored = self._read()
                logger.info(f"Configuration loaded from {self.config_file}")
            except StorageCorrupt as e:
                logger.warning(f"Could not read config ({e}); using defaults")

        merged = {**DEFAULT_CONFIG, **stored}

        if not isinstance(merged["folderPath"], str) or not merged["folderPath"]:
            logger.warning(f"Invalid folderPath {merged['folderPath']!r} in config, using default")
            merged["folderPath"] = DEFAULT_CONFIG["folderPath"]
        if not is_valid_endpoint(merged["remoteUploadUrl"]):
            logger.warning(
                f"Invalid remoteUploadUrl {merged['remoteUploadUrl']!r} in config, using default"
            )
            merged["remoteUploadUrl"] = DEFAULT_CONFIG["remoteUploadUrl"]
        merged["scanSettleDelay"] = _as_delay(merged["scanSettleDelay"], "scanSettleDelay")
        merged["changeSettleDelay"] = _as_delay(merged["changeSettleDelay"], "changeSettleDelay")

        self._data = merged
        config = self._to_config(merged)

        try:
            self._write(merged)
        except StorageWriteError as e:
            logger.error(f"Error writing merged configuration: {e}")

        return config

    def save(self, config: WatchConfig) -> None:
        """Persist a configuration, replacing the stored values.

        Args:
            config: Configuration to persist

        Raises:
            StorageWriteError: If the config file cannot be written
        """
        data = {
            **self._data,
            "folderPath": str(config.directory),
            "remoteUploadUrl": config.endpoint,
            "scanSettleDelay": config.scan_settle_delay,
            "changeSettleDelay": config.change_settle_delay,
        }
        self._write(data)
        self._data = data
        logger.info(f"Configuration saved to {self.config_file}")

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise StorageWriteError(str(self.config_file), f"Cannot write config: {e}") from e

    @staticmethod
    def _to_config(data: Dict[str, Any]) -> WatchConfig:
        return WatchConfig(
            directory=Path(data["folderPath"]),
            endpoint=data["remoteUploadUrl"],
            scan_settle_delay=data["scanSettleDelay"],
            change_settle_delay=data["changeSettleDelay"],
        )
