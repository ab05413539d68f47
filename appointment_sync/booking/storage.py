# Key-value persistence handed to the booking client. Values are always serialized strings.
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

# Single key holding the serialized list of every booking made in this store
BOOKINGS_KEY = "bookings"


class KeyValueStorage(Protocol):

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryStorage:

    def __init__(self, initial: Dict[str, str] = None):
        self._items = dict(initial or {})

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        self._items[key] = value


class JsonFileStorage:
    """
    Stores all keys in one JSON object on disk. A missing file reads as empty.
    Not safe for concurrent writers; there is one writer per store.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get_item(self, key):
        return self._read_all().get(key)

    def set_item(self, key, value):
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(self.path)
        logger.info(f"Saved {key} to {self.path}")
