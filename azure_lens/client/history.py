import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 100

DEFAULT_SETTINGS = {
    "defaultLanguage": "en",
    "enableHaptics": True,
    "enableAnalytics": True,
    "theme": "auto",
    "cameraFlashMode": "auto",
    "saveToPhotos": False,
}


class HistoryStore:
    """Scan history and user settings kept in a JSON file"""

    def __init__(self, path: str, max_items: int = MAX_HISTORY_ITEMS):
        self.path = path
        self.max_items = max_items
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _load(self) -> Dict[str, Any]:
        """Load the store, an unreadable file counts as empty"""
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
            except (OSError, ValueError) as e:
                logger.error("Error reading history store %s: %s", self.path, e)
        return {}

    def _save(self, data: Dict[str, Any]):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get_history(self) -> List[Dict[str, Any]]:
        return self._load().get("history", [])

    def add_history_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Prepend an item, newest first, keeping at most max_items"""
        data = self._load()
        new_item = {
            **item,
            "id": str(uuid.uuid4()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        data["history"] = [new_item, *data.get("history", [])][: self.max_items]
        self._save(data)
        return new_item

    def remove_history_item(self, item_id: str):
        data = self._load()
        data["history"] = [i for i in data.get("history", []) if i.get("id") != item_id]
        self._save(data)

    def clear_history(self):
        data = self._load()
        data.pop("history", None)
        self._save(data)

    def get_settings(self) -> Dict[str, Any]:
        return {**DEFAULT_SETTINGS, **self._load().get("settings", {})}

    def update_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        data = self._load()
        data["settings"] = {**self.get_settings(), **settings}
        self._save(data)
        return data["settings"]
