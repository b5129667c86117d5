"""
Per-device channel watermarks.

Remembers, for each chat channel, when this device last looked at it.
Stored as a JSON map ``{channel_id: last_seen_ms}`` in ~/.portal/ by default;
a missing or corrupt file simply means nothing has been seen yet.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from loguru import logger

from config import get_settings


class ChannelWatermarks:
    """
    Local last-seen store.

    Loaded once at construction and written through on every ``mark``.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_settings().watermark_path
        self._seen: dict[str, int] = self._load()

    def _load(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable watermark file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}

        seen = {}
        for channel_id, value in data.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                seen[str(channel_id)] = int(value)
        return seen

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._seen, f, indent=2)

    def get(self, channel_id: str) -> int:
        """Last-seen time for a channel (0 if never seen)."""
        return self._seen.get(channel_id, 0)

    def mark(self, channel_id: str, now_ms: int) -> None:
        self._seen[channel_id] = now_ms
        self._save()

    def as_dict(self) -> dict[str, int]:
        return dict(self._seen)

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._seen
