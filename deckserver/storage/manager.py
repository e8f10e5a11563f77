from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

STORAGE_DIR = Path(__file__).resolve().parent
LAST_POSITION_FILENAME = "last_position.json"
HISTORY_LOG_FILENAME = "location_log.json"


@dataclass
class DeckSnapshot:
    location: Optional[str] = None
    mode: Optional[str] = None
    saved_at: Optional[str] = None


def _ensure_storage_dir(storage_dir: Path) -> None:
    storage_dir.mkdir(parents=True, exist_ok=True)


def _load_json_file(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return default


def load_last_position(storage_dir: Path = STORAGE_DIR) -> DeckSnapshot:
    """Load the last committed deck location from storage."""
    _ensure_storage_dir(storage_dir)
    data = _load_json_file(storage_dir / LAST_POSITION_FILENAME, None)
    if not isinstance(data, dict):
        return DeckSnapshot()
    return DeckSnapshot(
        location=data.get("location"),
        mode=data.get("mode"),
        saved_at=data.get("saved_at"),
    )


def save_last_position(
    location: str,
    *,
    mode: Optional[str] = None,
    storage_dir: Path = STORAGE_DIR,
) -> None:
    """Persist the latest committed location."""
    _ensure_storage_dir(storage_dir)
    payload = {
        "location": location,
        "mode": mode,
        "saved_at": datetime.now(timezone.utc).isoformat(),
    }
    (storage_dir / LAST_POSITION_FILENAME).write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def load_location_history(
    limit: Optional[int] = None, storage_dir: Path = STORAGE_DIR
) -> List[Dict[str, Any]]:
    """Return the stored location history, optionally truncated to the last [limit] entries."""
    _ensure_storage_dir(storage_dir)
    history = _load_json_file(storage_dir / HISTORY_LOG_FILENAME, default=[])
    if not isinstance(history, list):
        return []
    if limit is not None and limit > 0:
        return history[-limit:]
    return history


def append_location_history(
    entry: Dict[str, Any],
    *,
    limit: Optional[int] = None,
    storage_dir: Path = STORAGE_DIR,
) -> None:
    """Append a new location entry to the history log."""
    _ensure_storage_dir(storage_dir)
    history = load_location_history(storage_dir=storage_dir)
    history.append(entry)
    if limit is not None and limit > 0:
        history = history[-limit:]
    (storage_dir / HISTORY_LOG_FILENAME).write_text(
        json.dumps(history, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def reset_location_history(storage_dir: Path = STORAGE_DIR) -> None:
    """Remove the stored history and last position."""
    for name in (HISTORY_LOG_FILENAME, LAST_POSITION_FILENAME):
        path = storage_dir / name
        if path.exists():
            path.unlink()
