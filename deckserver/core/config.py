"""
Engine configuration.

Values come from environment variables with typed defaults; see
``EngineConfig.from_env``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from deckserver.core.deck import DEFAULT_TRANSITION, DEFAULT_TRANSITION_DURATION_MS
from deckserver.core.orchestrator import DEFAULT_FRAME_RATE

PACKAGE_DIR = Path(__file__).resolve().parent.parent


def _int_setting(env: Mapping[str, str], name: str, default: int, *, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _path_setting(env: Mapping[str, str], name: str) -> Optional[Path]:
    raw = env.get(name)
    return Path(raw).expanduser() if raw else None


@dataclass
class EngineConfig:
    manifest_path: Optional[Path] = None
    bindings_path: Optional[Path] = None
    transition: str = DEFAULT_TRANSITION
    transition_duration_ms: int = DEFAULT_TRANSITION_DURATION_MS
    frame_rate: int = DEFAULT_FRAME_RATE
    initial_location: Optional[str] = None
    history_limit: int = 200
    storage_dir: Path = field(default_factory=lambda: PACKAGE_DIR / "storage")
    persist_history: bool = True
    log_dir: Path = field(default_factory=lambda: PACKAGE_DIR.parent / "logs")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            manifest_path=_path_setting(env, "DECK_MANIFEST_PATH"),
            bindings_path=_path_setting(env, "DECK_BINDINGS_PATH"),
            transition=env.get("DECK_TRANSITION") or DEFAULT_TRANSITION,
            transition_duration_ms=_int_setting(
                env, "DECK_TRANSITION_DURATION_MS", DEFAULT_TRANSITION_DURATION_MS
            ),
            frame_rate=_int_setting(env, "DECK_FRAME_RATE", DEFAULT_FRAME_RATE, minimum=1),
            initial_location=env.get("DECK_INITIAL_LOCATION") or None,
            history_limit=_int_setting(env, "DECK_HISTORY_LIMIT", 200, minimum=1),
            storage_dir=_path_setting(env, "DECK_STORAGE_DIR") or defaults.storage_dir,
            persist_history=env.get("DECK_PERSIST_HISTORY", "1") == "1",
            log_dir=_path_setting(env, "DECK_LOG_DIR") or defaults.log_dir,
            log_level=(env.get("DECK_LOG_LEVEL") or "INFO").upper(),
        )
