"""Persistent record of which articles have already been pulled.

The state lives in a single JSON document next to the archived files.
Saves go through a temp file and ``os.replace`` so a crash mid-write can
never leave a truncated document for the next ``load_state``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from errors import StateCorrupt, StateWriteError
from models import ArticleIdentity, SyncRecord, SyncState

STATE_FILENAME = ".puller-state.json"

LOGGER = logging.getLogger(__name__)


def state_path(output_dir: Path) -> Path:
    return Path(output_dir) / STATE_FILENAME


def load_state(output_dir: Path) -> SyncState:
    """Load the state for output_dir; a missing file yields an empty state."""
    path = state_path(output_dir)
    if not path.exists():
        LOGGER.debug("No state file at %s, starting empty", path)
        return SyncState()

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, JSONDecodeError) as exc:
        raise StateCorrupt(f"Could not read state file {path}: {exc}") from exc

    state = _state_from_payload(payload, path)
    LOGGER.debug("Loaded %s records from %s", len(state.pulled), path)
    return state


def save_state(state: SyncState, output_dir: Path) -> None:
    """Atomically overwrite the state file for output_dir."""
    path = state_path(output_dir)
    content = json.dumps(_state_to_payload(state), indent=2, sort_keys=True) + "\n"

    tmp_name: str | None = None
    replaced = False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f"{STATE_FILENAME}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, _new_file_mode())
        os.replace(tmp_name, path)
        replaced = True
    except OSError as exc:
        raise StateWriteError(f"Could not write state file {path}: {exc}") from exc
    finally:
        if not replaced and tmp_name is not None and os.path.exists(tmp_name):
            os.remove(tmp_name)

    LOGGER.debug("Saved %s records to %s", len(state.pulled), path)


def _new_file_mode() -> int:
    # mkstemp creates 0600 files; match what a plain open() would give under the umask.
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class JsonStateStore:
    """Binds load/save to one archive directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    @property
    def path(self) -> Path:
        return state_path(self.output_dir)

    def load(self) -> SyncState:
        return load_state(self.output_dir)

    def save(self, state: SyncState) -> None:
        save_state(state, self.output_dir)


def _state_to_payload(state: SyncState) -> dict[str, Any]:
    return {
        "pulled": {
            key: {
                "local_path": record.local_path,
                "pulled_at": record.pulled_at.astimezone(UTC).isoformat(),
            }
            for key, record in state.pulled.items()
        }
    }


def _state_from_payload(payload: Any, path: Path) -> SyncState:
    if not isinstance(payload, dict) or not isinstance(payload.get("pulled", {}), dict):
        raise StateCorrupt(f"Unexpected state file shape in {path}")

    pulled: dict[str, SyncRecord] = {}
    for key, entry in payload.get("pulled", {}).items():
        try:
            ArticleIdentity.parse(key)
        except ValueError as exc:
            raise StateCorrupt(f"Malformed article key {key!r} in {path}") from exc
        if not isinstance(entry, dict) or not isinstance(entry.get("local_path"), str):
            raise StateCorrupt(f"Malformed record for {key!r} in {path}")
        try:
            pulled_at = datetime.fromisoformat(str(entry.get("pulled_at")).replace("Z", "+00:00"))
        except ValueError as exc:
            raise StateCorrupt(f"Bad pulled_at for {key!r} in {path}") from exc
        if pulled_at.tzinfo is None:
            pulled_at = pulled_at.replace(tzinfo=UTC)
        pulled[key] = SyncRecord(local_path=entry["local_path"], pulled_at=pulled_at)

    return SyncState(pulled=pulled)
