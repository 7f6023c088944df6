# -*- coding: utf-8 -*-
"""Manual migration of theca 1.x JSON profiles.

Only run on request (``theca migrate-legacy``); opening a legacy profile
never converts it.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

from . import store
from .errors import FormatError, ProfileIOError, ProfileNotFound
from .models import Note, Profile, Status

logger = logging.getLogger(__name__)

LEGACY_DATEFMT = "%Y-%m-%d %H:%M:%S %z"
_LEGACY_STATUS = {"": Status.NONE, "Blank": Status.NONE, "Started": Status.STARTED, "Urgent": Status.URGENT}


def _legacy_timestamp(value: Any, note_id: Any) -> datetime:
    if not isinstance(value, str):
        raise FormatError(f"note {note_id}: last_touched must be a string")
    for parse in (lambda v: datetime.strptime(v, LEGACY_DATEFMT), datetime.fromisoformat):
        try:
            ts = parse(value)
        except ValueError:
            continue
        if ts.tzinfo is not None:
            return ts
    raise FormatError(f"note {note_id}: unreadable last_touched {value!r}")


def _legacy_note(raw: Dict[str, Any]) -> Note:
    note_id = raw.get("id")
    if not isinstance(note_id, int) or isinstance(note_id, bool) or note_id < 1:
        raise FormatError(f"legacy note has invalid id {note_id!r}")
    status = raw.get("status", "")
    if status not in _LEGACY_STATUS:
        raise FormatError(f"note {note_id}: status {status!r} has no equivalent")
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise FormatError(f"note {note_id}: title must be a non-empty string")
    body = raw.get("body", "")
    if not isinstance(body, str):
        raise FormatError(f"note {note_id}: body must be a string")
    return Note(
        id=note_id,
        title=title.replace("\n", ""),
        body=body,
        status=_LEGACY_STATUS[status],
        last_touched=_legacy_timestamp(raw.get("last_touched"), note_id),
    )


def convert(text: str, name: str) -> Profile:
    """Turn the text of a plaintext theca 1.x profile into a Profile."""
    try:
        doc = json.loads(text)
    except ValueError as exc:
        raise FormatError("file is not plaintext JSON; encrypted legacy profiles cannot be migrated") from exc
    if not isinstance(doc, dict) or not isinstance(doc.get("notes"), list):
        raise FormatError("not a theca 1.x profile")
    if doc.get("encrypted"):
        raise FormatError("encrypted legacy profiles cannot be migrated")

    profile = Profile(name=name)
    seen = set()
    for raw in doc["notes"]:
        if not isinstance(raw, dict):
            raise FormatError("legacy note must be an object")
        note = _legacy_note(raw)
        if note.id in seen:
            raise FormatError(f"duplicate note id {note.id}")
        seen.add(note.id)
        profile.notes.append(note)
    profile.last_id = max(seen, default=0)
    return profile


def migrate(source: Path, target: Optional[Path] = None, force: bool = False) -> Path:
    """Convert *source* (``<name>.json``) into a modern profile next to it."""
    source = Path(source)
    target = Path(target) if target else source.with_suffix(store.PROFILE_EXT)
    if store.exists(target) and not force:
        raise FileExistsError(f"{target} already exists; pass --force to overwrite it")
    try:
        raw = source.read_bytes()
    except FileNotFoundError as exc:
        raise ProfileNotFound(source) from exc
    except OSError as exc:
        raise ProfileIOError(source, "read", exc) from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError("encrypted legacy profiles cannot be migrated") from exc

    profile = convert(text, target.stem)
    store.save(target, profile)
    logger.info("migrated %s -> %s (%d notes)", source, target, len(profile.notes))
    return target
