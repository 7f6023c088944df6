# -*- coding: utf-8 -*-
"""YAML document codec for profiles.

The canonical document is a YAML mapping tagged with ``theca: 2``. Profiles
written by theca 1.x (a JSON object without the version tag) are detected
after parsing and rejected with :class:`IncompatibleLegacyFormat`; they are never
converted on the fly.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, NoReturn, Set
import json
import logging

import yaml

from .errors import FormatError, IncompatibleLegacyFormat
from .models import Note, Profile, Status

logger = logging.getLogger(__name__)

FORMAT_VERSION = 2
LEGACY_VERSION = 1

_NOTE_FIELDS = ("id", "title", "status", "body", "last_touched")


# ---------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------

def note_to_dict(note: Note) -> Dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "status": note.status.value,
        "body": note.body,
        "last_touched": note.last_touched.isoformat(),
    }


def encode(profile: Profile) -> str:
    """Serialize *profile* (metadata + notes) to the canonical YAML text."""
    doc = {
        "theca": FORMAT_VERSION,
        "encrypted": profile.encrypted,
        "last_id": profile.next_id() - 1,
        "notes": [note_to_dict(n) for n in profile.notes],
    }
    return yaml.safe_dump(doc, sort_keys=False, allow_unicode=True, default_flow_style=False)


# ---------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_timestamp(value: Any, where: str) -> datetime:
    # safe_load turns unquoted timestamps into datetimes already
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value)
        except ValueError as exc:
            raise FormatError(f"{where}: invalid last_touched {value!r}") from exc
    else:
        raise FormatError(f"{where}: last_touched must be a timestamp string")
    if ts.tzinfo is None or ts.utcoffset() is None:
        raise FormatError(f"{where}: last_touched {value!r} has no UTC offset")
    return ts


def _decode_note(raw: Any, index: int) -> Note:
    where = f"note #{index}"
    if not isinstance(raw, dict):
        raise FormatError(f"{where}: expected a mapping")
    missing = [f for f in _NOTE_FIELDS if f not in raw]
    if missing:
        raise FormatError(f"{where}: missing field(s) {', '.join(missing)}")

    note_id = raw["id"]
    if not _is_int(note_id) or note_id < 1:
        raise FormatError(f"{where}: id must be a positive integer, got {note_id!r}")
    where = f"note {note_id}"
    title = raw["title"]
    if not isinstance(title, str) or not title.strip():
        raise FormatError(f"{where}: title must be a non-empty string")
    body = raw["body"]
    if not isinstance(body, str):
        raise FormatError(f"{where}: body must be a string")
    try:
        status = Status(raw["status"])
    except ValueError as exc:
        raise FormatError(f"{where}: unrecognized status {raw['status']!r}") from exc

    return Note(
        id=note_id,
        title=title,
        body=body,
        status=status,
        last_touched=_parse_timestamp(raw["last_touched"], where),
    )


def _check_legacy(doc: Dict[str, Any]) -> None:
    version = doc.get("theca")
    if version is None:
        if "notes" in doc or "encrypted" in doc:
            raise IncompatibleLegacyFormat("no format version tag")
        raise FormatError("not a theca profile: missing 'theca' version tag")
    if version == LEGACY_VERSION:
        raise IncompatibleLegacyFormat(f"format version {version}")
    if version != FORMAT_VERSION:
        raise FormatError(f"unsupported profile format version {version!r}")


def _sniff_legacy_json(text: str, exc: yaml.YAMLError) -> NoReturn:
    """Diagnose JSON that YAML cannot read (e.g. compact 1.x files)."""
    try:
        doc = json.loads(text)
    except ValueError:
        doc = None
    if isinstance(doc, dict):
        _check_legacy(doc)
    raise FormatError(f"invalid YAML: {exc}") from exc


def decode(text: str, name: str = "") -> Profile:
    """Parse *text* into a Profile, or raise FormatError."""
    if not text.strip():
        raise FormatError("empty profile document")
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        _sniff_legacy_json(text, exc)
    if not isinstance(doc, dict):
        raise FormatError("profile document must be a mapping")
    _check_legacy(doc)

    encrypted = doc.get("encrypted")
    if not isinstance(encrypted, bool):
        raise FormatError("'encrypted' must be true or false")
    raw_notes = doc.get("notes")
    if not isinstance(raw_notes, list):
        raise FormatError("'notes' must be a list")
    last_id = doc.get("last_id", 0)
    if not _is_int(last_id) or last_id < 0:
        raise FormatError(f"'last_id' must be a non-negative integer, got {last_id!r}")

    notes: List[Note] = []
    seen: Set[int] = set()
    for index, raw in enumerate(raw_notes, start=1):
        note = _decode_note(raw, index)
        if note.id in seen:
            raise FormatError(f"duplicate note id {note.id}")
        seen.add(note.id)
        notes.append(note)

    profile = Profile(
        name=name,
        encrypted=encrypted,
        notes=notes,
        last_id=last_id,
    )
    logger.debug("decoded profile %r: %d notes, last_id=%d", name, len(notes), profile.last_id)
    return profile
