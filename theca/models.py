# -*- coding: utf-8 -*-
"""In-memory data model: notes, statuses and profiles."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Status(str, Enum):
    NONE = "None"
    STARTED = "Started"
    URGENT = "Urgent"

    @classmethod
    def parse(cls, value: str) -> "Status":
        """Case-insensitive lookup; ``""`` and ``"blank"`` mean no status."""
        key = value.strip().lower()
        if key in ("", "blank", "none"):
            return cls.NONE
        for status in cls:
            if status.value.lower() == key:
                return status
        raise ValueError(f"unknown status '{value}' (expected one of: none, started, urgent)")

    def __str__(self) -> str:
        return "" if self is Status.NONE else self.value


def now() -> datetime:
    """Local wall-clock time with its UTC offset."""
    return datetime.now().astimezone()


def clean_title(title: str) -> str:
    """Strip newlines from *title* and reject blank titles."""
    cleaned = title.replace("\r", "").replace("\n", "")
    if not cleaned.strip():
        raise ValueError("note title cannot be empty")
    return cleaned


@dataclass
class Note:
    id: int
    title: str
    body: str = ""
    status: Status = Status.NONE
    last_touched: datetime = field(default_factory=now)

    def copy(self) -> "Note":
        return replace(self)


@dataclass
class Profile:
    """A named collection of notes, persisted as one file.

    ``salt`` and ``nonce`` are only set for profiles that went through an
    encrypted envelope; they change on every save and do not take part in
    equality.
    """

    name: str
    encrypted: bool = False
    notes: List[Note] = field(default_factory=list)
    last_id: int = 0
    salt: Optional[bytes] = field(default=None, compare=False, repr=False)
    nonce: Optional[bytes] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.last_id = max(self.last_id, max((n.id for n in self.notes), default=0))

    def find(self, note_id: int) -> Optional[Note]:
        for note in self.notes:
            if note.id == note_id:
                return note
        return None

    def next_id(self) -> int:
        highest = max((n.id for n in self.notes), default=0)
        return max(self.last_id, highest) + 1
