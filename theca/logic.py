# -*- coding: utf-8 -*-
"""Application logic that composes the store and the note collection.

This module provides the public API used by the CLI. It does not contain any
terminal code. All side effects (profile file I/O) are explicit: nothing is
written until :meth:`OpenProfile.save` is called.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
import logging
import re

from . import store
from .container import KeyProvider
from .crypto import DEFAULT_KDF_PARAMS, KdfParams
from .errors import InvalidPattern, NoteNotFound, ProfileClosed
from .models import Note, Profile, Status, clean_title, now

logger = logging.getLogger(__name__)


@dataclass
class ProfileStats:
    name: str
    encrypted: bool
    notes: int
    statuses: "Counter[Status]"
    oldest: Optional[datetime]
    newest: Optional[datetime]


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------

def order_notes(
    notes: Iterable[Note],
    sort_by_date: bool = False,
    reverse: bool = False,
    limit: int = 0,
    status: Optional[Status] = None,
) -> List[Note]:
    """Sort, reverse, filter by *status*, then truncate to *limit* (0 = all)."""
    if limit < 0:
        raise ValueError("limit must be 0 (unlimited) or a positive number")
    if sort_by_date:
        ordered = sorted(notes, key=lambda n: (n.last_touched, n.id))
    else:
        ordered = sorted(notes, key=lambda n: n.id)
    if reverse:
        ordered.reverse()
    if status is not None:
        ordered = [n for n in ordered if n.status is status]
    if limit:
        ordered = ordered[:limit]
    return ordered


# ---------------------------------------------------------------------
# Open profile handle
# ---------------------------------------------------------------------

class OpenProfile:
    """One profile loaded in memory, from open until save or discard."""

    def __init__(
        self,
        profile: Profile,
        path: Path,
        passphrase: Optional[bytes] = None,
        kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
    ) -> None:
        self.profile = profile
        self.path = Path(path)
        self._passphrase = passphrase
        self.kdf_params = kdf_params
        self.closed = False

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<OpenProfile {self.name!r} {state} notes={len(self.profile.notes)}>"

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def encrypted(self) -> bool:
        return self.profile.encrypted

    def _check_open(self) -> None:
        if self.closed:
            raise ProfileClosed(self.name)

    def _find(self, note_id: int) -> Note:
        self._check_open()
        note = self.profile.find(note_id)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    # -- reads ---------------------------------------------------------

    def get(self, note_id: int) -> Note:
        return self._find(note_id)

    def list_notes(
        self,
        sort_by_date: bool = False,
        reverse: bool = False,
        limit: int = 0,
        status: Optional[Status] = None,
    ) -> List[Note]:
        self._check_open()
        return order_notes(self.profile.notes, sort_by_date, reverse, limit, status)

    def search(
        self,
        pattern: str,
        in_body: bool = False,
        as_regex: bool = False,
        status: Optional[Status] = None,
        sort_by_date: bool = False,
        reverse: bool = False,
        limit: int = 0,
    ) -> List[Note]:
        """Return notes whose title (or body, with *in_body*) matches *pattern*."""
        self._check_open()
        if as_regex:
            try:
                regex = re.compile(pattern)
            except re.error as exc:
                raise InvalidPattern(pattern, str(exc)) from exc
            matches = lambda text: regex.search(text) is not None  # noqa: E731
        else:
            matches = lambda text: pattern in text  # noqa: E731
        found = [n for n in self.profile.notes if matches(n.body if in_body else n.title)]
        return order_notes(found, sort_by_date, reverse, limit, status)

    def stats(self) -> ProfileStats:
        self._check_open()
        notes = self.profile.notes
        stamps = [n.last_touched for n in notes]
        return ProfileStats(
            name=self.name,
            encrypted=self.encrypted,
            notes=len(notes),
            statuses=Counter(n.status for n in notes),
            oldest=min(stamps) if stamps else None,
            newest=max(stamps) if stamps else None,
        )

    # -- mutations -----------------------------------------------------

    def add(self, title: str, body: str = "", status: Status = Status.NONE) -> int:
        """Insert a new note and return its identifier."""
        self._check_open()
        note = Note(
            id=self.profile.next_id(),
            title=clean_title(title),
            body=body,
            status=status,
            last_touched=now(),
        )
        self.profile.notes.append(note)
        self.profile.last_id = note.id
        logger.debug("added note %d to %r", note.id, self.name)
        return note.id

    def edit(
        self,
        note_id: int,
        title: Optional[str] = None,
        body: Optional[str] = None,
        status: Optional[Status] = None,
    ) -> Note:
        """Change only the fields that are given; with none given, nothing changes."""
        note = self._find(note_id)
        if title is None and body is None and status is None:
            return note
        if title is not None:
            note.title = clean_title(title)
        if body is not None:
            note.body = body
        if status is not None:
            note.status = status
        note.last_touched = now()
        logger.debug("edited note %d in %r", note_id, self.name)
        return note

    def delete(self, note_ids: Iterable[int]) -> Tuple[List[int], List[int]]:
        """Delete every id that exists; return (deleted, not_found)."""
        self._check_open()
        wanted = set(note_ids)
        present = {n.id for n in self.profile.notes}
        deleted = sorted(wanted & present)
        not_found = sorted(wanted - present)
        self.profile.notes = [n for n in self.profile.notes if n.id not in wanted]
        logger.debug("deleted %s from %r, missing %s", deleted, self.name, not_found)
        return deleted, not_found

    def clear(self) -> int:
        """Remove every note; identifiers keep counting from where they were."""
        self._check_open()
        count = len(self.profile.notes)
        self.profile.last_id = self.profile.next_id() - 1
        self.profile.notes = []
        return count

    def encrypt(self, passphrase: bytes) -> None:
        """Switch to encrypted storage (or re-key) from the next save on."""
        self._check_open()
        self.profile.encrypted = True
        self._passphrase = passphrase

    def decrypt(self) -> None:
        self._check_open()
        self.profile.encrypted = False
        self._passphrase = None
        self.profile.salt = self.profile.nonce = None

    def transfer(self, note_id: int, dest: "OpenProfile") -> int:
        """Move a note to *dest*, persisting *dest* before this profile.

        A failure saving *dest* leaves both profiles as they were. A failure
        saving this profile afterwards leaves the note in both (on disk and in
        memory), never in neither.
        """
        note = self._find(note_id)
        dest._check_open()
        if dest is self or dest.path.resolve() == self.path.resolve():
            raise ValueError("cannot transfer a note from a profile to itself")

        last_id_before = dest.profile.last_id
        new_id = dest.add(note.title, note.body, note.status)
        try:
            dest._write()
        except Exception:
            dest.profile.notes = [n for n in dest.profile.notes if n.id != new_id]
            dest.profile.last_id = last_id_before
            raise

        position = self.profile.notes.index(note)
        del self.profile.notes[position]
        try:
            self._write()
        except Exception:
            self.profile.notes.insert(position, note)
            raise
        logger.debug("transferred %r:%d -> %r:%d", self.name, note_id, dest.name, new_id)
        return new_id

    # -- lifecycle -----------------------------------------------------

    def _write(self) -> None:
        store.save(self.path, self.profile, self._passphrase, self.kdf_params)

    def flush(self) -> None:
        """Persist the profile and keep the handle open."""
        self._check_open()
        self._write()

    def save(self) -> None:
        self.flush()
        self.closed = True

    def discard(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------

def open_profile(
    folder: Path,
    name: str,
    key_provider: Optional[KeyProvider] = None,
    kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
) -> OpenProfile:
    """Load profile *name* from *folder*."""
    return open_profile_path(store.profile_path(folder, name), key_provider, kdf_params)


def open_profile_path(
    path: Path,
    key_provider: Optional[KeyProvider] = None,
    kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
) -> OpenProfile:
    """Load the profile stored at *path*, remembering the passphrase for saving."""
    passphrase: List[bytes] = []

    def _remember() -> bytes:
        if key_provider is None:
            raise ValueError(f"profile at {path} is encrypted but no key was provided")
        passphrase.append(key_provider())
        return passphrase[-1]

    profile = store.load(path, _remember)
    logger.debug("opened %s (%d notes, encrypted=%s)", path, len(profile.notes), profile.encrypted)
    return OpenProfile(profile, path, passphrase[-1] if passphrase else None, kdf_params)


def new_profile(
    folder: Path,
    name: str,
    encrypted: bool = False,
    passphrase: Optional[bytes] = None,
    kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
    overwrite: bool = False,
) -> OpenProfile:
    """Create and save an empty profile; return it open."""
    path = store.profile_path(folder, name)
    if store.exists(path) and not overwrite:
        raise FileExistsError(f"profile {path} already exists")
    if encrypted and passphrase is None:
        raise ValueError("an encrypted profile needs a key")
    handle = OpenProfile(Profile(name=name, encrypted=encrypted), path, passphrase, kdf_params)
    handle.flush()
    logger.info("created profile %r at %s (encrypted=%s)", name, path, encrypted)
    return handle
