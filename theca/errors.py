# -*- coding: utf-8 -*-
"""Error taxonomy for theca.

Every error the core raises derives from :class:`ThecaError` and carries an
``exit_code`` so the CLI boundary can map it to a distinct process status.
Full tracebacks go to an error log file while users see a clean message.
"""
from __future__ import annotations

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class ThecaError(Exception):
    """Base class for all theca errors."""

    exit_code = 1


# ---------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------

class NotFound(ThecaError, LookupError):
    """A profile or a note does not exist."""

    exit_code = 2


class ProfileNotFound(NotFound):
    def __init__(self, path: Path) -> None:
        super().__init__(f"{path} does not exist.")
        self.path = path


class NoteNotFound(NotFound):
    def __init__(self, note_id: int) -> None:
        super().__init__(f"note {note_id} doesn't exist")
        self.note_id = note_id


# ---------------------------------------------------------------------
# Data integrity
# ---------------------------------------------------------------------

class FormatError(ThecaError, ValueError):
    """The profile document is malformed."""

    exit_code = 3


class IncompatibleLegacyFormat(FormatError):
    """The document uses the theca 1.x JSON schema, which is not read anymore."""

    def __init__(self, detail: str = "") -> None:
        msg = "profile uses the legacy theca 1.x format and must be migrated manually"
        if detail:
            msg = f"{msg} ({detail})"
        msg += "; run `theca migrate-legacy <file.json>`"
        super().__init__(msg)


class AuthenticationError(ThecaError):
    """AEAD tag verification failed."""

    exit_code = 4


class WrongKeyOrCorruptData(AuthenticationError):
    """An encrypted profile could not be opened: bad passphrase or damaged file."""

    def __init__(self, msg: str = "decryption failed: wrong key or corrupt data") -> None:
        super().__init__(msg)


class KeyDerivationError(ThecaError):
    """Argon2 rejected the salt or cost parameters."""

    exit_code = 5


# ---------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------

class InvalidPattern(ThecaError, ValueError):
    exit_code = 6

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"regex error: {reason}.")
        self.pattern = pattern


class ProfileIOError(ThecaError):
    """Filesystem failure while reading or writing a profile."""

    exit_code = 7

    def __init__(self, path: Path, operation: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause.strerror or cause}" if isinstance(cause, OSError) else (f": {cause}" if cause else "")
        super().__init__(f"failed to {operation} {path}{detail}")
        self.path = path
        self.operation = operation


class ProfileClosed(ThecaError):
    exit_code = 8

    def __init__(self, name: str) -> None:
        super().__init__(f"profile '{name}' is closed")


# ---------------------------------------------------------------------
# Error log
# ---------------------------------------------------------------------

def _error_log_path() -> Path:
    """Resolve error log path, respecting THECA_PROFILE_FOLDER."""
    folder = os.environ.get("THECA_PROFILE_FOLDER")
    if folder:
        return Path(folder) / "theca-errors.log"
    default = Path.home() / ".theca"
    if default.is_file():
        return Path.home() / "theca-errors.log"
    return default / "theca-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
