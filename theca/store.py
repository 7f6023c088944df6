# -*- coding: utf-8 -*-
"""Profile files on disk: atomic save, load and discovery.

One profile is one file, ``<folder>/<name>.yaml``. Saves go through a
temporary file in the same directory followed by ``os.replace``, so
readers only ever see the old or the new file in full. There is no file
locking: two processes saving the same profile race, and the last writer
wins.
"""
from __future__ import annotations

from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import List, Optional, Tuple
import logging
import os

from .container import KeyProvider, is_encrypted, pack, unpack
from .crypto import DEFAULT_KDF_PARAMS, KdfParams
from .errors import IncompatibleLegacyFormat, ProfileIOError, ProfileNotFound
from .models import Profile

logger = logging.getLogger(__name__)

PROFILE_EXT = ".yaml"
LEGACY_EXT = ".json"


# ---------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------

def profile_path(folder: Path, name: str) -> Path:
    """Return the file path for profile *name* inside *folder*."""
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise ValueError(f"invalid profile name '{name}'")
    return Path(folder) / f"{name}{PROFILE_EXT}"


def exists(path: Path) -> bool:
    return Path(path).is_file()


def list_profiles(folder: Path) -> List[Tuple[str, bool]]:
    """Return sorted (name, encrypted) pairs for the profiles in *folder*."""
    folder = Path(folder)
    if not folder.is_dir():
        return []
    found = []
    try:
        for path in sorted(folder.glob(f"*{PROFILE_EXT}")):
            if path.is_file():
                found.append((path.stem, is_encrypted(path.read_bytes())))
    except OSError as exc:
        raise ProfileIOError(folder, "list", exc) from exc
    return found


# ---------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------

def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise ProfileNotFound(path) from exc
    except OSError as exc:
        raise ProfileIOError(path, "read", exc) from exc


def load(path: Path, key_provider: Optional[KeyProvider] = None) -> Profile:
    """Read and unpack the profile stored at *path*."""
    path = Path(path)
    legacy = path.with_suffix(LEGACY_EXT)
    try:
        exists = path.exists()
        is_file = exists and path.is_file()
        legacy_found = not exists and legacy.is_file()
    except OSError as exc:
        raise ProfileIOError(path, "read", exc) from exc
    if not exists:
        if legacy_found:
            raise IncompatibleLegacyFormat(f"found {legacy}")
        raise ProfileNotFound(path)
    if not is_file:
        raise ProfileIOError(path, "read", OSError(f"{path} is not a file"))
    data = _read(path)
    logger.debug("loaded %d bytes from %s", len(data), path)
    return unpack(data, key_provider, name=path.stem)


def save(
    path: Path,
    profile: Profile,
    passphrase: Optional[bytes] = None,
    params: KdfParams = DEFAULT_KDF_PARAMS,
) -> None:
    """Pack *profile* and atomically replace the file at *path* with it."""
    path = Path(path)
    data = pack(profile, passphrase, params)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ProfileIOError(path.parent, "create directory", exc) from exc

    tmp = None
    try:
        tmp = NamedTemporaryFile(
            "wb", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
        )
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp.close()
        os.replace(tmp.name, path)
    except OSError as exc:
        raise ProfileIOError(path, "write", exc) from exc
    finally:
        if tmp is not None:
            tmp.close()
            if os.path.exists(tmp.name):
                try:
                    os.unlink(tmp.name)
                except OSError:
                    logger.warning("could not remove temporary file %s", tmp.name)
    logger.debug("saved %s (%d bytes, encrypted=%s)", path, len(data), profile.encrypted)
