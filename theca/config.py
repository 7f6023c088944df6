# -*- coding: utf-8 -*-
"""Configuration for theca.

Process-wide defaults (profile folder, default profile name, KDF costs) are
resolved once at startup into a :class:`Settings` value and passed
explicitly into the core. Nothing here is consulted by the core itself.

Profile folder precedence:
- ``--profiles-folder``
- ``THECA_PROFILE_FOLDER``
- ``~/.theca/`` (or the path written inside ``~/.theca`` when it is a file)
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional
import json
import os

from .crypto import DEFAULT_KDF_PARAMS, KdfParams

APP_NAME = "theca"

DEFAULT_CONFIG: Dict[str, object] = {
    "default_profile": "default",
    "kdf": {
        "time_cost": DEFAULT_KDF_PARAMS.time_cost,
        "memory_cost": DEFAULT_KDF_PARAMS.memory_cost,
        "parallelism": DEFAULT_KDF_PARAMS.parallelism,
    },
}


# ---------------------------------------------------------------------
# Config file (JSON on disk)
# ---------------------------------------------------------------------

def _config_dir() -> Path:
    """Return the config directory path for this platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME


def _config_path() -> Path:
    return _config_dir() / "config.json"


def load_config() -> Dict[str, object]:
    """Load the merged configuration (defaults + file)."""
    merged = json.loads(json.dumps(DEFAULT_CONFIG))
    path = _config_path()
    if not path.exists():
        return merged
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    merged.update(data)
    return merged


# ---------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------

def find_profile_folder(folder: Optional[str] = None) -> Path:
    """Resolve the folder holding profile files."""
    if folder:
        return Path(folder).expanduser()
    if env_folder := os.environ.get("THECA_PROFILE_FOLDER"):
        return Path(env_folder).expanduser()
    default = Path.home() / ".theca"
    if default.is_file():
        target = default.read_text(encoding="utf-8").strip()
        if not target:
            raise ValueError(
                "~/.theca is a file but is empty. It should contain a path to the profile directory."
            )
        return Path(target).expanduser()
    return default


def resolve_passphrase(
    explicit: Optional[str],
    prompt: Callable[[], str],
) -> bytes:
    """Return the passphrase from the flag, ``THECA_KEY`` or *prompt*, in that order."""
    if explicit is not None:
        value = explicit
    elif (env_key := os.environ.get("THECA_KEY")) is not None:
        value = env_key
    else:
        value = prompt()
    return value.encode("utf-8")


@dataclass(frozen=True)
class Settings:
    profiles_folder: Path
    default_profile: str
    kdf_params: KdfParams


def load_settings(profiles_folder: Optional[str] = None) -> Settings:
    """Build the process-wide settings once, at startup."""
    cfg = load_config()
    kdf = cfg.get("kdf") or {}
    if not isinstance(kdf, dict):
        raise ValueError("config 'kdf' must be an object")
    params = KdfParams(
        time_cost=kdf.get("time_cost", DEFAULT_KDF_PARAMS.time_cost),
        memory_cost=kdf.get("memory_cost", DEFAULT_KDF_PARAMS.memory_cost),
        parallelism=kdf.get("parallelism", DEFAULT_KDF_PARAMS.parallelism),
    ).validate()
    return Settings(
        profiles_folder=find_profile_folder(profiles_folder),
        default_profile=str(cfg.get("default_profile") or "default"),
        kdf_params=params,
    )
