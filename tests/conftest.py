"""
Shared pytest fixtures for theca tests.

Every test runs with its own HOME and XDG_CONFIG_HOME so nothing touches the
real ~/.theca, and with cheap Argon2 parameters so key derivation is fast.
"""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from theca.crypto import KdfParams
from theca.models import Note, Profile, Status

FAST_KDF = KdfParams(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point HOME and the config dir at tmp_path; drop theca env overrides."""
    for var in ("THECA_KEY", "THECA_PROFILE_FOLDER", "THECA_VERBOSE"):
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    return home


@pytest.fixture
def fast_kdf():
    return FAST_KDF


@pytest.fixture
def folder(tmp_path):
    """Profile folder (not created yet)."""
    return tmp_path / "profiles"


@pytest.fixture
def clock(monkeypatch):
    """Make note timestamps strictly increasing, one minute apart."""
    start = datetime(2026, 10, 18, 9, 0, tzinfo=timezone(timedelta(hours=2)))
    ticks = count()

    def fake_now():
        return start + timedelta(minutes=next(ticks))

    monkeypatch.setattr("theca.logic.now", fake_now)
    return fake_now


@pytest.fixture
def sample_profile():
    """A small profile with one note of each status."""
    tz = timezone(timedelta(hours=-5))
    return Profile(
        name="sample",
        notes=[
            Note(1, "foo bar", "", Status.NONE, datetime(2026, 1, 1, 8, 0, tzinfo=tz)),
            Note(2, "baz", "line one\nline two", Status.STARTED, datetime(2026, 1, 2, 8, 0, tzinfo=tz)),
            Note(4, "quux: colon", "ünïcode ✓", Status.URGENT, datetime(2026, 1, 3, 8, 0, 0, 123456, tzinfo=tz)),
        ],
        last_id=5,
    )
