"""Tests for profile files on disk."""

from pathlib import Path

import pytest

from theca import store
from theca.errors import IncompatibleLegacyFormat, ProfileIOError, ProfileNotFound
from theca.models import Profile

PASSWORD = b"pw"


class TestPaths:

    def test_profile_path(self, folder):
        assert store.profile_path(folder, "work") == folder / "work.yaml"

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b"])
    def test_invalid_names(self, folder, name):
        with pytest.raises(ValueError):
            store.profile_path(folder, name)


class TestLoadSave:

    def test_round_trip(self, folder, sample_profile):
        path = store.profile_path(folder, "sample")
        store.save(path, sample_profile)
        assert store.exists(path)
        assert store.load(path) == sample_profile

    def test_encrypted_round_trip(self, folder, sample_profile, fast_kdf):
        sample_profile.encrypted = True
        path = store.profile_path(folder, "sample")
        store.save(path, sample_profile, PASSWORD, fast_kdf)
        assert store.load(path, lambda: PASSWORD) == sample_profile

    def test_save_creates_folder(self, tmp_path):
        path = tmp_path / "a" / "b" / "p.yaml"
        store.save(path, Profile(name="p"))
        assert path.is_file()

    def test_missing(self, folder):
        with pytest.raises(ProfileNotFound):
            store.load(folder / "nope.yaml")

    def test_legacy_sibling_reported(self, folder):
        folder.mkdir()
        (folder / "old.json").write_text('{"encrypted": false, "notes": []}')
        with pytest.raises(IncompatibleLegacyFormat, match="old.json"):
            store.load(folder / "old.yaml")

    def test_directory_is_not_a_profile(self, folder):
        (folder / "dir.yaml").mkdir(parents=True)
        with pytest.raises(ProfileIOError):
            store.load(folder / "dir.yaml")

    def test_unreadable_folder(self, folder, monkeypatch):
        real_exists = Path.exists

        def exists(self, *args, **kwargs):
            if self.name == "locked.yaml":
                raise PermissionError(13, "Permission denied")
            return real_exists(self, *args, **kwargs)

        monkeypatch.setattr(Path, "exists", exists)
        with pytest.raises(ProfileIOError, match="Permission denied") as info:
            store.load(folder / "locked.yaml")
        assert info.value.operation == "read"

    def test_overwrite_leaves_no_temp_files(self, folder, sample_profile):
        path = store.profile_path(folder, "sample")
        store.save(path, sample_profile)
        sample_profile.notes.pop()
        store.save(path, sample_profile)
        assert [p.name for p in folder.iterdir()] == ["sample.yaml"]
        assert len(store.load(path).notes) == 2

    def test_failed_replace_keeps_old_file(self, folder, sample_profile, monkeypatch):
        path = store.profile_path(folder, "sample")
        store.save(path, sample_profile)
        before = path.read_bytes()

        def boom(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(store.os, "replace", boom)
        sample_profile.notes.clear()
        with pytest.raises(ProfileIOError, match="No space left"):
            store.save(path, sample_profile)

        assert path.read_bytes() == before
        assert [p.name for p in folder.iterdir()] == ["sample.yaml"]

    def test_failed_pack_writes_nothing(self, folder):
        path = store.profile_path(folder, "secret")
        with pytest.raises(ValueError):
            store.save(path, Profile(name="secret", encrypted=True))
        assert not folder.exists()


class TestListProfiles:

    def test_missing_folder(self, folder):
        assert store.list_profiles(folder) == []

    def test_lists_names_and_encryption(self, folder, fast_kdf):
        store.save(folder / "zeta.yaml", Profile(name="zeta"))
        store.save(folder / "alpha.yaml", Profile(name="alpha", encrypted=True), PASSWORD, fast_kdf)
        (folder / "old.json").write_text("{}")
        (folder / "notes.txt").write_text("hello")
        assert store.list_profiles(folder) == [("alpha", True), ("zeta", False)]
