"""Tests for the on-disk envelope: plaintext YAML or sealed base64."""

import base64

import pytest

import theca.container as container
from theca.codec import encode
from theca.container import MAGIC, _seal, is_encrypted, pack, unpack
from theca.errors import FormatError, WrongKeyOrCorruptData
from theca.models import Profile

PASSWORD = b"correct horse"


def _key(value=PASSWORD):
    return lambda: value


@pytest.fixture
def encrypted_profile(sample_profile):
    sample_profile.encrypted = True
    return sample_profile


# ---------------------------------------------------------------------------
# Plaintext profiles
# ---------------------------------------------------------------------------

class TestPlaintext:

    def test_stored_as_yaml(self, sample_profile):
        data = pack(sample_profile)
        assert data.decode("utf-8") == encode(sample_profile)
        assert not is_encrypted(data)

    def test_round_trip(self, sample_profile):
        assert unpack(pack(sample_profile), name="sample") == sample_profile

    def test_key_provider_not_consulted(self, sample_profile):
        def provider():
            raise AssertionError("no key needed for a plaintext profile")

        assert unpack(pack(sample_profile), provider, name="sample") == sample_profile

    def test_empty_file(self):
        with pytest.raises(FormatError):
            unpack(b"")
        with pytest.raises(FormatError):
            unpack(b"\n\n")

    def test_plaintext_claiming_encrypted(self, encrypted_profile):
        data = encode(encrypted_profile).encode("utf-8")
        with pytest.raises(FormatError, match="claims"):
            unpack(data, _key())


# ---------------------------------------------------------------------------
# Encrypted profiles
# ---------------------------------------------------------------------------

class TestEncrypted:

    def test_round_trip(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        assert is_encrypted(data)
        assert unpack(data, _key(), name="sample") == encrypted_profile

    def test_armor_is_one_base64_line(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert base64.b64decode(data.strip(), validate=True).startswith(MAGIC)

    def test_no_plaintext_leaks(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        blob = base64.b64decode(data)
        for note in encrypted_profile.notes:
            assert note.title.encode("utf-8") not in blob

    def test_fresh_salt_and_nonce_per_save(self, encrypted_profile, fast_kdf):
        first = pack(encrypted_profile, PASSWORD, fast_kdf)
        salt, nonce = encrypted_profile.salt, encrypted_profile.nonce
        second = pack(encrypted_profile, PASSWORD, fast_kdf)
        assert first != second
        assert encrypted_profile.salt != salt
        assert encrypted_profile.nonce != nonce

    def test_unpack_records_salt_and_nonce(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        loaded = unpack(data, _key())
        assert loaded.salt == encrypted_profile.salt
        assert loaded.nonce == encrypted_profile.nonce

    def test_wrong_key(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        with pytest.raises(WrongKeyOrCorruptData):
            unpack(data, _key(b"incorrect horse"))

    def test_empty_passphrase_is_a_key_like_any_other(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, b"", fast_kdf)
        assert unpack(data, _key(b"")) == encrypted_profile
        with pytest.raises(WrongKeyOrCorruptData):
            unpack(data, _key(b" "))

    def test_pack_without_passphrase(self, encrypted_profile):
        with pytest.raises(ValueError):
            pack(encrypted_profile)

    def test_unpack_without_provider(self, encrypted_profile, fast_kdf):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        with pytest.raises(ValueError):
            unpack(data)

    def test_every_tampered_byte_is_detected(self, encrypted_profile, fast_kdf, monkeypatch):
        data = pack(encrypted_profile, PASSWORD, fast_kdf)
        real_derive = container.derive_key
        # tampered KDF headers must still fail, without paying for large memory costs
        monkeypatch.setattr(container, "derive_key", lambda pw, salt, params: real_derive(pw, salt, fast_kdf))

        for i in range(len(data)):
            tampered = bytearray(data)
            tampered[i] ^= 0x01
            with pytest.raises(WrongKeyOrCorruptData):
                unpack(bytes(tampered), _key())

    @pytest.mark.parametrize("data", [
        b"TCA",
        b"not base64 at all\n",
        base64.b64encode(b"XXXX" + bytes(40)) + b"\n",
        base64.b64encode(MAGIC + bytes(6)) + b"\n",
    ])
    def test_garbage_envelope(self, data):
        assert is_encrypted(data)
        with pytest.raises(WrongKeyOrCorruptData):
            unpack(data, _key())

    def test_envelope_checked_before_asking_for_key(self):
        def provider():
            raise AssertionError("key requested for an unreadable envelope")

        with pytest.raises(WrongKeyOrCorruptData):
            unpack(b"bm90IGEgdGhlY2EgZmlsZQ==\n", provider)

    def test_sealed_non_utf8(self, fast_kdf):
        _, _, data = _seal(b"\xff\xfe\xfd", PASSWORD, fast_kdf)
        with pytest.raises(FormatError):
            unpack(data, _key())

    def test_sealed_garbage_yaml(self, fast_kdf):
        _, _, data = _seal(b"notes: [\n", PASSWORD, fast_kdf)
        with pytest.raises(FormatError):
            unpack(data, _key())

    def test_sealed_plaintext_profile(self, fast_kdf):
        text = encode(Profile(name="p")).encode("utf-8")
        _, _, data = _seal(text, PASSWORD, fast_kdf)
        with pytest.raises(FormatError, match="claims"):
            unpack(data, _key())


class TestSniff:

    @pytest.mark.parametrize("data", [
        b"theca: 2\nencrypted: false\nnotes: []\n",
        b'{"encrypted": false, "notes": []}',
        b'{"encrypted":false,"notes":[]}',
    ])
    def test_documents_are_plaintext(self, data):
        assert not is_encrypted(data)

    @pytest.mark.parametrize("data", [b"\xff\x00\x01", b"QUJDRA==\n"])
    def test_other_data_is_encrypted(self, data):
        assert is_encrypted(data)
