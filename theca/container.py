# -*- coding: utf-8 -*-
"""On-disk envelope for profiles.

A plaintext profile is stored as the codec's YAML text. An encrypted
profile is stored as a single line of base64 text wrapping::

    MAGIC | time_cost u32 | memory_cost u32 | parallelism u8 | salt_len u8
          | salt | nonce | AES-GCM ciphertext + tag

The header up to and including the salt is the associated data and GCM
authenticates the nonce, so any change to the stored KDF parameters, salt
or nonce fails authentication just like a change to the ciphertext does.
"""
from __future__ import annotations

from typing import Callable, Optional, Tuple
import base64
import binascii
import logging
import struct

from .codec import decode, encode
from .crypto import (
    DEFAULT_KDF_PARAMS,
    MIN_SALT_LEN,
    NONCE_LEN,
    KdfParams,
    aesgcm_decrypt,
    aesgcm_encrypt,
    derive_key,
    new_salt,
)
from .errors import AuthenticationError, FormatError, KeyDerivationError, WrongKeyOrCorruptData
from .models import Profile

logger = logging.getLogger(__name__)

KeyProvider = Callable[[], bytes]

MAGIC = b"TCA\x02"
MAX_SALT_LEN = 64
TAG_LEN = 16
_HEADER = struct.Struct(">4sIIBB")


# ---------------------------------------------------------------------
# Sniffing
# ---------------------------------------------------------------------

def is_encrypted(data: bytes) -> bool:
    """Return True when *data* should be treated as an encrypted envelope.

    Plaintext documents are YAML (or legacy JSON) mappings and always contain
    a ``": "`` or ``'":'`` key separator. Neither sequence can occur in
    base64 text, nor be produced by changing a single byte of it.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return ": " not in text and '":' not in text


# ---------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------

def _seal(plaintext: bytes, passphrase: bytes, params: KdfParams) -> Tuple[bytes, bytes, bytes]:
    salt = new_salt()
    key = derive_key(passphrase, salt, params)
    header = _HEADER.pack(MAGIC, params.time_cost, params.memory_cost, params.parallelism, len(salt)) + salt
    nonce, ct = aesgcm_encrypt(key, plaintext, aad=header)
    blob = header + nonce + ct
    return salt, nonce, base64.b64encode(blob) + b"\n"


def _parse_envelope(data: bytes) -> Tuple[bytes, KdfParams, bytes, bytes, bytes]:
    """Split an armored envelope into (header, params, salt, nonce, ciphertext)."""
    try:
        text = data.decode("ascii")
        if text.endswith("\n"):
            text = text[:-1]
        blob = base64.b64decode(text, validate=True)
    except (UnicodeDecodeError, binascii.Error) as exc:
        raise WrongKeyOrCorruptData("corrupt data: encrypted profile is not valid base64") from exc
    # reject non-canonical encodings that differ only in unused bits
    if base64.b64encode(blob).decode("ascii") != text:
        raise WrongKeyOrCorruptData("corrupt data: encrypted profile is not valid base64")

    if len(blob) < _HEADER.size:
        raise WrongKeyOrCorruptData("corrupt data: encrypted profile is truncated")
    magic, time_cost, memory_cost, parallelism, salt_len = _HEADER.unpack_from(blob)
    if magic != MAGIC:
        raise WrongKeyOrCorruptData("corrupt data: unrecognized encrypted profile header")
    if not MIN_SALT_LEN <= salt_len <= MAX_SALT_LEN:
        raise WrongKeyOrCorruptData(f"corrupt data: invalid salt length {salt_len}")
    params = KdfParams(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
    try:
        params.validate()
    except KeyDerivationError as exc:
        raise WrongKeyOrCorruptData(f"corrupt data: {exc}") from exc

    header_len = _HEADER.size + salt_len
    if len(blob) < header_len + NONCE_LEN + TAG_LEN:
        raise WrongKeyOrCorruptData("corrupt data: encrypted profile is truncated")
    header = blob[:header_len]
    salt = blob[_HEADER.size:header_len]
    nonce = blob[header_len:header_len + NONCE_LEN]
    ciphertext = blob[header_len + NONCE_LEN:]
    return header, params, salt, nonce, ciphertext


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def pack(
    profile: Profile,
    passphrase: Optional[bytes] = None,
    params: KdfParams = DEFAULT_KDF_PARAMS,
) -> bytes:
    """Serialize *profile* for storage, encrypting it when ``profile.encrypted``."""
    text = encode(profile).encode("utf-8")
    if not profile.encrypted:
        return text
    if passphrase is None:
        raise ValueError(f"profile '{profile.name}' is encrypted but no key was provided")
    salt, nonce, armored = _seal(text, passphrase, params)
    profile.salt, profile.nonce = salt, nonce
    logger.debug("sealed profile %r: %d plaintext bytes -> %d armored bytes", profile.name, len(text), len(armored))
    return armored


def unpack(data: bytes, key_provider: Optional[KeyProvider] = None, name: str = "") -> Profile:
    """Rebuild a Profile from stored bytes.

    Raises WrongKeyOrCorruptData when an encrypted envelope cannot be opened
    and FormatError when the (decrypted) document is malformed.
    """
    if not data.strip():
        raise FormatError("empty profile file")

    if not is_encrypted(data):
        profile = decode(data.decode("utf-8"), name=name)
        if profile.encrypted:
            raise FormatError("plaintext profile claims to be encrypted")
        return profile

    header, params, salt, nonce, ciphertext = _parse_envelope(data)
    if key_provider is None:
        raise ValueError(f"profile '{name}' is encrypted but no key was provided")
    key = derive_key(key_provider(), salt, params)
    try:
        plaintext = aesgcm_decrypt(key, nonce, ciphertext, aad=header)
    except AuthenticationError as exc:
        raise WrongKeyOrCorruptData() from exc

    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError("decrypted profile is not valid UTF-8") from exc
    profile = decode(text, name=name)
    if not profile.encrypted:
        raise FormatError("encrypted profile claims to be plaintext")
    profile.salt, profile.nonce = salt, nonce
    logger.debug("opened encrypted profile %r (%d notes)", name, len(profile.notes))
    return profile
