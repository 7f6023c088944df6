# -*- coding: utf-8 -*-
"""Crypto helpers for theca profiles.

This module encapsulates *stateless* cryptographic helpers: Argon2id key
derivation and AES-256-GCM sealing. It does **not** perform any file I/O and
knows nothing about the profile document.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import secrets

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationError, KeyDerivationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

KEY_LEN = 32
SALT_LEN = 16
MIN_SALT_LEN = 8
NONCE_LEN = 12

MAX_TIME_COST = 10
MAX_MEMORY_COST = 512 * 1024  # KiB
MAX_PARALLELISM = 16


# ---------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters, stored next to the salt in every envelope."""

    time_cost: int
    memory_cost: int  # KiB
    parallelism: int

    def validate(self) -> "KdfParams":
        """Raise KeyDerivationError unless every parameter is in range."""
        for name in ("time_cost", "memory_cost", "parallelism"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise KeyDerivationError(f"{name} must be an integer, got {value!r}")
        if not 1 <= self.time_cost <= MAX_TIME_COST:
            raise KeyDerivationError(f"time_cost {self.time_cost} out of range 1..{MAX_TIME_COST}")
        if not 1 <= self.parallelism <= MAX_PARALLELISM:
            raise KeyDerivationError(f"parallelism {self.parallelism} out of range 1..{MAX_PARALLELISM}")
        if not 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST:
            raise KeyDerivationError(
                f"memory_cost {self.memory_cost} out of range {8 * self.parallelism}..{MAX_MEMORY_COST}"
            )
        return self


DEFAULT_KDF_PARAMS = KdfParams(time_cost=3, memory_cost=65_536, parallelism=4)


# ---------------------------------------------------------------------
# KDF / AEAD helpers
# ---------------------------------------------------------------------

def new_salt() -> bytes:
    return secrets.token_bytes(SALT_LEN)


def derive_key(passphrase: bytes, salt: bytes, params: KdfParams = DEFAULT_KDF_PARAMS) -> bytes:
    """Derive a 32-byte key from *passphrase* and *salt* using Argon2id."""
    if len(salt) < MIN_SALT_LEN:
        raise KeyDerivationError(f"salt must be at least {MIN_SALT_LEN} bytes, got {len(salt)}")
    params.validate()
    logger.debug(
        "argon2id: t=%d m=%dKiB p=%d",
        params.time_cost, params.memory_cost, params.parallelism,
    )
    try:
        return hash_secret_raw(
            secret=passphrase,
            salt=salt,
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=KEY_LEN,
            type=Type.ID,
        )
    except HashingError as exc:
        raise KeyDerivationError(str(exc)) from exc


def aesgcm_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Encrypt *plaintext* with AES-GCM under a fresh nonce; return (nonce, ciphertext)."""
    nonce = secrets.token_bytes(NONCE_LEN)
    ct = AESGCM(key).encrypt(nonce, plaintext, aad)
    return nonce, ct


def aesgcm_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    """Decrypt AES-GCM *ciphertext* with *nonce*; return plaintext or raise AuthenticationError."""
    if len(nonce) != NONCE_LEN:
        raise AuthenticationError(f"nonce must be {NONCE_LEN} bytes")
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, aad)
    except InvalidTag as exc:
        raise AuthenticationError("authentication tag mismatch") from exc
