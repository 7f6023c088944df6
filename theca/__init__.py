# -*- coding: utf-8 -*-
"""theca package.

Modules:
    crypto:     Argon2id key derivation and AES-GCM sealing.
    codec:      YAML profile document (encode/decode, legacy detection).
    container:  Plaintext or encrypted on-disk envelope.
    store:      Atomic profile file I/O.
    logic:      Note collection engine over one open profile.
    migrate:    Manual conversion of theca 1.x JSON profiles.
    cli:        Typer-based command line interface.
"""

__version__ = "2.0.0"

__all__ = ["crypto", "codec", "container", "store", "logic", "migrate", "cli"]
