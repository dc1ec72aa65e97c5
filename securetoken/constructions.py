"""
securetoken/constructions.py -- Pluggable sealing primitives.

A Construction turns (header, nonce, plaintext) into ciphertext plus an
integrity tag and back. Tokener owns the token layout and freshness rules;
a Construction owns only the cryptography. Each construction claims a version
byte so tokens made by different constructions can coexist.

  version 1 -- AEAD (AES-GCM by default, or ChaCha20-Poly1305).
               Nonce is 12 bytes, tag is 16 bytes. The nonce is authenticated
               by the AEAD itself, so no separate associated data is passed.

  version 2 -- Encrypt-then-MAC. Two capability slots: a hash constructor for
               HMAC and a block cipher constructor run in CTR mode. Sub-keys
               for each slot are derived from the one secret with HKDF-SHA256.
               Nonce is one cipher block, tag is one full digest.

The old fixed-IV CFB layout (HMAC prepended to the plaintext, all-zero IV for
every message) is not supported. It is only safe under assumptions a
general-purpose library cannot enforce.

Factories (aead(), encrypt_then_mac()) are what callers pass to Tokener. They
take the raw key and run the key schedule eagerly, so a bad key fails at
construction and never inside seal() or unseal().
"""

from __future__ import annotations

import hashlib
import hmac
from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import partial

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, CipherAlgorithm, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from securetoken.errors import ConstructionError, TokenInvalid

# Bytes of the nonce taken by the little-endian issuance timestamp.
TIMESTAMP_SIZE = 8

# The random suffix must stay wide enough that two seals in the same
# nanosecond cannot plausibly collide.
MIN_RANDOM_SIZE = 4

AEAD_VERSION = 1
ETM_VERSION = 2

_ETM_INFO = b"securetoken etm v2"


class Construction(ABC):
    """Strategy interface for the cryptographic core of a token."""

    version: int
    nonce_size: int
    tag_size: int

    @abstractmethod
    def seal(self, header: bytes, nonce: bytes, plaintext: bytes) -> bytes:
        """Return ciphertext || tag for plaintext under nonce."""

    @abstractmethod
    def open(self, header: bytes, nonce: bytes, sealed: bytes) -> bytes:
        """Return the plaintext, or raise TokenInvalid if authentication fails."""

    @property
    def overhead(self) -> int:
        """Bytes a sealed token carries beyond the plaintext itself."""
        return 1 + self.nonce_size + self.tag_size


ConstructionFactory = Callable[[bytes], Construction]


# ---------------------------------------------------------------------------
# Version 1 -- AEAD
# ---------------------------------------------------------------------------


class AEADConstruction(Construction):
    """AES-GCM or ChaCha20-Poly1305 with a 96-bit nonce and 128-bit tag."""

    version = AEAD_VERSION
    nonce_size = 12
    tag_size = 16

    def __init__(self, key: bytes, cipher: type[AESGCM] | type[ChaCha20Poly1305] = AESGCM) -> None:
        try:
            self._aead = cipher(key)
        except (TypeError, ValueError) as exc:
            raise ConstructionError(f"{cipher.__name__} rejected the key: {exc}") from exc
        self.cipher_name = cipher.__name__

    def seal(self, header: bytes, nonce: bytes, plaintext: bytes) -> bytes:
        return self._aead.encrypt(nonce, plaintext, None)

    def open(self, header: bytes, nonce: bytes, sealed: bytes) -> bytes:
        try:
            return self._aead.decrypt(nonce, sealed, None)
        except InvalidTag:
            raise TokenInvalid("authentication failed") from None

    def __repr__(self) -> str:
        return f"AEADConstruction(cipher={self.cipher_name})"


def aead(cipher: type[AESGCM] | type[ChaCha20Poly1305] = AESGCM) -> ConstructionFactory:
    """Return a factory for the version 1 AEAD construction."""
    return partial(AEADConstruction, cipher=cipher)


# ---------------------------------------------------------------------------
# Version 2 -- Encrypt-then-MAC (hash slot + cipher slot)
# ---------------------------------------------------------------------------


class EncryptThenMacConstruction(Construction):
    """Block cipher in CTR mode followed by HMAC over version, nonce and ciphertext.

    hash_func is a hashlib-style constructor (hashlib.sha256, hashlib.sha1).
    It must not be an HMAC; the keyed wrapper is applied here.
    cipher_func builds a cryptography CipherAlgorithm from a key
    (algorithms.AES, algorithms.Camellia). Its block becomes the nonce, used
    as the initial CTR counter block.

    The whole nonce is the counter, so a message of k blocks consumes the
    counter values nonce .. nonce+k-1. Two tokens share keystream only if their
    nonces carry the same timestamp and random suffixes less than k apart.
    With the 8-byte suffix of a 16-byte block that chance is negligible for
    token-sized payloads, but the layout is not a substitute for unique nonces
    on long messages.
    """

    version = ETM_VERSION

    def __init__(
        self,
        key: bytes,
        hash_func: Callable = hashlib.sha256,
        cipher_func: Callable[[bytes], CipherAlgorithm] = algorithms.AES,
    ) -> None:
        if not isinstance(key, (bytes, bytearray)) or not key:
            raise ConstructionError("key must be a non-empty byte string")
        self._hash_func = hash_func
        self.tag_size = hash_func().digest_size

        okm = HKDF(
            algorithm=hashes.SHA256(),
            length=len(key) + self.tag_size,
            salt=None,
            info=_ETM_INFO,
        ).derive(bytes(key))
        self._mac_key = okm[len(key) :]
        try:
            self._algorithm = cipher_func(okm[: len(key)])
        except (TypeError, ValueError) as exc:
            raise ConstructionError(f"cipher rejected the key: {exc}") from exc

        self.nonce_size = self._algorithm.block_size // 8
        if self.nonce_size < TIMESTAMP_SIZE + MIN_RANDOM_SIZE:
            raise ConstructionError(
                f"{self._algorithm.name} has a {self.nonce_size}-byte block; "
                f"at least {TIMESTAMP_SIZE + MIN_RANDOM_SIZE} bytes are needed for a timestamped nonce"
            )

    def _mac(self, header: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
        mac = hmac.new(self._mac_key, header, self._hash_func)
        mac.update(nonce)
        mac.update(ciphertext)
        return mac.digest()

    def _ctr(self, nonce: bytes, data: bytes) -> bytes:
        # CTR is symmetric: the same keystream encrypts and decrypts.
        ctx = Cipher(self._algorithm, modes.CTR(nonce)).encryptor()
        return ctx.update(data) + ctx.finalize()

    def seal(self, header: bytes, nonce: bytes, plaintext: bytes) -> bytes:
        ciphertext = self._ctr(nonce, plaintext)
        return ciphertext + self._mac(header, nonce, ciphertext)

    def open(self, header: bytes, nonce: bytes, sealed: bytes) -> bytes:
        ciphertext, tag = sealed[: -self.tag_size], sealed[-self.tag_size :]
        if not hmac.compare_digest(tag, self._mac(header, nonce, ciphertext)):
            raise TokenInvalid("authentication failed")
        return self._ctr(nonce, ciphertext)

    def __repr__(self) -> str:
        return f"EncryptThenMacConstruction(hash={self._hash_func().name}, cipher={self._algorithm.name})"


def encrypt_then_mac(
    hash_func: Callable = hashlib.sha256,
    cipher_func: Callable[[bytes], CipherAlgorithm] = algorithms.AES,
) -> ConstructionFactory:
    """Return a factory for the version 2 encrypt-then-MAC construction."""
    return partial(EncryptThenMacConstruction, hash_func=hash_func, cipher_func=cipher_func)
