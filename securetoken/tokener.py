"""
securetoken/tokener.py -- Seal and unseal timestamped, authenticated tokens.

Token layout (all integers little-endian):

  byte 0           version of the construction that sealed the token
  bytes [1, 1+N)   nonce = [issued_at:8][random:N-8]
  bytes [1+N, end) ciphertext || tag
  token text       URL-safe base64 of the whole buffer, '=' padded

issued_at is a signed 64-bit count of nanoseconds since the Unix epoch. It is
the first part of the nonce, so it is authenticated along with the ciphertext
and changes from one seal to the next. The random suffix keeps nonces unique
when two seals land on the same nanosecond.

Order of checks in unseal() matters: freshness is only evaluated after the
tag verifies. An attacker must never learn "expired" vs "invalid" about bytes
that have not authenticated.

A Tokener holds no mutable state after __init__ and may be shared freely
between threads and tasks.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from collections.abc import Callable, Iterable
from datetime import timedelta

from securetoken.clock import system_clock, to_nanoseconds
from securetoken.constructions import (
    MIN_RANDOM_SIZE,
    TIMESTAMP_SIZE,
    Construction,
    ConstructionFactory,
    aead,
)
from securetoken.errors import ConstructionError, RandomnessUnavailable, TokenExpired, TokenInvalid

logger = logging.getLogger("securetoken.tokener")


class Tokener:
    """Issue and verify self-contained tokens bound to a key and a lifetime.

    Args:
        key:           Secret bytes. Length must suit the construction
                       (16/24/32 for AES-GCM, 32 for ChaCha20-Poly1305).
        ttl:           Token lifetime as a timedelta or a number of seconds.
                       A token sealed at T is accepted up to and including
                       T + ttl. Zero is allowed; negative is not.
        construction:  Factory for the primitive used to seal. Defaults to
                       AES-GCM (version 1).
        accept:        Extra construction factories whose tokens unseal()
                       also accepts. Sealing always uses `construction`.
        clock:         Zero-argument callable returning nanoseconds since the
                       epoch. Defaults to the system wall clock.
        random_source: Callable taking n and returning n unpredictable bytes.
                       Must be safe for concurrent use.

    Raises:
        ConstructionError: the key, ttl, or construction is unusable.
    """

    def __init__(
        self,
        key: bytes,
        ttl: timedelta | int | float,
        *,
        construction: ConstructionFactory | None = None,
        accept: Iterable[ConstructionFactory] = (),
        clock: Callable[[], int] = system_clock,
        random_source: Callable[[int], bytes] = secrets.token_bytes,
    ) -> None:
        try:
            ttl_ns = to_nanoseconds(ttl)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ConstructionError(f"ttl must be a duration: {exc}") from exc
        if ttl_ns < 0:
            raise ConstructionError("ttl must not be negative")

        self._ttl_ns = ttl_ns
        self._clock = clock
        self._random_source = random_source

        self._construction = self._build(construction or aead(), key)
        self._readers: dict[int, Construction] = {self._construction.version: self._construction}
        for factory in accept:
            reader = self._build(factory, key)
            if reader.version in self._readers:
                raise ConstructionError(f"two constructions claim version {reader.version}")
            self._readers[reader.version] = reader

    @staticmethod
    def _build(factory: ConstructionFactory, key: bytes) -> Construction:
        construction = factory(key)
        if not 0 <= construction.version <= 0xFF:
            raise ConstructionError(f"version {construction.version} does not fit in one byte")
        if construction.nonce_size < TIMESTAMP_SIZE + MIN_RANDOM_SIZE:
            raise ConstructionError(
                f"nonce of {construction.nonce_size} bytes cannot hold a timestamp and a random suffix"
            )
        return construction

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def ttl(self) -> timedelta:
        return timedelta(microseconds=self._ttl_ns // 1_000)

    @property
    def version(self) -> int:
        """Version byte written by seal()."""
        return self._construction.version

    def sealed_length(self, plaintext_len: int) -> int:
        """Return the length of the token text seal() produces for plaintext_len bytes."""
        raw = self._construction.overhead + plaintext_len
        return 4 * ((raw + 2) // 3)

    def __repr__(self) -> str:
        return f"Tokener(construction={self._construction!r}, ttl={self.ttl!r})"

    # ------------------------------------------------------------------
    # Seal
    # ------------------------------------------------------------------

    def _nonce(self, issued_at: int) -> bytes:
        size = self._construction.nonce_size - TIMESTAMP_SIZE
        try:
            suffix = self._random_source(size)
        except Exception as exc:
            logger.error("Random source failed while sealing a token: %s", type(exc).__name__)
            raise RandomnessUnavailable("secure random source failed") from exc
        if not isinstance(suffix, (bytes, bytearray)) or len(suffix) != size:
            logger.error("Random source returned an unusable value while sealing a token")
            raise RandomnessUnavailable(f"secure random source did not return {size} bytes")
        return issued_at.to_bytes(TIMESTAMP_SIZE, "little", signed=True) + bytes(suffix)

    def seal(self, plaintext: bytes) -> str:
        """Encrypt and authenticate plaintext, stamped with the current time.

        Raises:
            RandomnessUnavailable: the random source failed. The token is not
                produced; there is no fallback to a weaker nonce.
        """
        header = bytes((self._construction.version,))
        nonce = self._nonce(self._clock())
        sealed = self._construction.seal(header, nonce, bytes(plaintext))
        return base64.urlsafe_b64encode(header + nonce + sealed).decode("ascii")

    def seal_string(self, text: str) -> str:
        """Seal the UTF-8 encoding of text."""
        return self.seal(text.encode("utf-8"))

    # ------------------------------------------------------------------
    # Unseal
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(token: str) -> bytes:
        try:
            raw = base64.urlsafe_b64decode(token)
        except (binascii.Error, ValueError, TypeError):
            raise TokenInvalid("token is not base64url") from None
        # urlsafe_b64decode silently drops characters outside the alphabet.
        # Re-encoding rejects those along with non-canonical padding bits.
        expected = base64.urlsafe_b64encode(raw)
        actual = token.encode("ascii") if isinstance(token, str) else bytes(token)
        if actual != expected:
            raise TokenInvalid("token is not canonical base64url")
        return raw

    def unseal(self, token: str) -> bytes:
        """Verify token and return the plaintext it carries.

        Raises:
            TokenInvalid: the token is malformed, has an unsupported version,
                or fails authentication.
            TokenExpired: the token authenticated but is older than ttl.
        """
        try:
            raw = self._decode(token)
            if not raw:
                raise TokenInvalid("token is empty")

            construction = self._readers.get(raw[0])
            if construction is None:
                raise TokenInvalid("unsupported token version")
            if len(raw) < construction.overhead:
                raise TokenInvalid("token is too short")

            header = raw[:1]
            nonce = raw[1 : 1 + construction.nonce_size]
            sealed = raw[1 + construction.nonce_size :]
            issued_at = int.from_bytes(nonce[:TIMESTAMP_SIZE], "little", signed=True)

            plaintext = construction.open(header, nonce, sealed)

            if self._clock() - issued_at > self._ttl_ns:
                raise TokenExpired("token expired")
        except (TokenInvalid, TokenExpired) as exc:
            logger.debug("Token rejected: %s", exc)
            raise
        return plaintext

    def unseal_string(self, token: str) -> str:
        """Unseal token and decode its payload as UTF-8.

        A payload that authenticates but is not UTF-8 was not produced by
        seal_string(), so it is reported as TokenInvalid.
        """
        try:
            return self.unseal(token).decode("utf-8")
        except UnicodeDecodeError:
            raise TokenInvalid("token payload is not UTF-8 text") from None
