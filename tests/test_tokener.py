"""
tests/test_tokener.py -- Unit tests for securetoken.tokener.Tokener.

Covers:
  - Round trip for empty, whitespace, short and non-ASCII payloads
  - Token length depends only on payload length
  - Pinned token strings keep decoding (format stability)
  - Expiry boundary at exactly T + ttl vs T + ttl + 1ns
  - Freshness is only checked after authentication
  - Single-bit tampering, truncation, wrong key, version gate
  - Malformed and non-canonical base64
  - Nonce uniqueness under a frozen clock
  - Random source failures are never papered over
  - Construction-time validation of key, ttl and constructions
"""

from __future__ import annotations

import base64
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from conftest import KEY, T0, TTL, counting_random

from securetoken import (
    AEADConstruction,
    ConstructionError,
    FrozenClock,
    RandomnessUnavailable,
    Tokener,
    TokenExpired,
    TokenInvalid,
    TokenRejected,
    encrypt_then_mac,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PAYLOADS = [
    "",
    " ",
    "\t\n",
    "12345",
    "a.person@some.domain.com",
    "café ☃",
]

# Sealed at T0 with KEY, AES-128-GCM, random suffix 00 01 02 03.
# Existing entries must not be removed or edited unless the token format is
# deliberately broken; tokens issued by older releases must keep decoding.
PINNED_TOKENS = [
    ("AQDKmjsAAAAAAAECA6IvWbK52rQFRizNCY80yYA=", ""),
    ("AQDKmjsAAAAAAAECA49DOFkeA_6pe1yIzRM_a_bO", " "),
    ("AQDKmjsAAAAAAAECA54N-r-Bb9YIJbx8xjjs9-eflPETZg==", "12345"),
    (
        "AQDKmjsAAAAAAAECA84Rue7G1iuUcKJYKTTfHmQp35-vVc43xG0nuxEhaXAcRIVuJiCb1mM=",
        "a.person@some.domain.com",
    ),
    ("AQDKmjsAAAAAAAECA8xer0gdhaZis-4lyybLrBD5SKVjYHs2idM=", "café ☃"),
]


def _raw(token: str) -> bytes:
    return base64.urlsafe_b64decode(token)


def _encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


# ---------------------------------------------------------------------------
# Round trip and length
# ---------------------------------------------------------------------------


class TestRoundTrip:
    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_unseal_returns_sealed_bytes(self, tokener: Tokener, payload: str) -> None:
        data = payload.encode("utf-8")
        assert tokener.unseal(tokener.seal(data)) == data

    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_string_helpers_round_trip(self, tokener: Tokener, payload: str) -> None:
        assert tokener.unseal_string(tokener.seal_string(payload)) == payload

    def test_binary_payload(self, tokener: Tokener) -> None:
        data = bytes(range(256))
        assert tokener.unseal(tokener.seal(data)) == data

    def test_token_is_urlsafe_text(self, tokener: Tokener) -> None:
        token = tokener.seal(b"\xff" * 64)
        assert isinstance(token, str)
        assert "+" not in token and "/" not in token

    def test_non_utf8_payload_rejected_by_unseal_string(self, tokener: Tokener) -> None:
        """A payload that authenticates but is not UTF-8 was never produced by seal_string()."""
        token = tokener.seal(b"\xff\xfe")
        assert tokener.unseal(token) == b"\xff\xfe"
        with pytest.raises(TokenInvalid):
            tokener.unseal_string(token)


class TestLength:
    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_length_matches_sealed_length(self, tokener: Tokener, payload: str) -> None:
        data = payload.encode("utf-8")
        token = tokener.seal(data)
        raw_len = 1 + 12 + len(data) + 16
        assert len(token) == tokener.sealed_length(len(data)) == 4 * ((raw_len + 2) // 3)
        assert len(_raw(token)) == raw_len

    def test_length_independent_of_content(self, tokener: Tokener) -> None:
        lengths = {len(tokener.seal(bytes([b]) * 20)) for b in (0x00, 0x41, 0xFF)}
        assert len(lengths) == 1


# ---------------------------------------------------------------------------
# Format stability
# ---------------------------------------------------------------------------


class TestPinnedTokens:
    """If these fail, tokens issued by an earlier release can no longer be read."""

    @pytest.mark.parametrize("token,expected", PINNED_TOKENS)
    def test_pinned_token_decodes(self, tokener: Tokener, token: str, expected: str) -> None:
        assert tokener.unseal_string(token) == expected

    @pytest.mark.parametrize("token,expected", PINNED_TOKENS)
    def test_seal_reproduces_pinned_token(self, clock: FrozenClock, token: str, expected: str) -> None:
        """With the random source pinned, seal() output is byte-for-byte the recorded token."""
        tokener = Tokener(KEY, TTL, clock=clock, random_source=counting_random)
        assert tokener.seal_string(expected) == token

    def test_layout(self) -> None:
        raw = _raw(PINNED_TOKENS[2][0])
        assert raw[0] == 1
        assert int.from_bytes(raw[1:9], "little", signed=True) == T0
        assert raw[9:13] == bytes(range(4))
        assert len(raw[13:]) == len(b"12345") + 16


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_valid_at_exactly_ttl(self, tokener: Tokener, clock: FrozenClock) -> None:
        token = tokener.seal(b"data")
        clock.advance(TTL)
        assert tokener.unseal(token) == b"data"

    def test_expired_one_nanosecond_after_ttl(self, tokener: Tokener, clock: FrozenClock) -> None:
        token = tokener.seal(b"data")
        clock.advance(TTL)
        clock.advance(1)
        with pytest.raises(TokenExpired):
            tokener.unseal(token)

    def test_zero_ttl_valid_only_at_issue_instant(self, clock: FrozenClock) -> None:
        tokener = Tokener(KEY, timedelta(0), clock=clock)
        token = tokener.seal(b"data")
        assert tokener.unseal(token) == b"data"
        clock.advance(1)
        with pytest.raises(TokenExpired):
            tokener.unseal(token)

    def test_ttl_in_seconds(self, clock: FrozenClock) -> None:
        tokener = Tokener(KEY, 60, clock=clock)
        assert tokener.ttl == TTL
        token = tokener.seal(b"data")
        clock.advance(60 * 1_000_000_000 + 1)
        with pytest.raises(TokenExpired):
            tokener.unseal(token)

    def test_expired_is_a_rejection(self, tokener: Tokener, clock: FrozenClock) -> None:
        token = tokener.seal(b"data")
        clock.advance(timedelta(days=1))
        with pytest.raises(TokenRejected):
            tokener.unseal(token)

    def test_tampered_expired_token_reports_invalid(self, tokener: Tokener, clock: FrozenClock) -> None:
        """Freshness is never evaluated on bytes that failed authentication."""
        raw = bytearray(_raw(tokener.seal(b"data")))
        raw[-1] ^= 0x01
        clock.advance(timedelta(days=1))
        with pytest.raises(TokenInvalid):
            tokener.unseal(_encode(bytes(raw)))

    def test_pinned_token_expires(self, tokener: Tokener, clock: FrozenClock) -> None:
        clock.advance(TTL + timedelta(microseconds=1))
        with pytest.raises(TokenExpired):
            tokener.unseal(PINNED_TOKENS[0][0])

    def test_future_dated_token_accepted(self, tokener: Tokener, clock: FrozenClock) -> None:
        """A token stamped ahead of the verifier's clock is not rejected (clock skew)."""
        clock.advance(timedelta(seconds=10))
        token = tokener.seal(b"data")
        clock.now_ns = T0
        assert tokener.unseal(token) == b"data"


# ---------------------------------------------------------------------------
# Tampering and version gate
# ---------------------------------------------------------------------------


class TestTamper:
    def test_every_single_bit_flip_is_rejected(self, tokener: Tokener) -> None:
        raw = _raw(tokener.seal(b"12345"))
        for i in range(len(raw) * 8):
            flipped = bytearray(raw)
            flipped[i // 8] ^= 1 << (i % 8)
            with pytest.raises(TokenInvalid):
                tokener.unseal(_encode(bytes(flipped)))

    def test_every_truncation_is_rejected(self, tokener: Tokener) -> None:
        raw = _raw(tokener.seal(b"12345"))
        for n in range(len(raw)):
            with pytest.raises(TokenInvalid):
                tokener.unseal(_encode(raw[:n]))

    def test_appended_bytes_rejected(self, tokener: Tokener) -> None:
        raw = _raw(tokener.seal(b"12345"))
        with pytest.raises(TokenInvalid):
            tokener.unseal(_encode(raw + b"\x00"))

    def test_wrong_key_rejected(self, tokener: Tokener, clock: FrozenClock) -> None:
        other = Tokener(b"x" * 16, TTL, clock=clock)
        with pytest.raises(TokenInvalid):
            other.unseal(tokener.seal(b"data"))


class TestVersionGate:
    def test_any_other_version_byte_rejected(self, tokener: Tokener) -> None:
        raw = _raw(tokener.seal(b"data"))
        for version in range(256):
            if version == 1:
                continue
            with pytest.raises(TokenInvalid):
                tokener.unseal(_encode(bytes([version]) + raw[1:]))

    def test_version_property(self, tokener: Tokener) -> None:
        assert tokener.version == 1
        assert _raw(tokener.seal(b""))[0] == 1


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------


class TestMalformed:
    @pytest.mark.parametrize(
        "token",
        [
            "",
            " ",
            base64.urlsafe_b64encode(b" ").decode(),
            "asdf",
            "fk6AjyatL5P3jJs3kaQ0Sc5ZbAHx_0NaZtRieQ==",
            " Fk6AjyatL5P3jJs3kaQ0Sc5ZbAHx_0NaZtRieQ==",
            "Fk6AjyatL5P3jJs3kaQ0Sc5ZbAHx_0NaZtRieQ==   ",
            "k6AjyatL5P3jJs3kaQ0Sc5ZbAHx_0NaZtRieQ==",
            "ünïcödé",
            "!!!!",
        ],
    )
    def test_garbage_rejected(self, tokener: Tokener, token: str) -> None:
        with pytest.raises(TokenInvalid):
            tokener.unseal(token)

    def test_whitespace_around_valid_token_rejected(self, tokener: Tokener) -> None:
        token = PINNED_TOKENS[2][0]
        for variant in (f" {token}", f"{token}\n", token[:10] + " " + token[10:]):
            with pytest.raises(TokenInvalid):
                tokener.unseal(variant)

    def test_standard_alphabet_rejected(self, tokener: Tokener) -> None:
        token = PINNED_TOKENS[2][0]
        assert "-" in token
        with pytest.raises(TokenInvalid):
            tokener.unseal(token.replace("-", "+"))

    def test_missing_padding_rejected(self, tokener: Tokener) -> None:
        with pytest.raises(TokenInvalid):
            tokener.unseal(PINNED_TOKENS[2][0].rstrip("="))

    def test_non_canonical_trailing_bits_rejected(self, tokener: Tokener) -> None:
        """'Zh==' decodes to the same bytes as 'Zg==' but is not what seal() emits."""
        token = PINNED_TOKENS[2][0]
        assert token.endswith("Zg==")
        with pytest.raises(TokenInvalid):
            tokener.unseal(token[:-3] + "h==")


# ---------------------------------------------------------------------------
# Nonces and randomness
# ---------------------------------------------------------------------------


class TestNonceUniqueness:
    def test_same_instant_never_repeats(self, tokener: Tokener) -> None:
        """Clock frozen: every seal shares a timestamp, the random suffix still differs."""
        raws = [_raw(tokener.seal(b"same plaintext")) for _ in range(2000)]
        timestamps = {int.from_bytes(r[1:9], "little", signed=True) for r in raws}
        assert timestamps == {T0}
        assert len({r[1:13] for r in raws}) == len(raws)
        assert len({r[13:] for r in raws}) == len(raws)

    def test_timestamp_tracks_clock(self, tokener: Tokener, clock: FrozenClock) -> None:
        first = _raw(tokener.seal(b"x"))
        clock.advance(1)
        second = _raw(tokener.seal(b"x"))
        assert int.from_bytes(second[1:9], "little") - int.from_bytes(first[1:9], "little") == 1


class TestRandomSource:
    def test_suffix_drawn_from_random_source(self, clock: FrozenClock) -> None:
        requested: list[int] = []

        def source(n: int) -> bytes:
            requested.append(n)
            return b"\xaa" * n

        tokener = Tokener(KEY, TTL, clock=clock, random_source=source)
        raw = _raw(tokener.seal(b"x"))
        assert requested == [4]
        assert raw[9:13] == b"\xaa" * 4

    def test_failing_source_raises(self, clock: FrozenClock) -> None:
        def broken(n: int) -> bytes:
            raise OSError("entropy pool unavailable")

        tokener = Tokener(KEY, TTL, clock=clock, random_source=broken)
        with pytest.raises(RandomnessUnavailable) as excinfo:
            tokener.seal(b"x")
        assert isinstance(excinfo.value.__cause__, OSError)

    @pytest.mark.parametrize("result", [b"", b"\x00\x01\x02", b"\x00" * 5, None])
    def test_wrong_sized_output_raises(self, clock: FrozenClock, result) -> None:
        tokener = Tokener(KEY, TTL, clock=clock, random_source=lambda n: result)
        with pytest.raises(RandomnessUnavailable):
            tokener.seal(b"x")


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class _ShortNonce(AEADConstruction):
    nonce_size = 8


class TestConstruction:
    @pytest.mark.parametrize("key", [b"", b"short", b"k" * 15, b"k" * 17, b"k" * 33])
    def test_bad_key_length(self, key: bytes) -> None:
        with pytest.raises(ConstructionError):
            Tokener(key, TTL)

    @pytest.mark.parametrize("key", [b"k" * 16, b"k" * 24, b"k" * 32])
    def test_accepted_key_lengths(self, key: bytes) -> None:
        tokener = Tokener(key, TTL)
        assert tokener.unseal(tokener.seal(b"ok")) == b"ok"

    def test_construction_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Tokener(b"short", TTL)

    def test_non_bytes_key(self) -> None:
        with pytest.raises(ConstructionError):
            Tokener("a" * 16, TTL)  # type: ignore[arg-type]

    @pytest.mark.parametrize("ttl", [timedelta(seconds=-1), -1, -0.5])
    def test_negative_ttl(self, ttl) -> None:
        with pytest.raises(ConstructionError):
            Tokener(KEY, ttl)

    @pytest.mark.parametrize("ttl", ["60", None, float("nan"), float("inf")])
    def test_non_duration_ttl(self, ttl) -> None:
        with pytest.raises(ConstructionError):
            Tokener(KEY, ttl)

    def test_nonce_too_short_for_timestamp_and_suffix(self) -> None:
        with pytest.raises(ConstructionError):
            Tokener(KEY, TTL, construction=_ShortNonce)

    def test_duplicate_version_in_accept(self) -> None:
        with pytest.raises(ConstructionError):
            Tokener(KEY, TTL, accept=[AEADConstruction])

    def test_accept_adds_reader_only(self, clock: FrozenClock) -> None:
        tokener = Tokener(KEY, TTL, clock=clock, accept=[encrypt_then_mac()])
        assert _raw(tokener.seal(b"x"))[0] == 1

    def test_repr_has_no_key(self) -> None:
        assert KEY.decode() not in repr(Tokener(KEY, TTL))


class TestConcurrency:
    def test_shared_tokener_across_threads(self, tokener: Tokener) -> None:
        payloads = [f"user-{i}".encode() for i in range(200)]

        def round_trip(data: bytes) -> bytes:
            return tokener.unseal(tokener.seal(data))

        with ThreadPoolExecutor(max_workers=8) as pool:
            assert list(pool.map(round_trip, payloads)) == payloads
