"""
securetoken/errors.py -- Exception taxonomy for sealing and unsealing.

Callers should treat TokenInvalid and TokenExpired as two flavours of the same
decision: reject the credential. Catch TokenRejected to handle both. The split
exists for diagnostics only.

Nothing in this package retries. A failed verification has no remediation,
and a failed random source must never be papered over with weaker bytes.
"""


class SecureTokenError(Exception):
    """Base class for every error raised by securetoken."""


class ConstructionError(SecureTokenError, ValueError):
    """The Tokener could not be built: bad key, bad ttl, or bad construction."""


class TokenRejected(SecureTokenError):
    """A token was presented to unseal() and must not be trusted."""


class TokenInvalid(TokenRejected):
    """Malformed encoding, undersized buffer, unknown version, or failed authentication.

    All of these collapse into one signal on purpose. Telling a caller *why*
    authentication failed would turn unseal() into an oracle.
    """


class TokenExpired(TokenRejected):
    """The token authenticated but was issued more than ttl ago."""


class RandomnessUnavailable(SecureTokenError):
    """The secure random source failed while sealing."""
