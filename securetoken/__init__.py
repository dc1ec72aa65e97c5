"""securetoken/ -- Stateless, expiring, authenticated tokens.

    tokener = Tokener(key, timedelta(hours=24))
    token = tokener.seal(b"secretuserid")
    tokener.unseal(token)  # b"secretuserid"

Layer rule: securetoken/ imports only stdlib + cryptography. It does NOT
import from core/, api/, or web/.
"""

from securetoken.clock import FrozenClock, system_clock
from securetoken.constructions import (
    AEADConstruction,
    Construction,
    EncryptThenMacConstruction,
    aead,
    encrypt_then_mac,
)
from securetoken.errors import (
    ConstructionError,
    RandomnessUnavailable,
    SecureTokenError,
    TokenExpired,
    TokenInvalid,
    TokenRejected,
)
from securetoken.tokener import Tokener

__all__ = [
    "Tokener",
    "Construction",
    "AEADConstruction",
    "EncryptThenMacConstruction",
    "aead",
    "encrypt_then_mac",
    "FrozenClock",
    "system_clock",
    "SecureTokenError",
    "ConstructionError",
    "TokenRejected",
    "TokenInvalid",
    "TokenExpired",
    "RandomnessUnavailable",
]
