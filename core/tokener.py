"""
core/tokener.py -- Build the process-wide Tokener from Settings.

The API lifespan and the CLI both go through build_tokener() so the mapping
from TOKEN_CONSTRUCTION names to construction factories lives in one place.
"""

from datetime import timedelta
from functools import lru_cache

from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from core.config import Settings, get_settings
from securetoken import Tokener, aead, encrypt_then_mac
from securetoken.constructions import ConstructionFactory

CONSTRUCTIONS: dict[str, ConstructionFactory] = {
    "aes-gcm": aead(AESGCM),
    "chacha20-poly1305": aead(ChaCha20Poly1305),
    "hmac-sha256-aes-ctr": encrypt_then_mac(),
}


def build_tokener(settings: Settings) -> Tokener:
    """Return a Tokener configured from settings."""
    return Tokener(
        settings.key_bytes(),
        timedelta(seconds=settings.token_ttl_seconds),
        construction=CONSTRUCTIONS[settings.token_construction],
    )


@lru_cache
def get_tokener() -> Tokener:
    """Return the Tokener singleton built from get_settings()."""
    return build_tokener(get_settings())
