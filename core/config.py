"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_key -> TOKEN_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a key with a warning; production mode
      refuses to start without one.

Security notes:
  [K1] TOKEN_KEY is hex. It must decode to a key length the selected
       construction accepts: 16/24/32 bytes, and exactly 32 for
       ChaCha20-Poly1305.

  [K2] In production mode (DEBUG not set or false), a missing TOKEN_KEY is a
       hard startup failure. A random per-process key would silently
       invalidate every issued token on restart.

Layer rule: core/ may import from securetoken/ but not from api/ or web/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("securetoken.config")

ConstructionName = Literal["aes-gcm", "chacha20-poly1305", "hmac-sha256-aes-ctr"]

_KEY_SIZES: dict[str, tuple[int, ...]] = {
    "aes-gcm": (16, 24, 32),
    "chacha20-poly1305": (32,),
    "hmac-sha256-aes-ctr": (16, 24, 32),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    token_key: str = ""
    # Default 24 hours, matching the session lifetime of the demo app.
    token_ttl_seconds: int = 86400
    token_construction: ConstructionName = "aes-gcm"

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    session_cookie_name: str = "session"
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value < 0:
            raise ValueError("TOKEN_TTL_SECONDS must not be negative.")
        return value

    @model_validator(mode="after")
    def validate_token_key(self) -> "Settings":
        """Enforce TOKEN_KEY policy [K1] [K2].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if TOKEN_KEY is missing.

        Both modes: reject keys that are not hex or have the wrong length.
        """
        sizes = _KEY_SIZES[self.token_construction]
        if not self.token_key:
            if self.debug:
                self.token_key = secrets.token_hex(sizes[-1])
                logger.warning("WARNING: Using auto-generated TOKEN_KEY. Tokens will not survive restarts.")
            else:
                raise ValueError(
                    "TOKEN_KEY is required in production mode. "
                    "Set TOKEN_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        try:
            key = bytes.fromhex(self.token_key)
        except ValueError:
            raise ValueError("TOKEN_KEY must be hex-encoded.") from None
        if len(key) not in sizes:
            allowed = "/".join(str(n) for n in sizes)
            raise ValueError(
                f"TOKEN_KEY must decode to {allowed} bytes for {self.token_construction}, got {len(key)}."
            )
        return self

    def key_bytes(self) -> bytes:
        """Return TOKEN_KEY decoded from hex."""
        return bytes.fromhex(self.token_key)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
