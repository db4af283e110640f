"""API credential lookup.

Adapters ask for ``get_api_key_with_name(source)`` and fall back to the
free tier when it returns None. ``key_name`` doubles as the client id or
username for upstreams that need one (OpenSky client id, ACLED email).

Values stored as ``enc:<base64>`` are AES-256-GCM ciphertexts (12-byte IV
prefix, tag appended) under a PBKDF2-SHA256 key derived from the user id,
salt ``ldgr:<purpose>:<user id>``.
"""
import asyncio
import base64
from dataclasses import dataclass
from typing import Protocol

from cachetools import TTLCache
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from commandcenter.config import Settings
from commandcenter.core.logging import get_logger

logger = get_logger(__name__)

ENCRYPTED_PREFIX = "enc:"
PBKDF2_ITERATIONS = 100_000


@dataclass(frozen=True)
class ApiKey:
    key_name: str
    key: str


class CredentialProvider(Protocol):
    async def get_api_key_with_name(self, source: str) -> ApiKey | None:
        ...


def derive_key(user_id: str, purpose: str) -> bytes:
    """Derive the AES-256 key for a user and purpose."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=f"ldgr:{purpose}:{user_id}".encode(),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(user_id.encode())


def encrypt_text(plaintext: str, user_id: str, purpose: str, iv: bytes) -> str:
    """Inverse of decrypt_text; used to provision encrypted settings."""
    sealed = AESGCM(derive_key(user_id, purpose)).encrypt(iv, plaintext.encode(), None)
    return base64.b64encode(iv + sealed).decode()


def decrypt_text(encrypted_b64: str, user_id: str, purpose: str) -> str:
    """Decrypt a base64 ``iv || ciphertext || tag`` blob."""
    combined = base64.b64decode(encrypted_b64)
    iv, sealed = combined[:12], combined[12:]
    return AESGCM(derive_key(user_id, purpose)).decrypt(iv, sealed, None).decode()


class SettingsCredentialProvider:
    """Credentials read from Settings, decrypting ``enc:`` values on demand."""

    # source -> (key_name field or literal, key field)
    FIELDS: dict[str, tuple[str | None, str]] = {
        "opensky": ("opensky_client_id", "opensky_client_secret"),
        "acled": ("acled_email", "acled_api_key"),
        "firms": (None, "firms_map_key"),
        "coingecko": (None, "coingecko_api_key"),
        "fred": (None, "fred_api_key"),
    }

    def __init__(self, settings: Settings, purpose: str = "apikeys"):
        self.settings = settings
        self.purpose = purpose
        self._cache: TTLCache = TTLCache(maxsize=32, ttl=3600)

    async def get_api_key_with_name(self, source: str) -> ApiKey | None:
        if source in self._cache:
            return self._cache[source]

        fields = self.FIELDS.get(source)
        if fields is None:
            return None
        name_field, key_field = fields

        raw_key = getattr(self.settings, key_field, "")
        raw_name = getattr(self.settings, name_field, "") if name_field else source
        if not raw_key or not raw_name:
            return None

        try:
            key = await self._reveal(raw_key)
            key_name = await self._reveal(raw_name)
        except (InvalidTag, ValueError) as e:
            logger.warning("credential_decrypt_failed", source=source, error=e.__class__.__name__)
            return None

        entry = ApiKey(key_name=key_name, key=key)
        self._cache[source] = entry
        return entry

    async def _reveal(self, value: str) -> str:
        if not value.startswith(ENCRYPTED_PREFIX):
            return value
        if not self.settings.credential_user_id:
            raise ValueError("credential_user_id is required for encrypted credentials")
        return await asyncio.to_thread(
            decrypt_text,
            value[len(ENCRYPTED_PREFIX):],
            self.settings.credential_user_id,
            self.purpose,
        )

    def clear(self) -> None:
        """Forget decrypted keys (e.g. after a settings change)."""
        self._cache.clear()
