"""
Fernet encryption for platform access tokens stored on connected accounts.
"""

import base64
from functools import lru_cache
from typing import Tuple

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings


TOKEN_KEY_SALT = b"inbound_automation_token_salt"


@lru_cache(maxsize=8)
def _fernet_for(secret: str) -> Fernet:
    # 32-char secrets are used as raw key material; anything else goes through PBKDF2.
    if len(secret) == 32:
        return Fernet(base64.urlsafe_b64encode(secret.encode()))
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=TOKEN_KEY_SALT, iterations=100000)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))


def _key_ring() -> Tuple[str, ...]:
    previous = tuple(key for key in settings.ENCRYPTION_KEY_PREVIOUS if key)
    return (settings.ENCRYPTION_KEY, *previous)


def _token_cipher() -> MultiFernet:
    """Current key first; retired keys stay readable until accounts reconnect."""
    return MultiFernet([_fernet_for(secret) for secret in _key_ring()])


def encrypt_access_token(token: str) -> str:
    """Encrypt a platform access token for the `access_token_encrypted` column."""
    return _token_cipher().encrypt(token.encode()).decode()


def decrypt_access_token(encrypted_token: str) -> str:
    """
    Decrypt a stored access token.

    Raises:
        ValueError: the ciphertext is empty or no configured key can read it.
    """
    if not encrypted_token:
        raise ValueError("No access token stored for account")
    try:
        return _token_cipher().decrypt(encrypted_token.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Stored access token could not be decrypted") from exc
