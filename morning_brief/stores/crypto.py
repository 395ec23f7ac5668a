"""
At-rest encryption for stored OAuth tokens.
"""

import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class TokenCipher:
    """
    Encrypts and decrypts OAuth tokens with Fernet.

    Without a key, tokens pass through unchanged (local development).
    """

    def __init__(self, key: Optional[str] = None):
        if key:
            self.cipher = Fernet(key.encode() if isinstance(key, str) else key)
        else:
            logger.warning("No TOKEN_ENCRYPTION_KEY configured, OAuth tokens are stored in plaintext")
            self.cipher = None

    @property
    def enabled(self) -> bool:
        return self.cipher is not None

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or self.cipher is None:
            return value
        return self.cipher.encrypt(value.encode()).decode()

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        if value is None or self.cipher is None:
            return value
        try:
            return self.cipher.decrypt(value.encode()).decode()
        except InvalidToken as e:
            raise PersistenceError("Failed to decrypt stored token (wrong TOKEN_ENCRYPTION_KEY?)") from e
