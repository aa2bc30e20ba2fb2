"""
Secret encryption utilities.

Uses Fernet (symmetric encryption) to encrypt TOTP secrets at rest.
Secrets are encrypted before storage and decrypted when a code is verified.
"""

import logging
from typing import Optional
from cryptography.fernet import Fernet
from marketplace.core.config import settings

logger = logging.getLogger(__name__)


class SecretEncryption:
    """
    Encrypt/decrypt short secrets using Fernet symmetric encryption.

    Fernet guarantees that a message encrypted using it cannot be
    manipulated or read without the key. Uses AES 128 in CBC mode.
    """

    def __init__(self, key: Optional[str] = None):
        key = key if key is not None else settings.ENCRYPTION_KEY
        if not key:
            logger.warning(
                "ENCRYPTION_KEY not set. TOTP secrets will be stored unencrypted. "
                "Generate a key with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
            self.cipher = None
        else:
            try:
                self.cipher = Fernet(key.encode())
            except ValueError as e:
                logger.error(f"Invalid ENCRYPTION_KEY: {e}")
                self.cipher = None

    def encrypt(self, value: str) -> str:
        """Encrypt a secret for storage."""
        if not self.cipher:
            return value

        encrypted = self.cipher.encrypt(value.encode())
        return encrypted.decode()

    def decrypt(self, encrypted_value: str) -> str:
        """Decrypt a stored secret."""
        if not self.cipher:
            return encrypted_value

        decrypted = self.cipher.decrypt(encrypted_value.encode())
        return decrypted.decode()


# Singleton instance
secret_encryption = SecretEncryption()
