"""
prize_portal/security/pii_cipher.py
Authenticated encryption and display masking for bank account numbers.

Envelope format (all parts lower-case hex):

    <iv>:<auth tag>:<ciphertext>

AES-256-GCM with a fresh 16-byte random IV per call and a 16-byte tag.
"""
import logging
import os
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from prize_portal.exceptions import (
    AuthenticationFailureError,
    CipherError,
    InvalidFormatError,
    InvalidInputError,
)

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
ENVELOPE_SEPARATOR = ":"
MASK_CHAR = "*"
MASK_CONSTANT = "****"
VISIBLE_SUFFIX = 4


class PIICipher:
    """
    Encrypts, decrypts and masks account numbers.

    Holds nothing but the key, so one instance is safe to share across
    concurrent requests.
    """

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
            raise ValueError(f"Cipher key must be exactly {KEY_LENGTH} bytes")
        self._aesgcm = AESGCM(bytes(key))

    def __repr__(self) -> str:
        return "<PIICipher(algorithm='aes-256-gcm')>"

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            raise InvalidInputError("Cannot encrypt empty text")

        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return ENVELOPE_SEPARATOR.join((iv.hex(), tag.hex(), ciphertext.hex()))

    def decrypt(self, envelope: str) -> str:
        if not envelope or not isinstance(envelope, str):
            raise InvalidFormatError("Cannot decrypt empty data")

        parts = envelope.split(ENVELOPE_SEPARATOR)
        if len(parts) != 3:
            raise InvalidFormatError()

        try:
            iv = bytes.fromhex(parts[0])
            tag = bytes.fromhex(parts[1])
            ciphertext = bytes.fromhex(parts[2])
        except ValueError:
            raise InvalidFormatError()

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH or not ciphertext:
            raise InvalidFormatError()

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag:
            raise AuthenticationFailureError()

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidFormatError("Decrypted data is not valid text")

    @staticmethod
    def mask(plaintext: Optional[str]) -> str:
        """Show only the last 4 characters; anything shorter gets the fixed mask."""
        if not plaintext or len(plaintext) < VISIBLE_SUFFIX:
            return MASK_CONSTANT
        return MASK_CHAR * (len(plaintext) - VISIBLE_SUFFIX) + plaintext[-VISIBLE_SUFFIX:]

    def mask_envelope(self, envelope: Optional[str]) -> str:
        """
        Decrypt then mask, for listings.

        Never raises: a record that cannot be decrypted is shown as the
        fixed mask rather than breaking the whole view.
        """
        try:
            return self.mask(self.decrypt(envelope))
        except CipherError as e:
            logger.warning(f"Masking fell back to constant mask: {e.code}")
            return MASK_CONSTANT


@lru_cache()
def get_cipher() -> PIICipher:
    """Process-wide cipher built from the configured key."""
    from prize_portal.config import get_settings
    return PIICipher(get_settings().bank_encryption_key)
