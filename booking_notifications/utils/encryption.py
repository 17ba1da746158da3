"""
Encryption for stored provider credentials.

Each blob is independent: a fresh random salt and IV per call, the AES-256-GCM
key derived from the ENCRYPTION_KEY master secret with PBKDF2-HMAC-SHA256.

Blob layout (base64): salt(64) | iv(16) | ciphertext | tag(16)
"""
import base64
import binascii
import json
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from booking_notifications.utils.exceptions import EncryptionError, DecryptionError

logger = logging.getLogger('booking_notifications.encryption')

IV_LENGTH = 16
SALT_LENGTH = 64
TAG_LENGTH = 16
KEY_LENGTH = 32
DEFAULT_ITERATIONS = 100000


def _get_master_key() -> bytes:
    key = getattr(settings, 'ENCRYPTION_KEY', '')
    if not key:
        raise ImproperlyConfigured('ENCRYPTION_KEY setting is not configured')
    return key.encode('utf-8')


def _derive_key(master_key: bytes, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=getattr(settings, 'ENCRYPTION_PBKDF2_ITERATIONS', DEFAULT_ITERATIONS),
    )
    return kdf.derive(master_key)


def encrypt(plaintext: str) -> str:
    master_key = _get_master_key()
    try:
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        key = _derive_key(master_key, salt)
        # AESGCM appends the 16-byte tag to the ciphertext
        encrypted = AESGCM(key).encrypt(iv, plaintext.encode('utf-8'), None)
        return base64.b64encode(salt + iv + encrypted).decode('ascii')
    except Exception as e:
        logger.error(f"Encryption error: {type(e).__name__}")
        raise EncryptionError('Failed to encrypt data') from e


def decrypt(encrypted_data: str) -> str:
    master_key = _get_master_key()
    try:
        buffer = base64.b64decode(encrypted_data, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise DecryptionError('Failed to decrypt data: malformed blob') from e

    if len(buffer) < SALT_LENGTH + IV_LENGTH + TAG_LENGTH:
        raise DecryptionError('Failed to decrypt data: blob too short')

    salt = buffer[:SALT_LENGTH]
    iv = buffer[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    encrypted = buffer[SALT_LENGTH + IV_LENGTH:]

    try:
        key = _derive_key(master_key, salt)
        decrypted = AESGCM(key).decrypt(iv, encrypted, None)
        return decrypted.decode('utf-8')
    except (InvalidTag, UnicodeDecodeError) as e:
        logger.error("Decryption error: authentication failed")
        raise DecryptionError('Failed to decrypt data') from e


def encrypt_json(obj: dict) -> str:
    return encrypt(json.dumps(obj))


def decrypt_json(encrypted_data: str) -> dict:
    decrypted = decrypt(encrypted_data)
    try:
        return json.loads(decrypted)
    except ValueError as e:
        raise DecryptionError('Decrypted credentials are not valid JSON') from e


def generate_encryption_key() -> str:
    """Random master key suitable for the ENCRYPTION_KEY setting"""
    return base64.b64encode(os.urandom(32)).decode('ascii')
