import base64
import pytest
from django.core.exceptions import ImproperlyConfigured

from booking_notifications.utils.encryption import (
    encrypt, decrypt, encrypt_json, decrypt_json, generate_encryption_key,
    SALT_LENGTH, IV_LENGTH, TAG_LENGTH,
)
from booking_notifications.utils.exceptions import DecryptionError


CREDENTIALS = {
    "provider": "twilio",
    "account_sid": "AC0123456789abcdef",
    "auth_token": "s3cr3t",
    "nested": {"regions": ["ae", "in"], "priority": 1},
    "note": "café ☕",
}


def test_json_round_trip():
    assert decrypt_json(encrypt_json(CREDENTIALS)) == CREDENTIALS


def test_string_round_trip():
    assert decrypt(encrypt("plain text")) == "plain text"


def test_each_blob_uses_fresh_salt_and_iv():
    first = encrypt_json(CREDENTIALS)
    second = encrypt_json(CREDENTIALS)
    assert first != second
    assert base64.b64decode(first)[:SALT_LENGTH + IV_LENGTH] != base64.b64decode(second)[:SALT_LENGTH + IV_LENGTH]


def test_blob_layout():
    plaintext = "hello"
    raw = base64.b64decode(encrypt(plaintext))
    assert len(raw) == SALT_LENGTH + IV_LENGTH + len(plaintext.encode()) + TAG_LENGTH


@pytest.mark.parametrize("position", [0, SALT_LENGTH + 1, SALT_LENGTH + IV_LENGTH + 2, -1])
def test_flipped_byte_is_rejected(position):
    raw = bytearray(base64.b64decode(encrypt_json(CREDENTIALS)))
    raw[position] ^= 0x01
    with pytest.raises(DecryptionError):
        decrypt_json(base64.b64encode(bytes(raw)).decode())


def test_wrong_master_key_is_rejected(settings):
    blob = encrypt_json(CREDENTIALS)
    settings.ENCRYPTION_KEY = "a-different-master-key"
    with pytest.raises(DecryptionError):
        decrypt_json(blob)


def test_truncated_blob_is_rejected():
    with pytest.raises(DecryptionError):
        decrypt(base64.b64encode(b"x" * 40).decode())


def test_malformed_base64_is_rejected():
    with pytest.raises(DecryptionError):
        decrypt("not base64 at all!!")


def test_non_json_plaintext_is_rejected():
    with pytest.raises(DecryptionError):
        decrypt_json(encrypt("not json"))


def test_missing_master_key(settings):
    settings.ENCRYPTION_KEY = ""
    with pytest.raises(ImproperlyConfigured):
        encrypt("anything")


def test_generate_encryption_key():
    key = generate_encryption_key()
    assert len(base64.b64decode(key)) == 32
    assert key != generate_encryption_key()
