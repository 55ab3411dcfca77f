"""
Разбор полей nonce / tag / ciphertext при расшифровке.

Новые записи хранят всё в base64 и помечают это явно (cipher_encoding='base64').
Старые записи могли быть записаны и в hex, и в base64, поэтому для них
(cipher_encoding IS NULL) работает эвристика: строка только из hex-цифр
считается hex. Эвристика неоднозначна: валидный base64 из одних hex-символов
("deadbeef") будет прочитан как hex.
"""
import base64
import binascii
import re
from typing import Optional

from secure_drive_client.exceptions import IntegrityError

HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

BASE64 = "base64"
HEX = "hex"


def is_hex(value: str) -> bool:
    return bool(HEX_RE.match(value))


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise IntegrityError(f"Field is not valid base64: {e}") from e


def _hexdecode(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise IntegrityError(f"Field is not valid hex: {e}") from e


def normalize_field(value: str, encoding: Optional[str] = None) -> bytes:
    """
    Декодирует nonce или tag.
    :param encoding: 'base64' / 'hex' для новых записей, None для legacy-строк.
    """
    if not value:
        raise IntegrityError("Empty nonce/tag field")
    if encoding == BASE64:
        return _b64decode(value)
    if encoding == HEX:
        return _hexdecode(value)
    if encoding is not None:
        raise IntegrityError(f"Unknown field encoding '{encoding}'")
    # legacy: сначала hex, иначе base64
    if is_hex(value):
        return _hexdecode(value)
    return _b64decode(value)


def normalize_ciphertext(value: str, encoding: Optional[str] = None) -> bytes:
    """
    Декодирует шифртекст. Шифртекст всегда хранится в base64, поэтому и при
    encoding='hex' (он относится только к nonce/tag) читаем его как base64.
    Legacy-правило: не-hex строка - это base64, строка из hex-цифр - это
    литеральный текст (байты UTF-8).
    """
    if encoding in (BASE64, HEX):
        return _b64decode(value)
    if encoding is not None:
        raise IntegrityError(f"Unknown ciphertext encoding '{encoding}'")
    if value and not is_hex(value):
        return _b64decode(value)
    return value.encode("utf-8")
