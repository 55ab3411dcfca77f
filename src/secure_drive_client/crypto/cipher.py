import base64
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel

from secure_drive_client.crypto.encoding import BASE64, normalize_ciphertext, normalize_field
from secure_drive_client.exceptions import ConfigurationError, IntegrityError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class EncryptedPayload(BaseModel):
    nonce: str
    ciphertext: str
    tag: str
    # None - запись старого формата или собранная вручную, кодировка определяется эвристикой
    encoding: Optional[str] = None


class CipherEngine:
    """
    AES-256-GCM для текстового содержимого файлов.

    Каждый вызов encrypt берёт свежий 96-битный nonce из os.urandom.
    AESGCM возвращает ciphertext||tag, мы храним их раздельно.
    """

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            size = len(key) if isinstance(key, (bytes, bytearray)) else "n/a"
            raise ConfigurationError(f"Invalid encryption key length: {size} bytes (expected {KEY_SIZE})")
        self._aesgcm = AESGCM(bytes(key))

    @classmethod
    def from_hex(cls, key_hex: str) -> "CipherEngine":
        """Создаёт движок из ключа в виде 64 hex-символов (как в CRYPTO_ENCRYPTION_KEY)."""
        try:
            key = bytes.fromhex(key_hex or "")
        except ValueError as e:
            raise ConfigurationError("Encryption key must be a hex string") from e
        return cls(key)

    @staticmethod
    def generate_key_hex() -> str:
        return AESGCM.generate_key(bit_length=256).hex()

    def encrypt(self, plaintext: str) -> EncryptedPayload:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return EncryptedPayload(
            nonce=base64.b64encode(nonce).decode("ascii"),
            ciphertext=base64.b64encode(ciphertext).decode("ascii"),
            tag=base64.b64encode(tag).decode("ascii"),
            encoding=BASE64,
        )

    def decrypt(self, payload: EncryptedPayload) -> str:
        nonce = normalize_field(payload.nonce, payload.encoding)
        tag = normalize_field(payload.tag, payload.encoding)
        if len(nonce) != NONCE_SIZE:
            raise IntegrityError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        if len(tag) != TAG_SIZE:
            raise IntegrityError(f"Tag must be {TAG_SIZE} bytes, got {len(tag)}")
        ciphertext = normalize_ciphertext(payload.ciphertext, payload.encoding)

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.warning("Authentication tag mismatch (nonce=%s)", payload.nonce)
            raise IntegrityError("Authentication tag verification failed") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError("Decrypted payload is not valid UTF-8") from e
