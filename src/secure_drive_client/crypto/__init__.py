from .cipher import CipherEngine, EncryptedPayload, NONCE_SIZE, TAG_SIZE, KEY_SIZE
from .encoding import is_hex, normalize_field, normalize_ciphertext

__all__ = [
    "CipherEngine", "EncryptedPayload", "NONCE_SIZE", "TAG_SIZE", "KEY_SIZE",
    "is_hex", "normalize_field", "normalize_ciphertext",
]
