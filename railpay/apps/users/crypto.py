from functools import lru_cache

from cryptography.fernet import Fernet
from django.conf import settings


@lru_cache(maxsize=None)
def _fernet(key: str) -> Fernet:
    return Fernet(key.encode())


def encrypt_secret(secret: str) -> bytes:
    return _fernet(settings.FERNET_KEY).encrypt(secret.encode())


def decrypt_secret(blob: bytes) -> str:
    return _fernet(settings.FERNET_KEY).decrypt(bytes(blob)).decode()
