from functools import lru_cache

from cryptography.fernet import Fernet

from onboarding.core.config import settings


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    return Fernet(settings.credentials_encryption_key.get_secret_value().encode("utf-8"))


def encrypt_text(value: str) -> str:
    token = _fernet().encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_text(token: str) -> str:
    raw = _fernet().decrypt(token.encode("utf-8"))
    return raw.decode("utf-8")
