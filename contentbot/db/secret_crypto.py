import logging

from cryptography.fernet import Fernet, InvalidToken
from contentbot.config import settings

log = logging.getLogger(__name__)


def _fernet() -> Fernet:
    if not settings.fernet_key:
        raise RuntimeError("FERNET_KEY is missing in .env")
    return Fernet(settings.fernet_key.encode())


def encrypt_secret(plain: str) -> str:
    return _fernet().encrypt(plain.encode()).decode()


def decrypt_secret(cipher: str) -> str:
    try:
        return _fernet().decrypt(cipher.encode()).decode()
    except (TypeError, InvalidToken) as e:
        # caller decides how to surface it
        log.error("[secret_crypto] decrypt error: %s", e)
        raise
