"""MFA 密钥的静态加密：Fernet，支持密钥轮换"""

import logging
from functools import lru_cache
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from helioscribe.common.config import settings
from helioscribe.common.exceptions import InternalError

logger = logging.getLogger(__name__)


class SecretCipher:
    """
    Encrypts with the current key, decrypts with the current or any retired key.

    ``rotate`` re-encrypts a token under the current key so retired keys can
    eventually be dropped from ``ENCRYPTION_PREVIOUS_KEYS``.
    """

    def __init__(self, key: str, previous_keys: Iterable[str] = ()):
        self._fernet = MultiFernet([Fernet(k.encode()) for k in (key, *previous_keys)])

    def encrypt(self, plain_text: str) -> str:
        return self._fernet.encrypt(plain_text.encode()).decode()

    def decrypt(self, cipher_text: str) -> str:
        try:
            return self._fernet.decrypt(cipher_text.encode()).decode()
        except InvalidToken:
            logger.error("Stored secret could not be decrypted with any configured key")
            raise InternalError("Stored secret could not be decrypted")

    def rotate(self, cipher_text: str) -> str:
        return self._fernet.rotate(cipher_text.encode()).decode()


def _split_keys(raw: Optional[str]) -> list:
    return [k.strip() for k in (raw or "").split(",") if k.strip()]


@lru_cache()
def get_secret_cipher() -> SecretCipher:
    key = settings.encryption_key
    if not key:
        if not settings.is_development:
            raise RuntimeError("ENCRYPTION_KEY must be set outside development")
        logger.warning("ENCRYPTION_KEY 未设置，生成临时密钥。MFA 密钥将在重启后无法解密！")
        key = Fernet.generate_key().decode()
    return SecretCipher(key, _split_keys(settings.encryption_previous_keys))


def encrypt_string(plain_text: str) -> str:
    return get_secret_cipher().encrypt(plain_text)


def decrypt_string(cipher_text: str) -> str:
    return get_secret_cipher().decrypt(cipher_text)
