"""TOTP 多因素认证：密钥生成、验证码校验、备用码"""

import base64
import hmac
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

import pyotp
import qrcode

from helioscribe.common.config import settings
from helioscribe.common.encryption import encrypt_string, decrypt_string
from helioscribe.domains.auth.codes import generate_numeric_code
from helioscribe.domains.user.models import User

logger = logging.getLogger(__name__)

BACKUP_CODE_COUNT = 10
# ±2 steps of 30s
TOTP_VALID_WINDOW = 2


@dataclass
class MfaSetup:
    secret: str
    provisioning_uri: str
    qr_code: str
    backup_codes: List[str]


class MfaService:
    """
    Two-phase enrollment: ``setup`` stores a secret and backup codes,
    ``enable`` flips ``mfa_enabled`` once a code has been verified.

    Operates on a user loaded with ``mfa_secret`` and ``mfa_backup_codes``;
    persisting is the caller's job.
    """

    def __init__(self, issuer: Optional[str] = None):
        self.issuer = issuer or settings.app_name

    def setup(self, user: User) -> MfaSetup:
        secret = pyotp.random_base32()
        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email,
            issuer_name=self.issuer,
        )
        backup_codes = [generate_numeric_code() for _ in range(BACKUP_CODE_COUNT)]

        user.mfa_secret = encrypt_string(secret)
        user.mfa_backup_codes = backup_codes

        return MfaSetup(
            secret=secret,
            provisioning_uri=provisioning_uri,
            qr_code=self._qr_data_url(provisioning_uri),
            backup_codes=backup_codes,
        )

    @staticmethod
    def _qr_data_url(data: str) -> str:
        img = qrcode.make(data)
        buffer = BytesIO()
        img.save(buffer, format="PNG")
        qr_base64 = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{qr_base64}"

    @staticmethod
    def has_secret(user: User) -> bool:
        return bool(user.mfa_secret)

    def verify_totp(self, user: User, code: str) -> bool:
        if not user.mfa_secret or not code:
            return False
        secret = decrypt_string(user.mfa_secret)
        return pyotp.TOTP(secret).verify(code, valid_window=TOTP_VALID_WINDOW)

    @staticmethod
    def redeem_backup_code(user: User, code: str) -> bool:
        """Consume one unused backup code. Returns False if none matches."""
        remaining = list(user.mfa_backup_codes or [])
        for index, candidate in enumerate(remaining):
            if hmac.compare_digest(candidate.encode(), (code or "").encode()):
                del remaining[index]
                user.mfa_backup_codes = remaining
                return True
        return False

    def verify_step_up(self, user: User, code: str) -> bool:
        """Login-time check: TOTP first, then a backup code."""
        if self.verify_totp(user, code):
            return True
        if self.redeem_backup_code(user, code):
            logger.info(f"Backup code redeemed for user {user.id}, {len(user.mfa_backup_codes)} left")
            return True
        return False

    @staticmethod
    def enable(user: User) -> None:
        user.mfa_enabled = True

    @staticmethod
    def disable(user: User) -> None:
        user.mfa_enabled = False
        user.mfa_secret = None
        user.mfa_backup_codes = []


_mfa_service: Optional[MfaService] = None


def get_mfa_service() -> MfaService:
    global _mfa_service
    if _mfa_service is None:
        _mfa_service = MfaService()
    return _mfa_service
