"""reCAPTCHA bot-defense verification."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from helioscribe.common.config import settings

logger = logging.getLogger(__name__)

_ERROR_MESSAGES = {
    "missing-input-secret": "reCAPTCHA secret key is missing",
    "invalid-input-secret": "reCAPTCHA secret key is invalid",
    "missing-input-response": "reCAPTCHA token is missing",
    "invalid-input-response": "reCAPTCHA token is invalid or expired",
    "bad-request": "Invalid reCAPTCHA request",
    "timeout-or-duplicate": "reCAPTCHA token has expired or already been used",
}


@dataclass
class BotCheckResult:
    success: bool
    error: Optional[str] = None
    error_codes: List[str] = field(default_factory=list)
    score: Optional[float] = None

    def user_message(self) -> str:
        """Message safe to show the client."""
        if "invalid-input-secret" in self.error_codes:
            return "reCAPTCHA configuration error. Please contact support."
        if "invalid-input-response" in self.error_codes:
            return "reCAPTCHA verification expired. Please complete the verification again."
        return "reCAPTCHA verification failed. Please try again."


class RecaptchaVerifier:
    """Score-based check against Google's siteverify endpoint."""

    VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"

    def __init__(
        self,
        secret_key: Optional[str],
        score_threshold: float = 0.5,
        timeout: float = 5.0,
        enabled: bool = True,
    ):
        self.secret_key = secret_key
        self.score_threshold = score_threshold
        self.timeout = timeout
        self.enabled = enabled

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> BotCheckResult:
        if not self.enabled:
            return BotCheckResult(success=True)
        if not token:
            return BotCheckResult(success=False, error="reCAPTCHA token is missing")
        if not self.secret_key:
            logger.error("RECAPTCHA_SECRET_KEY is not set")
            return BotCheckResult(success=False, error="reCAPTCHA configuration error")

        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.VERIFY_URL, data=data)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"reCAPTCHA verification error: {e}")
            return BotCheckResult(success=False, error="Failed to verify reCAPTCHA")

        error_codes = body.get("error-codes") or []
        if not body.get("success"):
            error = _ERROR_MESSAGES.get(error_codes[0], f"reCAPTCHA error: {error_codes[0]}") if error_codes \
                else "reCAPTCHA verification failed"
            logger.warning(f"reCAPTCHA rejected: codes={error_codes} ip={remote_ip}")
            return BotCheckResult(success=False, error=error, error_codes=error_codes)

        # v3 carries a score, v2 does not
        score = body.get("score")
        if score is not None and score < self.score_threshold:
            logger.warning(f"Low reCAPTCHA v3 score: {score} (threshold: {self.score_threshold})")
            return BotCheckResult(
                success=False, error="reCAPTCHA score too low", error_codes=["low-score"], score=score
            )

        return BotCheckResult(success=True, score=score)


_verifier: Optional[RecaptchaVerifier] = None


def get_bot_verifier() -> RecaptchaVerifier:
    global _verifier
    if _verifier is None:
        _verifier = RecaptchaVerifier(
            secret_key=settings.recaptcha_secret_key,
            score_threshold=settings.recaptcha_score_threshold,
            timeout=settings.recaptcha_timeout_seconds,
            enabled=settings.recaptcha_enabled,
        )
    return _verifier
