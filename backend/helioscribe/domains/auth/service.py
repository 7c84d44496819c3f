"""
Auth Service - 注册、邮箱验证、登录(含MFA)、Google OAuth、密码重置

Per-attempt states: Unauthenticated -> PendingEmailVerification -> Authenticated,
with PendingMFA between a verified password and Authenticated whenever
``mfa_enabled`` is set. Every rejected transition raises an ``AppError``.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helioscribe.common.base import utcnow
from helioscribe.common.config import settings
from helioscribe.common.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from helioscribe.domains.auth.codes import CodeCheck, check_code, issue_code
from helioscribe.domains.auth.google import GoogleIdentity, GoogleOAuthClient
from helioscribe.domains.auth.jwt import (
    ResetTokenError,
    create_password_reset_token,
    create_session_token,
    decode_password_reset_token,
)
from helioscribe.domains.auth.mailer import EmailSender, password_reset_email, verification_email
from helioscribe.domains.auth.mfa import MfaService
from helioscribe.domains.auth.recaptcha import RecaptchaVerifier
from helioscribe.domains.auth.schemas import LoginRequest, RegisterRequest
from helioscribe.domains.user.accounts import require_local_account
from helioscribe.domains.user.models import User, AUTH_PROVIDER_GOOGLE
from helioscribe.domains.user.passwords import get_password_hash, verify_password
from helioscribe.domains.user.repository import UserRepository, normalize_email, user_repository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
GOOGLE_LOGIN_ONLY = "This account was registered using Google. Please sign in with Google instead."
GOOGLE_NO_PASSWORD_RESET = (
    "This account was registered using Google. Password reset is not available for Google accounts. "
    "Please sign in with Google instead."
)
FORGOT_PASSWORD_SENT = "If an account exists for this email, a password reset code has been sent."

_VERIFICATION_SECRETS = ("email_verification_code", "email_verification_code_expire")
_RESET_CODE_SECRETS = ("password_reset_code", "password_reset_code_expire")
_RESET_TOKEN_SECRETS = ("password_reset_token", "password_reset_token_expire")
_LOGIN_SECRETS = ("password_hash", "mfa_secret", "mfa_backup_codes")

# Google callback error codes, delivered to the frontend as ?error=<code>
GOOGLE_AUTH_FAILED = "google_auth_failed"
GOOGLE_AUTH_NO_EMAIL = "google_auth_no_email"
GOOGLE_AUTH_EMAIL_NOT_VERIFIED = "google_auth_email_not_verified"
GOOGLE_AUTH_NOT_REGISTERED = "google_auth_not_registered"
GOOGLE_AUTH_ALREADY_REGISTERED = "google_auth_already_registered"


@dataclass
class LoginResult:
    user: User
    token: Optional[str] = None
    mfa_required: bool = False


class GoogleCallbackError(Exception):
    """Callback ended without a session; ``code`` goes back to the frontend."""

    def __init__(self, code: str, page: str):
        super().__init__(code)
        self.code = code
        self.page = page


def frontend_redirect(path: str, **params) -> str:
    url = f"{settings.frontend_url.rstrip('/')}{path}"
    return f"{url}?{urlencode(params)}" if params else url


class AuthService:
    """认证服务"""

    def __init__(
        self,
        bot_verifier: RecaptchaVerifier,
        email_sender: EmailSender,
        mfa: MfaService,
        repository: UserRepository = user_repository,
    ):
        self.bot_verifier = bot_verifier
        self.email_sender = email_sender
        self.mfa = mfa
        self.repository = repository

    # -------------------------------------------------------------------------
    # Registration & email verification
    # -------------------------------------------------------------------------

    async def _require_human(self, token: Optional[str], client_ip: Optional[str], action: str) -> None:
        if not token:
            raise ValidationError("reCAPTCHA verification is required")
        result = await self.bot_verifier.verify(token, client_ip)
        if not result.success:
            logger.warning(f"reCAPTCHA failed for {action}: {result.error} codes={result.error_codes} ip={client_ip}")
            raise ValidationError(result.user_message())

    async def _send_verification_code(self, user: User, code: str) -> None:
        await self.email_sender.send(
            user.email,
            f"Verify Your Email - {settings.app_name}",
            verification_email(user.first_name, code, settings.verification_code_expire_minutes),
        )

    async def register(
        self, session: AsyncSession, data: RegisterRequest, client_ip: Optional[str] = None
    ) -> User:
        await self._require_human(data.bot_token, client_ip, "registration")

        if await self.repository.email_exists(session, data.email):
            raise ValidationError("User already exists with this email")

        code, expires_at = issue_code(settings.verification_code_expire_minutes)
        try:
            user = await self.repository.create(
                session,
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                phone=data.phone,
                address=data.address,
                how_heard=data.how_heard,
                password=data.password,
                registration_ip=client_ip,
                device_fingerprint=data.device_fingerprint,
                email_verification_code=code,
                email_verification_code_expire=expires_at,
            )
        except IntegrityError:
            await session.rollback()
            raise ConflictError("User already exists with this email")
        await session.commit()
        logger.info(f"User registered: {user.email} ({user.id})")

        try:
            await self._send_verification_code(user, code)
        except Exception as e:
            # Registration stands; the user can ask for a resend
            logger.error(f"Verification email to {user.email} failed: {e}")

        return user

    async def verify_email(self, session: AsyncSession, email: str, code: str) -> LoginResult:
        user = await self.repository.get_by_email(session, email, secrets=_VERIFICATION_SECRETS)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")

        check = check_code(user.email_verification_code, user.email_verification_code_expire, code)
        if check is CodeCheck.MISSING:
            raise ValidationError("Verification code not found. Please request a new one.")
        if check is CodeCheck.EXPIRED:
            self._clear_verification_code(user)
            await self.repository.save(session, user)
            await session.commit()
            raise ValidationError("Verification code has expired. Please request a new one.")
        if check is CodeCheck.MISMATCH:
            raise ValidationError("Invalid verification code")

        user.is_email_verified = True
        self._clear_verification_code(user)
        await self.repository.save(session, user)
        logger.info(f"Email verified: {user.email}")
        return LoginResult(user=user, token=create_session_token(user.id))

    @staticmethod
    def _clear_verification_code(user: User) -> None:
        user.email_verification_code = None
        user.email_verification_code_expire = None

    async def resend_verification(self, session: AsyncSession, email: str) -> None:
        user = await self.repository.get_by_email(session, email)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")

        code, expires_at = issue_code(settings.verification_code_expire_minutes)
        user.email_verification_code = code
        user.email_verification_code_expire = expires_at
        await self.repository.save(session, user)
        await session.commit()

        try:
            await self._send_verification_code(user, code)
        except Exception as e:
            logger.error(f"Verification email resend to {user.email} failed: {e}")
            raise ExternalServiceError("Failed to send verification email")

    # -------------------------------------------------------------------------
    # Password login (+ MFA step-up)
    # -------------------------------------------------------------------------

    async def login(
        self, session: AsyncSession, data: LoginRequest, client_ip: Optional[str] = None
    ) -> LoginResult:
        # Every call, the MFA step-up included, carries a fresh bot token
        await self._require_human(data.bot_token, client_ip, "login")

        user = await self.repository.get_by_email(session, data.email, secrets=_LOGIN_SECRETS)
        if user is None:
            logger.info(f"Login attempt for unknown email {normalize_email(data.email)}")
            # Same hashing cost as a real comparison
            verify_password(data.password, _dummy_hash())
            raise AuthenticationError(INVALID_CREDENTIALS)

        require_local_account(user, GOOGLE_LOGIN_ONLY)

        if not verify_password(data.password, user.password_hash):
            logger.info(f"Login attempt: password mismatch for {user.email}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not user.is_email_verified:
            raise AuthorizationError("Please verify your email before logging in")

        if user.mfa_enabled:
            if not data.mfa_token:
                return LoginResult(user=user, mfa_required=True)
            if not self.mfa.verify_step_up(user, data.mfa_token.strip()):
                logger.info(f"Login attempt: invalid MFA code for {user.email}")
                raise AuthenticationError(
                    "Invalid verification code. Please try again.", mfaRequired=True
                )

        user.last_login = utcnow()
        await self.repository.save(session, user)
        return LoginResult(user=user, token=create_session_token(user.id))

    # -------------------------------------------------------------------------
    # Google OAuth callbacks
    # -------------------------------------------------------------------------

    @staticmethod
    async def _google_identity(
        client: GoogleOAuthClient, code: Optional[str], oauth_error: Optional[str], page: str
    ) -> GoogleIdentity:
        if oauth_error or not code:
            logger.error(f"Google OAuth error on {page}: {oauth_error or 'no authorization code'}")
            raise GoogleCallbackError(GOOGLE_AUTH_FAILED, page)
        try:
            identity = await client.exchange_code(code)
        except ExternalServiceError as e:
            raise GoogleCallbackError(GOOGLE_AUTH_FAILED, page) from e
        if not identity.email:
            raise GoogleCallbackError(GOOGLE_AUTH_NO_EMAIL, page)
        if not identity.email_verified:
            raise GoogleCallbackError(GOOGLE_AUTH_EMAIL_NOT_VERIFIED, page)
        return identity

    async def google_login(
        self,
        session: AsyncSession,
        client: GoogleOAuthClient,
        code: Optional[str],
        oauth_error: Optional[str] = None,
    ) -> LoginResult:
        """Login entry point: only already-registered users get a session."""
        identity = await self._google_identity(client, code, oauth_error, "/login")

        user = await self.repository.get_by_email_or_google_id(session, identity.email, identity.sub)
        if user is None:
            raise GoogleCallbackError(GOOGLE_AUTH_NOT_REGISTERED, "/login")

        # Links Google to a local account; registered_with_google stays as is
        if not user.google_id:
            user.google_id = identity.sub
            user.auth_provider = AUTH_PROVIDER_GOOGLE
        if identity.picture:
            user.profile_picture = identity.picture
        if not user.is_email_verified:
            user.is_email_verified = True
        user.last_login = utcnow()
        await self.repository.save(session, user)
        logger.info(f"Google login: {user.email}")
        return LoginResult(user=user, token=create_session_token(user.id))

    async def google_register(
        self,
        session: AsyncSession,
        client: GoogleOAuthClient,
        code: Optional[str],
        oauth_error: Optional[str] = None,
        client_ip: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
    ) -> LoginResult:
        """Registration entry point: existing users are turned away untouched."""
        identity = await self._google_identity(client, code, oauth_error, "/register")

        existing = await self.repository.get_by_email_or_google_id(session, identity.email, identity.sub)
        if existing is not None:
            raise GoogleCallbackError(GOOGLE_AUTH_ALREADY_REGISTERED, "/login")

        try:
            user = await self.repository.create(
                session,
                first_name=(identity.given_name or "User")[:50],
                last_name=(identity.family_name or "")[:50],
                email=identity.email,
                google_id=identity.sub,
                auth_provider=AUTH_PROVIDER_GOOGLE,
                registered_with_google=True,
                profile_picture=identity.picture or None,
                is_email_verified=True,
                registration_ip=client_ip,
                device_fingerprint=device_fingerprint,
                last_login=utcnow(),
            )
        except IntegrityError:
            await session.rollback()
            raise GoogleCallbackError(GOOGLE_AUTH_ALREADY_REGISTERED, "/login")
        logger.info(f"Google registration: {user.email} ({user.id})")
        return LoginResult(user=user, token=create_session_token(user.id))

    # -------------------------------------------------------------------------
    # Forgot / reset password
    # -------------------------------------------------------------------------

    async def forgot_password(self, session: AsyncSession, email: str) -> None:
        """Uniform outcome whether or not the email exists (provider mismatch aside)."""
        user = await self.repository.get_by_email(
            session, email, secrets=_RESET_CODE_SECRETS + _RESET_TOKEN_SECRETS
        )
        if user is None:
            logger.info(f"Password reset requested for unknown email {normalize_email(email)}")
            return
        require_local_account(user, GOOGLE_NO_PASSWORD_RESET)

        code, expires_at = issue_code(settings.reset_code_expire_minutes)
        user.password_reset_code = code
        user.password_reset_code_expire = expires_at
        self._clear_reset_token(user)
        await self.repository.save(session, user)
        await session.commit()

        try:
            await self.email_sender.send(
                user.email,
                f"Reset Your Password - {settings.app_name}",
                password_reset_email(user.first_name, code, settings.reset_code_expire_minutes),
            )
        except Exception as e:
            logger.error(f"Password reset email to {user.email} failed: {e}")

    async def verify_reset_code(self, session: AsyncSession, email: str, code: str) -> str:
        """Exchange a valid reset code for a single-use reset token."""
        user = await self.repository.get_by_email(
            session, email, secrets=_RESET_CODE_SECRETS + _RESET_TOKEN_SECRETS
        )
        if user is None:
            raise NotFoundError("User not found")
        require_local_account(user, GOOGLE_NO_PASSWORD_RESET)

        check = check_code(user.password_reset_code, user.password_reset_code_expire, code)
        if check is CodeCheck.MISSING:
            raise ValidationError("Reset code not found. Please request a new one.")
        if check is CodeCheck.EXPIRED:
            self._clear_reset_code(user)
            await self.repository.save(session, user)
            await session.commit()
            raise ValidationError("Reset code has expired. Please request a new one.")
        if check is CodeCheck.MISMATCH:
            raise ValidationError("Invalid reset code")

        token = create_password_reset_token(user.id, user.email)
        self._clear_reset_code(user)
        user.password_reset_token = token
        user.password_reset_token_expire = utcnow() + timedelta(minutes=settings.password_reset_token_expire_minutes)
        await self.repository.save(session, user)
        return token

    async def reset_password(self, session: AsyncSession, reset_token: str, new_password: str) -> None:
        user = await self._validate_reset_token(session, reset_token)
        require_local_account(user, GOOGLE_NO_PASSWORD_RESET)

        self._clear_reset_token(user)
        self._clear_reset_code(user)
        await self.repository.set_password_hash(session, user, get_password_hash(new_password))
        logger.info(f"Password reset completed for {user.email}")

    async def _validate_reset_token(self, session: AsyncSession, reset_token: str) -> User:
        secrets = _RESET_TOKEN_SECRETS + _RESET_CODE_SECRETS + ("password_hash",)
        try:
            claims = decode_password_reset_token(reset_token)
        except ResetTokenError as e:
            if e.reason == ResetTokenError.EXPIRED:
                user = await self.repository.get_by_id(session, e.claims.get("sub", ""), secrets=secrets)
                if user is None or user.password_reset_token != reset_token:
                    raise ValidationError("Reset token is invalid or has already been used")
                await self._discard_reset_token(session, user)
                raise ValidationError("Reset token has expired. Please request a new password reset.")
            raise ValidationError("Invalid reset token")

        user = await self.repository.get_by_id(session, claims["sub"], secrets=secrets)
        if user is None:
            raise ValidationError("Invalid reset token")

        if claims["email"] != user.email:
            logger.warning(f"Reset token email mismatch for user {user.id}")
            await self._discard_reset_token(session, user)
            raise ValidationError("Invalid reset token")

        if not user.password_reset_token:
            raise ValidationError("Reset token is invalid or has already been used")
        if user.password_reset_token != reset_token:
            await self._discard_reset_token(session, user)
            raise ValidationError("Reset token is invalid or has already been used")
        if not user.password_reset_token_expire or user.password_reset_token_expire < utcnow():
            await self._discard_reset_token(session, user)
            raise ValidationError("Reset token has expired. Please request a new password reset.")
        return user

    async def _discard_reset_token(self, session: AsyncSession, user: User) -> None:
        self._clear_reset_token(user)
        await self.repository.save(session, user)
        await session.commit()

    @staticmethod
    def _clear_reset_code(user: User) -> None:
        user.password_reset_code = None
        user.password_reset_code_expire = None

    @staticmethod
    def _clear_reset_token(user: User) -> None:
        user.password_reset_token = None
        user.password_reset_token_expire = None


_DUMMY_HASH: Optional[str] = None


def _dummy_hash() -> str:
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = get_password_hash("timing-equalizer-Passw0rd")
    return _DUMMY_HASH
