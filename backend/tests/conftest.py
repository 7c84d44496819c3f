"""Shared fixtures: in-memory database, app client, fakes for outside services."""

import re
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helioscribe.common.config import settings

# Cheap hashing, no log files, stable Fernet key; must precede app import
settings.bcrypt_rounds = 4
settings.log_dir = None
settings.encryption_key = Fernet.generate_key().decode()
settings.frontend_url = "http://frontend.test"

from helioscribe.common.base import Base, utcnow  # noqa: E402
from helioscribe.common.database import get_db_session  # noqa: E402
from helioscribe.domains.auth.google import GoogleIdentity, get_google_clients  # noqa: E402
from helioscribe.domains.auth.jwt import create_session_token  # noqa: E402
from helioscribe.domains.auth.mailer import get_email_sender  # noqa: E402
from helioscribe.domains.auth.mfa import get_mfa_service  # noqa: E402
from helioscribe.domains.auth.recaptcha import BotCheckResult, get_bot_verifier  # noqa: E402
from helioscribe.domains.user.repository import user_repository  # noqa: E402
from helioscribe.domains.website.vector_store import get_vector_provisioner  # noqa: E402
from helioscribe.main import app  # noqa: E402

STRONG_PASSWORD = "Sup3rSecret"
_CODE_RE = re.compile(r">(\d{6})</p>")


# ════════════════════════════════════════════════════════════════
# Fakes
# ════════════════════════════════════════════════════════════════

class FakeBotVerifier:
    def __init__(self):
        self.result = BotCheckResult(success=True, score=0.9)
        self.calls = []

    async def verify(self, token, remote_ip=None):
        self.calls.append((token, remote_ip))
        return self.result


class FakeEmailSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to, subject, html):
        if self.fail:
            raise ConnectionRefusedError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def last_code(self, to):
        for message in reversed(self.sent):
            if message["to"] == to:
                return _CODE_RE.search(message["html"]).group(1)
        raise AssertionError(f"no email sent to {to}")


class FakeGoogleClient:
    def __init__(self, flow):
        self.flow = flow
        self.configured = True
        self.identity = None
        self.error = None
        self.codes = []

    def authorization_url(self, state=None):
        return f"https://accounts.google.com/o/oauth2/v2/auth?flow={self.flow}"

    async def exchange_code(self, code):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return self.identity


class FakeGoogleClients:
    def __init__(self):
        self.login = FakeGoogleClient("login")
        self.register = FakeGoogleClient("register")

    def set_identity(self, **claims):
        claims.setdefault("sub", "google-sub-1")
        claims.setdefault("email", "grace@example.com")
        claims.setdefault("email_verified", True)
        identity = GoogleIdentity(**claims)
        self.login.identity = identity
        self.register.identity = identity
        return identity


class FakeProvisioner:
    def __init__(self):
        self.created = []
        self.fail = False

    async def create_collection(self, name):
        if self.fail:
            raise RuntimeError("qdrant unavailable")
        self.created.append(name)


# ════════════════════════════════════════════════════════════════
# Fixtures
# ════════════════════════════════════════════════════════════════

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def bot_verifier():
    return FakeBotVerifier()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def google_clients():
    return FakeGoogleClients()


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
async def client(session_factory, bot_verifier, email_sender, google_clients, provisioner):
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_bot_verifier] = lambda: bot_verifier
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_google_clients] = lambda: google_clients
    app.dependency_overrides[get_vector_provisioner] = lambda: provisioner

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Insert a user straight through the repository."""

    async def _make_user(email="ada@example.com", password=STRONG_PASSWORD, verified=True, **fields):
        fields.setdefault("first_name", "Ada")
        fields.setdefault("last_name", "Lovelace")
        async with session_factory() as session:
            user = await user_repository.create(
                session, email=email, password=password, is_email_verified=verified, **fields
            )
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_google_user(make_user):
    async def _make_google_user(email="grace@example.com", google_id="google-sub-1"):
        return await make_user(
            email=email,
            password=None,
            first_name="Grace",
            last_name="Hopper",
            google_id=google_id,
            auth_provider="google",
            registered_with_google=True,
        )

    return _make_google_user


@pytest.fixture
def load_user(session_factory):
    """Fresh read of a user with the requested secret columns."""

    async def _load_user(email, *secrets):
        async with session_factory() as session:
            return await user_repository.get_by_email(session, email, secrets=secrets)

    return _load_user


@pytest.fixture
def update_user(session_factory):
    async def _update_user(email, /, *secrets, **changes):
        async with session_factory() as session:
            user = await user_repository.get_by_email(session, email, secrets=secrets)
            for name, value in changes.items():
                setattr(user, name, value)
            await session.commit()

    return _update_user


@pytest.fixture
def enroll_mfa(session_factory):
    """Run setup + enable for a user, returning the MfaSetup."""

    async def _enroll_mfa(user_id):
        mfa = get_mfa_service()
        async with session_factory() as session:
            user = await user_repository.get_by_id(
                session, user_id, secrets=("mfa_secret", "mfa_backup_codes")
            )
            setup = mfa.setup(user)
            mfa.enable(user)
            await session.commit()
        return setup

    return _enroll_mfa


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_session_token(user_id)}"}


def minutes_ago(minutes):
    return utcnow() - timedelta(minutes=minutes)
