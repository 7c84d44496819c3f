"""
Account kinds.

A user is either a ``LocalAccount`` (registered with a password; may have
linked Google login later) or a ``GoogleAccount`` (created by the Google
registration callback, never has a password). Password-based operations are
capability checks against the kind rather than flag tests at each call site.
"""

from dataclasses import dataclass
from typing import Optional, Union

from helioscribe.common.exceptions import AuthorizationError
from helioscribe.domains.user.models import User


@dataclass(frozen=True)
class LocalAccount:
    user: User

    supports_password = True

    @property
    def password_hash(self) -> str:
        """Read on access; the caller must have loaded the ``password_hash`` secret."""
        return self.user.password_hash or ""

    @property
    def linked_google_id(self) -> Optional[str]:
        return self.user.google_id


@dataclass(frozen=True)
class GoogleAccount:
    google_id: Optional[str]

    supports_password = False


Account = Union[LocalAccount, GoogleAccount]


def account_of(user: User) -> Account:
    """Resolve the account kind from ``registered_with_google`` only."""
    if user.registered_with_google:
        return GoogleAccount(google_id=user.google_id)
    return LocalAccount(user=user)


def require_local_account(user: User, message: str) -> LocalAccount:
    """Return the local account or raise the provider-mismatch error."""
    account = account_of(user)
    if not account.supports_password:
        raise AuthorizationError(message, authMethod="google")
    return account
