"""
Identity resolution.

The cart only needs to know "guest or which email". Supabase Auth answers
that for a bearer JWT; anything else (no token, expired token, auth outage)
means guest mode.
"""

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urlencode

from supabase._async.client import AsyncClient

from storefront import config
from storefront.errors import IdentityUnavailable
from storefront.logging import get_logger

logger = get_logger(__name__)

GUEST_OWNER = "guest"


@dataclass(frozen=True)
class Identity:
    """Anonymous (email is None) or Authenticated(email)."""

    email: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls()

    @classmethod
    def authenticated(cls, email: str) -> "Identity":
        if not email:
            raise ValueError("email must be a non-empty string")
        return cls(email=email)

    @property
    def is_authenticated(self) -> bool:
        return self.email is not None

    @property
    def owner(self) -> str:
        """Owner key of this identity's cart lines."""
        return self.email if self.email is not None else GUEST_OWNER


ANONYMOUS = Identity.anonymous()


class IdentityProvider(Protocol):
    async def current_identity(self) -> Identity:
        """Return the authenticated identity or raise IdentityUnavailable."""
        ...

    def login_url(self, return_url: str) -> str:
        """Where to send the user to sign in, coming back to return_url."""
        ...


class SupabaseIdentityProvider:
    """Identity provider backed by Supabase Auth."""

    def __init__(self, client: AsyncClient, access_token: Optional[str] = None,
                 provider: str = config.LOGIN_PROVIDER):
        self.client = client
        self.access_token = access_token
        self.provider = provider

    async def current_identity(self) -> Identity:
        if not self.access_token:
            raise IdentityUnavailable("No access token")
        try:
            response = await self.client.auth.get_user(self.access_token)
        except Exception as e:
            raise IdentityUnavailable(str(e)) from e

        user = response.user if response else None
        email = getattr(user, "email", None)
        if not email:
            raise IdentityUnavailable("No user for access token")
        return Identity.authenticated(email)

    def login_url(self, return_url: str) -> str:
        query = urlencode({"provider": self.provider, "redirect_to": return_url})
        return f"{config.SUPABASE_URL}/auth/v1/authorize?{query}"
