"""Zoho Mail OAuth: authorize URL, code exchange, identity, and the
``zoho_connections`` store used for sending and mailbox sync."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx
import structlog
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.nodal_point.core.monitoring import record_vendor_call
from src.nodal_point.models import ZohoConnectionModel

logger = structlog.get_logger(__name__)

SCOPES = ",".join([
    "ZohoMail.messages.ALL",
    "ZohoMail.accounts.READ",
    "AaaServer.profile.READ",
    "openid",
    "email",
])


class ZohoAuthError(RuntimeError):
    """Code exchange or identity lookup failed; message is user-displayable."""


@dataclass
class ZohoTokens:
    access_token: str
    refresh_token: str | None
    id_token: str | None
    expires_in: int

    def expires_at(self, now: datetime | None = None) -> datetime:
        return (now or datetime.now(timezone.utc)) + timedelta(seconds=self.expires_in)


@dataclass
class ZohoIdentity:
    email: str
    user_id: str


class ZohoService:
    """OAuth client for Zoho Accounts plus the Mail account lookup."""

    TIMEOUT = 15.0

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        accounts_url: str = "https://accounts.zoho.com",
        mail_url: str = "https://mail.zoho.com",
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._accounts_url = accounts_url.rstrip("/")
        self._mail_url = mail_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def authorize_url(self, state: str | None = None) -> str:
        params = {
            "scope": SCOPES,
            "client_id": self._client_id,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "redirect_uri": self._redirect_uri,
        }
        if state:
            params["state"] = state
        return f"{self._accounts_url}/oauth/v2/auth?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ZohoTokens:
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.post(
                f"{self._accounts_url}/oauth/v2/token",
                data={
                    "grant_type": "authorization_code",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "redirect_uri": self._redirect_uri,
                    "code": code,
                },
            )
        record_vendor_call("zoho", "token_exchange", response.status_code)
        if response.is_error:
            logger.warning("zoho.token_exchange_http_error", status=response.status_code)
            raise ZohoAuthError(f"Token exchange failed (Status {response.status_code})")

        data = response.json()
        if data.get("error") or not data.get("access_token"):
            raise ZohoAuthError(f"Token exchange failed: {data.get('error', 'no access token')}")

        return ZohoTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_in=int(data.get("expires_in") or 3600),
        )

    async def identity(self, tokens: ZohoTokens) -> ZohoIdentity:
        """Email and stable user id, from the id_token or the user info API."""
        email = None
        subject = None
        if tokens.id_token:
            try:
                claims = jwt.get_unverified_claims(tokens.id_token)
                email = claims.get("email") or claims.get("Email")
                subject = claims.get("sub")
            except JWTError:
                logger.warning("zoho.id_token_undecodable")

        if not email:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.get(
                    f"{self._accounts_url}/oauth/user/info",
                    headers={"Authorization": f"Bearer {tokens.access_token}"},
                )
            record_vendor_call("zoho", "user_info", response.status_code)
            if response.is_success:
                info = response.json()
                email = (
                    info.get("Email")
                    or info.get("email")
                    or info.get("email_id")
                    or info.get("principal_name")
                )
                subject = subject or (str(info["ZUID"]) if info.get("ZUID") else None)

        if not email:
            raise ZohoAuthError("Could not retrieve email identity from Zoho")

        email = email.strip().lower()
        return ZohoIdentity(email=email, user_id=subject or email)

    async def mail_account_id(self, access_token: str) -> str | None:
        """First Zoho Mail account id for the token's user, if any."""
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.get(
                f"{self._mail_url}/api/v1/accounts",
                headers={"Authorization": f"Zoho-oauthtoken {access_token}"},
            )
        record_vendor_call("zoho", "mail_accounts", response.status_code)
        if response.is_error:
            logger.warning("zoho.mail_accounts_failed", status=response.status_code)
            return None
        accounts = response.json().get("data") or []
        account_id = accounts[0].get("accountId") if accounts else None
        return str(account_id) if account_id else None


def email_allowed(email: str, allowed_domain: str) -> bool:
    return email.lower().endswith("@" + allowed_domain.lower().lstrip("@"))


class ZohoConnectionRepository:
    """Upserts OAuth tokens keyed by (user_id, email).

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def upsert_connection(
        self,
        identity: ZohoIdentity,
        tokens: ZohoTokens,
        account_id: str | None,
    ) -> None:
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            model = await session.get(ZohoConnectionModel, (identity.user_id, identity.email))
            if model is None:
                model = ZohoConnectionModel(user_id=identity.user_id, email=identity.email)
                session.add(model)
            model.access_token = tokens.access_token
            # Zoho only returns a refresh token on first consent
            if tokens.refresh_token:
                model.refresh_token = tokens.refresh_token
            model.token_expires_at = tokens.expires_at(now)
            if account_id:
                model.account_id = account_id
            model.updated_at = now
            await session.commit()
            logger.info("zoho.connection_saved", email=identity.email)
