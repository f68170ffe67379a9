"""Twilio Voice access tokens for the browser softphone.

A Twilio access token is an HS256 JWT signed with an API key secret, carrying
a ``grants`` claim. The SDK is not needed to mint one.
"""

from __future__ import annotations

import time

from jose import jwt

TOKEN_TTL_SECONDS = 3600


def create_voice_token(
    account_sid: str,
    api_key_sid: str,
    api_key_secret: str,
    identity: str,
    outgoing_application_sid: str,
    ttl: int = TOKEN_TTL_SECONDS,
    now: int | None = None,
) -> str:
    """Mint a Voice access token allowing outgoing calls and incoming rings."""
    issued_at = int(now if now is not None else time.time())
    claims = {
        "jti": f"{api_key_sid}-{issued_at}",
        "iss": api_key_sid,
        "sub": account_sid,
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl,
        "grants": {
            "identity": identity,
            "voice": {
                "incoming": {"allow": True},
                "outgoing": {"application_sid": outgoing_application_sid},
            },
        },
    }
    return jwt.encode(
        claims,
        api_key_secret,
        algorithm="HS256",
        headers={"cty": "twilio-fpa;v=1", "typ": "JWT"},
    )
