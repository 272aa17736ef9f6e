"""
PoP token issuance.
"""

import secrets
import time
from typing import Any, Dict, Optional

import jwt

NONCE_BYTES = 24


def generate_nonce() -> str:
    """Return a URL-safe random nonce from the OS CSPRNG."""
    return secrets.token_urlsafe(NONCE_BYTES)


class PopTokenIssuer:
    """Signs self-issued PoP tokens with the client's private key."""

    def __init__(
        self,
        private_key: Any,
        subject: str = "Client",
        algorithm: str = "RS256",
        ttl_seconds: Optional[int] = 300,
        key_id: Optional[str] = None,
    ):
        self.private_key = private_key
        self.subject = subject
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.key_id = key_id

    def build_claims(self, nonce: Optional[str] = None, **extra_claims: Any) -> Dict[str, Any]:
        now = int(time.time())
        claims: Dict[str, Any] = {
            "sub": self.subject,
            "nonce": nonce or generate_nonce(),
            "iat": now,
        }
        if self.ttl_seconds:
            claims["exp"] = now + self.ttl_seconds
        claims.update(extra_claims)
        return claims

    def issue(self, nonce: Optional[str] = None, **extra_claims: Any) -> str:
        """Return a signed compact token. A fresh nonce is generated unless given."""
        headers = {"kid": self.key_id} if self.key_id else None
        return jwt.encode(
            self.build_claims(nonce, **extra_claims),
            self.private_key,
            algorithm=self.algorithm,
            headers=headers,
        )
