"""
Per-request PoP authentication flow.

    Received -> HeaderPresent? -> TokenStructurallyValid? -> SignatureValid?
             -> NotExpired? -> NonceFresh? -> Accepted

Any failed step ends in a rejection. The authenticator knows nothing about
HTTP status codes; `AuthDecision` is translated into a response by the
service layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shared.logging import get_logger, redact_nonce
from .keys import KeyProvider
from .replay import ReplayGuard
from .validation import Claims, TokenVerifier, VerificationError

BEARER_PREFIX = "Bearer "


class RejectionReason(str, Enum):
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    REPLAY_DETECTED = "REPLAY_DETECTED"


@dataclass(frozen=True)
class AuthDecision:
    """Terminal state of one authentication attempt."""

    accepted: bool
    claims: Optional[Claims] = None
    reason: Optional[RejectionReason] = None
    verification_error: Optional[VerificationError] = None
    detail: Optional[str] = None

    @property
    def outcome(self) -> str:
        """Flat label for logs and metrics, e.g. ACCEPTED or SIGNATURE_INVALID."""
        if self.accepted:
            return "ACCEPTED"
        if self.verification_error is not None:
            return self.verification_error.value
        return self.reason.value

    @classmethod
    def accept(cls, claims: Claims) -> "AuthDecision":
        return cls(accepted=True, claims=claims)

    @classmethod
    def reject(
        cls,
        reason: RejectionReason,
        detail: str,
        verification_error: Optional[VerificationError] = None,
        claims: Optional[Claims] = None,
    ) -> "AuthDecision":
        return cls(
            accepted=False,
            claims=claims,
            reason=reason,
            verification_error=verification_error,
            detail=detail,
        )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the bearer credential from an Authorization header value, if any."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class PopAuthenticator:
    """Composes key lookup, token verification and replay detection.

    Single-client model: every token is verified against the key registered
    under `key_alias`.
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        replay_guard: ReplayGuard,
        key_provider: KeyProvider,
        key_alias: str,
    ):
        self.verifier = verifier
        self.replay_guard = replay_guard
        self.key_provider = key_provider
        self.key_alias = key_alias
        self.logger = get_logger("pop_auth.authenticator")

    def authenticate(self, authorization: Optional[str]) -> AuthDecision:
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthDecision.reject(
                RejectionReason.MISSING_CREDENTIALS,
                "Missing or invalid Authorization header",
            )

        public_key = self.key_provider.get_public_key(self.key_alias)
        result = self.verifier.verify(token, public_key)
        if not result.valid:
            return AuthDecision.reject(
                RejectionReason.INVALID_TOKEN,
                result.detail or "Token verification failed",
                verification_error=result.error,
            )

        claims = result.claims
        if not self.replay_guard.check_and_insert(claims.nonce, claims.expires_at_timestamp):
            return AuthDecision.reject(
                RejectionReason.REPLAY_DETECTED,
                "Nonce has already been used",
                claims=claims,
            )

        self.logger.info(
            "PoP token accepted",
            subject=claims.subject,
            nonce=redact_nonce(claims.nonce),
        )
        return AuthDecision.accept(claims)
