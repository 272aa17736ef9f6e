"""
PoP token verification.

A PoP token is a compact JWS signed by the client with its private key. The
verifier checks it against a public key supplied by the caller and returns a
`VerificationResult` instead of raising, so the request layer can branch on
the failure kind and decide how much of it to reveal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

import jwt
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from shared.logging import get_logger

# Expected public key type per JWS algorithm prefix. Symmetric (HS*) and
# "none" algorithms are never accepted.
_KEY_TYPES: Dict[str, Tuple[Type[Any], ...]] = {
    "RS": (RSAPublicKey,),
    "PS": (RSAPublicKey,),
    "ES": (EllipticCurvePublicKey,),
    "Ed": (Ed25519PublicKey,),
}


class VerificationError(str, Enum):
    """Reason a token failed verification."""

    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    ALGORITHM_MISMATCH = "ALGORITHM_MISMATCH"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_NOT_YET_VALID = "TOKEN_NOT_YET_VALID"
    MISSING_NONCE = "MISSING_NONCE"


@dataclass(frozen=True)
class Claims:
    """Claims of a verified PoP token."""

    nonce: str
    subject: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def expires_at_timestamp(self) -> Optional[float]:
        return self.expires_at.timestamp() if self.expires_at else None

    @classmethod
    def from_payload(
        cls,
        payload: Dict[str, Any],
        nonce: str,
        issued_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
    ) -> "Claims":
        return cls(
            nonce=nonce,
            subject=_to_str(payload.get("sub")),
            issued_at=issued_at,
            expires_at=expires_at,
            raw=dict(payload),
        )


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of `TokenVerifier.verify`: either claims or an error, never both."""

    claims: Optional[Claims] = None
    error: Optional[VerificationError] = None
    detail: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.error is None and self.claims is not None

    @classmethod
    def success(cls, claims: Claims) -> "VerificationResult":
        return cls(claims=claims)

    @classmethod
    def failure(cls, error: VerificationError, detail: str) -> "VerificationResult":
        return cls(error=error, detail=detail)


class TokenVerifier:
    """Stateless verifier for asymmetrically signed PoP tokens."""

    def __init__(self, algorithm: str = "RS256", leeway_seconds: int = 0):
        key_types = _KEY_TYPES.get(algorithm[:2])
        if key_types is None or algorithm not in jwt.algorithms.get_default_algorithms():
            raise ValueError(f"Unsupported PoP signing algorithm: {algorithm}")

        self.algorithm = algorithm
        self.leeway_seconds = leeway_seconds
        self._key_types = key_types
        self.logger = get_logger("pop_auth.verifier")

    def verify(self, token: str, public_key: Any) -> VerificationResult:
        """Verify `token` against `public_key`.

        Checks run in order and stop at the first failure: structure,
        declared algorithm, signature, time claims, nonce.
        """
        if not isinstance(token, str) or not token.strip():
            return self._fail(VerificationError.MALFORMED_TOKEN, "Token is empty")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            return self._fail(VerificationError.MALFORMED_TOKEN, str(exc))

        # The algorithm comes from configuration, never from the token.
        declared = header.get("alg")
        if declared != self.algorithm:
            return self._fail(
                VerificationError.ALGORITHM_MISMATCH,
                f"Token declares '{declared}', expected '{self.algorithm}'",
            )
        if not isinstance(public_key, self._key_types):
            return self._fail(
                VerificationError.ALGORITHM_MISMATCH,
                f"Verification key of type {type(public_key).__name__} cannot verify {self.algorithm}",
            )

        try:
            payload = jwt.decode(
                token,
                public_key,
                algorithms=[self.algorithm],
                leeway=self.leeway_seconds,
                # sub is optional and only reported when it is a string.
                options={"verify_aud": False, "verify_sub": False},
            )
        except jwt.InvalidSignatureError as exc:
            return self._fail(VerificationError.SIGNATURE_INVALID, str(exc))
        except jwt.ExpiredSignatureError as exc:
            return self._fail(VerificationError.TOKEN_EXPIRED, str(exc))
        except jwt.ImmatureSignatureError as exc:
            return self._fail(VerificationError.TOKEN_NOT_YET_VALID, str(exc))
        except (jwt.InvalidAlgorithmError, jwt.InvalidKeyError) as exc:
            return self._fail(VerificationError.ALGORITHM_MISMATCH, str(exc))
        except jwt.PyJWTError as exc:
            return self._fail(VerificationError.MALFORMED_TOKEN, str(exc))

        try:
            issued_at = _to_datetime(payload.get("iat"))
            expires_at = _to_datetime(payload.get("exp"))
        except (OverflowError, OSError, ValueError) as exc:
            return self._fail(VerificationError.MALFORMED_TOKEN, f"Time claim out of range: {exc}")

        nonce = payload.get("nonce")
        if not isinstance(nonce, str) or not nonce.strip():
            return self._fail(VerificationError.MISSING_NONCE, "Token carries no nonce claim")

        return VerificationResult.success(Claims.from_payload(payload, nonce, issued_at, expires_at))

    def _fail(self, error: VerificationError, detail: str) -> VerificationResult:
        self.logger.info("PoP token rejected", reason=error.value, detail=detail)
        return VerificationResult.failure(error, detail)


def _to_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
