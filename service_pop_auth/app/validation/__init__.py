"""
Token validation package.

Verifies PoP tokens presented by clients: structure, server-pinned signing
algorithm, signature, time claims and the mandatory nonce. Verification is
pure computation over in-memory key material and is safe to call from any
number of threads.
"""

from .token_verifier import Claims, TokenVerifier, VerificationError, VerificationResult

__all__ = ["Claims", "TokenVerifier", "VerificationError", "VerificationResult"]
