"""
Key provider package.

The PoP service never owns key storage. It resolves the client's public key
through a `KeyProvider`, which may be backed by PEM files on disk, a secret
manager, or a PKI trust store. Only the resolved key object flows into the
verifier.
"""

from .provider import (
    KeyLoadError,
    KeyNotFoundError,
    KeyProvider,
    PemFileKeyProvider,
    StaticKeyProvider,
    generate_rsa_keypair,
    load_private_key,
    load_public_key,
    private_key_to_pem,
    public_key_to_pem,
    write_private_key,
)

__all__ = [
    "KeyLoadError",
    "KeyNotFoundError",
    "KeyProvider",
    "PemFileKeyProvider",
    "StaticKeyProvider",
    "generate_rsa_keypair",
    "load_private_key",
    "load_public_key",
    "private_key_to_pem",
    "public_key_to_pem",
    "write_private_key",
]
