"""
Key providers and PEM helpers for PoP token verification.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes, PublicKeyTypes

from shared.errors import ServiceError
from shared.logging import get_logger

PathLike = Union[str, Path]

_CERTIFICATE_MARKER = b"-----BEGIN CERTIFICATE-----"


class KeyNotFoundError(ServiceError):
    """No public key is registered under the requested alias."""

    def __init__(self, alias: str):
        super().__init__(f"No public key registered for alias '{alias}'", details={"alias": alias})
        self.alias = alias


class KeyLoadError(ServiceError):
    """Key material could not be read or parsed."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Unable to load key from {source}: {reason}", details={"source": source})


class KeyProvider(ABC):
    """Resolves the public key a PoP token must be verified against."""

    @abstractmethod
    def get_public_key(self, alias: str) -> PublicKeyTypes:
        """Return the public key registered for `alias`.

        Raises:
            KeyNotFoundError: if nothing is registered under `alias`.
        """

    def has_key(self, alias: str) -> bool:
        try:
            self.get_public_key(alias)
        except KeyNotFoundError:
            return False
        return True


class StaticKeyProvider(KeyProvider):
    """In-memory provider, mainly for tests and embedded use."""

    def __init__(self, keys: Optional[Mapping[str, PublicKeyTypes]] = None):
        self._keys: Dict[str, PublicKeyTypes] = dict(keys or {})

    def register(self, alias: str, public_key: PublicKeyTypes) -> None:
        self._keys[alias] = public_key

    def get_public_key(self, alias: str) -> PublicKeyTypes:
        try:
            return self._keys[alias]
        except KeyError:
            raise KeyNotFoundError(alias) from None


class PemFileKeyProvider(KeyProvider):
    """Loads public keys from PEM files once, at construction time.

    Each file may hold either a bare `PUBLIC KEY` or an X.509 `CERTIFICATE`;
    for certificates the subject public key is used. The certificate chain
    is not validated.
    """

    def __init__(self, paths: Mapping[str, PathLike]):
        self.logger = get_logger("pop_auth.keys")
        self._keys: Dict[str, PublicKeyTypes] = {}

        for alias, path in paths.items():
            self._keys[alias] = self._load(Path(path))
            self.logger.info("Public key loaded", alias=alias, path=str(path))

    @staticmethod
    def _load(path: Path) -> PublicKeyTypes:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise KeyLoadError(str(path), exc.strerror or str(exc)) from exc
        return load_public_key(data, source=str(path))

    def get_public_key(self, alias: str) -> PublicKeyTypes:
        try:
            return self._keys[alias]
        except KeyError:
            raise KeyNotFoundError(alias) from None


def load_public_key(data: bytes, source: str = "<memory>") -> PublicKeyTypes:
    """Parse a PEM public key or the public key of a PEM certificate."""
    try:
        if _CERTIFICATE_MARKER in data:
            return x509.load_pem_x509_certificate(data).public_key()
        return serialization.load_pem_public_key(data)
    except ValueError as exc:
        raise KeyLoadError(source, str(exc)) from exc


def load_private_key(path: PathLike, password: Optional[str] = None) -> PrivateKeyTypes:
    """Load a PEM private key, optionally encrypted with `password`."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise KeyLoadError(str(path), exc.strerror or str(exc)) from exc

    try:
        return serialization.load_pem_private_key(
            data,
            password=password.encode("utf-8") if password else None,
        )
    except (ValueError, TypeError) as exc:
        raise KeyLoadError(str(path), str(exc)) from exc


def generate_rsa_keypair(key_size: int = 2048) -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return private_key, private_key.public_key()


def private_key_to_pem(private_key: PrivateKeyTypes, password: Optional[str] = None) -> bytes:
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def public_key_to_pem(public_key: PublicKeyTypes) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def write_private_key(path: PathLike, private_key: PrivateKeyTypes, password: Optional[str] = None) -> None:
    """Write `private_key` as PEM to `path`, readable by the owner only.

    The mode is set on the descriptor before any key bytes are written, so an
    existing file with wider permissions is tightened too.
    """
    data = private_key_to_pem(private_key, password)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        os.fchmod(handle.fileno(), 0o600)
        handle.write(data)
